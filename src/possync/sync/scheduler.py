"""Scheduler for automatic push.

This module provides:
- AutoSyncScheduler: Pushes local changes every 1, 5, 15 or 30 minutes
- parse_interval: Validation of the auto-sync interval setting
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from possync.core.config import SETTING_AUTO_INTERVAL
from possync.sync.types import SyncInProgressError

if TYPE_CHECKING:
    from possync.sync.engine import SyncEngine

logger = logging.getLogger(__name__)

ALLOWED_INTERVALS = (1, 5, 15, 30)

AUTO_PUSH_JOB_ID = "auto_push"

_DISABLED_VALUES = {"", "0", "off"}


def parse_interval(value: str | int | None) -> int | None:
    """Parse an auto-sync interval setting.

    Args:
        value: Minutes, or "off" / "0" / empty / None to disable.

    Returns:
        Interval in minutes, or None when auto-sync is disabled.

    Raises:
        ValueError: If the value is not one of the allowed intervals.
    """
    if value is None:
        return None
    text = str(value).strip().lower()
    if text in _DISABLED_VALUES:
        return None
    try:
        minutes = int(text)
    except ValueError:
        raise ValueError(f"Invalid auto-sync interval: {value!r}") from None
    if minutes not in ALLOWED_INTERVALS:
        allowed = ", ".join(str(m) for m in ALLOWED_INTERVALS)
        raise ValueError(f"Auto-sync interval must be one of {allowed} minutes or off, got {value!r}")
    return minutes


class AutoSyncScheduler:
    """Runs a push on a fixed interval.

    At most one job exists at a time: configuring a new interval replaces
    the previous one, and a tick that finds a sync already running is
    skipped.
    """

    def __init__(self, engine: SyncEngine) -> None:
        """Initialize the scheduler.

        Args:
            engine: Sync engine whose push is triggered.
        """
        self._engine = engine
        self._scheduler = BackgroundScheduler()
        self._interval: int | None = None

    @property
    def interval(self) -> int | None:
        """Current interval in minutes, or None when disabled."""
        return self._interval

    @property
    def running(self) -> bool:
        return bool(self._scheduler.running)

    def _push_job(self) -> None:
        """Job function for scheduled push."""
        logger.info("Starting scheduled push")
        try:
            result = self._engine.push(blocking=False)
        except SyncInProgressError:
            logger.debug("Sync already running, skipping scheduled push")
            return
        except Exception as e:
            logger.warning("Scheduled push failed: %s", e, exc_info=True)
            return
        logger.info(
            "Scheduled push completed: %d rows pushed, %d remote rows deleted",
            result.rows_pushed,
            result.rows_deleted,
        )

    def configure(self, value: str | int | None) -> int | None:
        """Apply an interval setting, replacing any existing job.

        An invalid value disables auto-sync.

        Returns:
            The interval now in effect, or None when disabled.
        """
        try:
            minutes = parse_interval(value)
        except ValueError as e:
            logger.warning("%s; auto-sync disabled", e)
            minutes = None

        if self._scheduler.get_job(AUTO_PUSH_JOB_ID) is not None:
            self._scheduler.remove_job(AUTO_PUSH_JOB_ID)

        self._interval = minutes
        if minutes is None:
            logger.info("Auto-sync disabled")
            return None

        self._scheduler.add_job(
            self._push_job,
            trigger=IntervalTrigger(minutes=minutes),
            id=AUTO_PUSH_JOB_ID,
            name=f"Auto push every {minutes} min",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.info("Auto-sync enabled (every %d min)", minutes)
        return minutes

    def start(self, interval: str | int | None = None) -> int | None:
        """Start the scheduler.

        Args:
            interval: Interval to use instead of the one stored in local settings.

        Returns:
            The interval in effect, or None when disabled.
        """
        if interval is None:
            interval = self._engine.store.get_setting(SETTING_AUTO_INTERVAL)
        minutes = self.configure(interval)
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("Auto-sync scheduler started")
        return minutes

    def stop(self) -> None:
        """Stop the scheduler."""
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Auto-sync scheduler stopped")

    def run_now(self) -> None:
        """Run the scheduled push immediately (manual trigger)."""
        self._push_job()

