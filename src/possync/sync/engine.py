"""Sync engine coordinating push, pull and full sync.

This module provides:
- SyncEngine: The operations exposed to the surrounding application

The engine owns everything that used to be process-wide state: the
remote client (injected or built from resolved credentials), the asset
syncer with its bucket-verified flag, the single-flight lock and the
cancellation flag.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

import httpx

from possync.client.api import APIError, RemoteClient
from possync.core.config import (
    CredentialSource,
    default_sources,
    resolve_remote_config,
)
from possync.sync.assets import AssetSyncer
from possync.sync.pull import PullReconciler
from possync.sync.push import PushReconciler
from possync.sync.tables import ANCHOR_TABLES, SYNC_TABLES, SyncTable
from possync.sync.types import (
    BucketError,
    ConnectionTestError,
    FullSyncResult,
    ImageSyncDiagnostics,
    ProgressCallback,
    PullResult,
    PushResult,
    SyncInProgressError,
)

if TYPE_CHECKING:
    from possync.client.store import LocalStore

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

# Table used for the connectivity probe
PROBE_TABLE = "categories"


class SyncEngine:
    """Coordinates synchronization between the local store and the remote store.

    push, pull and full_sync are single-flight: a second call waits for
    the running one, or raises SyncInProgressError when called with
    ``blocking=False``.
    """

    def __init__(
        self,
        store: LocalStore,
        asset_dir: Path | None = None,
        client: RemoteClient | None = None,
        sources: list[CredentialSource] | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        assets: AssetSyncer | None = None,
        tables: tuple[SyncTable, ...] = SYNC_TABLES,
    ) -> None:
        """Initialize the sync engine.

        Args:
            store: Local database.
            asset_dir: Directory holding image assets (None disables asset sync).
            client: Remote client to use. When None, credentials are resolved
                from sources on every operation and a client is built for it.
            sources: Credential sources in priority order (default: local
                settings, then embedded defaults).
            timeout: Per-request timeout for resolved clients.
            assets: Asset syncer (default: one for the standard bucket).
            tables: Sync plan.
        """
        self._store = store
        self._asset_dir = Path(asset_dir) if asset_dir else None
        self._client = client
        self._sources = sources
        self._timeout = timeout
        self._assets = assets or AssetSyncer(tables=tables)
        self._tables = tables
        self._lock = threading.Lock()
        self._cancelled = threading.Event()

    @property
    def store(self) -> LocalStore:
        return self._store

    @property
    def asset_dir(self) -> Path | None:
        return self._asset_dir

    @property
    def is_running(self) -> bool:
        """Whether a push, pull or full sync is in progress."""
        return self._lock.locked()

    def cancel(self) -> None:
        """Ask the running operation to stop at the next table or asset."""
        if self.is_running:
            logger.info("Cancellation requested")
        self._cancelled.set()

    # === Plumbing ===

    @contextmanager
    def _exclusive(self, blocking: bool) -> Iterator[None]:
        if not self._lock.acquire(blocking=blocking):
            raise SyncInProgressError("A sync is already running")
        try:
            self._cancelled.clear()
            yield
        finally:
            self._lock.release()

    @contextmanager
    def _connect(self) -> Iterator[RemoteClient]:
        """Yield the injected client, or one built from resolved credentials.

        Raises:
            ConfigurationError: If no credential source is configured.
        """
        if self._client is not None:
            yield self._client
            return

        sources = self._sources if self._sources is not None else default_sources(self._store)
        config = resolve_remote_config(sources, timeout=self._timeout)
        with RemoteClient(config) as client:
            yield client

    def _push(self, client: RemoteClient, progress_callback: ProgressCallback | None) -> PushResult:
        reconciler = PushReconciler(
            client,
            self._store,
            self._assets,
            progress_callback=progress_callback,
            cancel_check=self._cancelled.is_set,
            tables=self._tables,
        )
        return reconciler.push(self._asset_dir)

    def _pull(self, client: RemoteClient, progress_callback: ProgressCallback | None) -> PullResult:
        reconciler = PullReconciler(
            client,
            self._store,
            self._assets,
            progress_callback=progress_callback,
            cancel_check=self._cancelled.is_set,
            tables=self._tables,
        )
        return reconciler.pull(self._asset_dir)

    # === Operations ===

    def push(
        self,
        progress_callback: ProgressCallback | None = None,
        blocking: bool = True,
    ) -> PushResult:
        """Make the remote store mirror the local database.

        Raises:
            ConfigurationError: If credentials are missing.
            SyncError: If the push failed (see PushReconciler.push).
            SyncInProgressError: If blocking is False and a sync is running.
        """
        with self._exclusive(blocking), self._connect() as client:
            logger.info("Starting push")
            return self._push(client, progress_callback)

    def pull(
        self,
        progress_callback: ProgressCallback | None = None,
        blocking: bool = True,
    ) -> PullResult:
        """Make the local database mirror the remote store.

        Raises:
            ConfigurationError: If credentials are missing.
            SyncError: If the pull failed (see PullReconciler.pull).
            SyncInProgressError: If blocking is False and a sync is running.
        """
        with self._exclusive(blocking), self._connect() as client:
            logger.info("Starting pull")
            return self._pull(client, progress_callback)

    def full_sync(
        self,
        progress_callback: ProgressCallback | None = None,
        blocking: bool = True,
    ) -> FullSyncResult:
        """Push then pull.

        When the local store has no rows in any anchor table (a fresh
        install), the push is skipped so an empty client never wipes the
        remote data.

        Returns:
            FullSyncResult with both phase results.
        """
        with self._exclusive(blocking), self._connect() as client:
            anchor_rows = sum(self._store.count_rows(name) for name in ANCHOR_TABLES)
            push_result: PushResult | None = None
            if anchor_rows == 0:
                logger.info("Local store has no anchor rows, skipping push")
            else:
                logger.info("Starting full sync: push")
                push_result = self._push(client, progress_callback)
            logger.info("Starting full sync: pull")
            pull_result = self._pull(client, progress_callback)
        return FullSyncResult(push=push_result, pull=pull_result)

    def test_connection(self) -> None:
        """Check that the data endpoint and the storage bucket are reachable.

        Raises:
            ConfigurationError: If credentials are missing.
            ConnectionTestError: Naming the component that failed.
        """
        with self._connect() as client:
            try:
                client.probe(PROBE_TABLE)
            except (APIError, httpx.HTTPError) as e:
                raise ConnectionTestError("database", str(e)) from e

            try:
                self._assets.ensure_bucket(client)
            except BucketError as e:
                raise ConnectionTestError("storage", str(e)) from e
        logger.info("Connection test passed")

    def get_last_sync(self) -> str | None:
        """Timestamp of the last successful push or pull, or None."""
        return self._store.get_last_sync()

    def get_image_sync_diagnostics(self) -> ImageSyncDiagnostics:
        """Read-only report of image references versus local files."""
        return self._assets.diagnostics(self._store, self._asset_dir)
