"""Pull remote rows and assets into the local database.

This module provides:
- PullReconciler: Makes the local database mirror the remote store

Tables are replaced wholesale in dependency order while foreign-key
enforcement is suspended, so an intermediate state never trips a
constraint. The settings table is merged by key instead, and its
protected credential keys are never overwritten.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import TYPE_CHECKING

import httpx

from possync.client.api import APIError
from possync.core.types import SyncPhase
from possync.sync.tables import SYNC_TABLES, KeyedSyncTable, SyncTable
from possync.sync.transcode import to_local
from possync.sync.types import (
    CancelCheck,
    ProgressCallback,
    PullResult,
    SyncCancelledError,
    SyncProgress,
    TableSyncError,
)

if TYPE_CHECKING:
    from possync.client.api import RemoteClient
    from possync.client.store import LocalStore
    from possync.sync.assets import AssetSyncer

logger = logging.getLogger(__name__)

_TABLE_ERRORS = (APIError, httpx.HTTPError, sqlite3.Error)


class PullReconciler:
    """Reconciles the local database to match the remote store."""

    def __init__(
        self,
        client: RemoteClient,
        store: LocalStore,
        assets: AssetSyncer,
        progress_callback: ProgressCallback | None = None,
        cancel_check: CancelCheck | None = None,
        tables: tuple[SyncTable, ...] = SYNC_TABLES,
    ) -> None:
        self._client = client
        self._store = store
        self._assets = assets
        self._progress_callback = progress_callback
        self._cancel_check = cancel_check or (lambda: False)
        self._tables = tables

    def pull(self, asset_dir: Path | None = None) -> PullResult:
        """Make the local database mirror the remote store.

        A remote table with no rows leaves the local table untouched.

        Args:
            asset_dir: Local asset directory; assets are skipped when None.

        Returns:
            PullResult with row and download counts.

        Raises:
            TableSyncError: If fetching or writing a table failed.
            SyncCancelledError: If cancellation was requested.
        """
        result = PullResult()
        total = len(self._tables)

        with self._store.foreign_keys_disabled():
            for index, table in enumerate(self._tables, start=1):
                if self._cancel_check():
                    raise SyncCancelledError(f"Pull cancelled before table {table.name}")
                if self._progress_callback:
                    self._progress_callback(SyncProgress(table.name, index, total, SyncPhase.PULL))
                result.rows_pulled += self._pull_table(table)

        if asset_dir is not None:
            result.images_downloaded = self._assets.pull_assets(
                self._client,
                asset_dir,
                self._assets.referenced_paths(self._store),
                self._cancel_check,
            )

        result.last_sync = self._store.set_last_sync()
        logger.info(f"Pull complete: {result.rows_pulled} rows pulled")
        return result

    def _pull_table(self, table: SyncTable) -> int:
        try:
            rows = self._client.select_rows(table.name, order_by=table.identity)

            if isinstance(table, KeyedSyncTable):
                rows = [row for row in rows if not table.is_protected(row)]
                if not rows:
                    logger.debug(f"No rows to pull for {table.name}")
                    return 0
                local_rows = [to_local(table.strip_excluded(row), table) for row in rows]
                written = self._store.upsert_rows(table.name, table.identity, local_rows)
            else:
                if not rows:
                    logger.debug(f"No rows to pull for {table.name}")
                    return 0
                written = self._store.replace_rows(
                    table.name, [to_local(row, table) for row in rows]
                )
        except _TABLE_ERRORS as e:
            raise TableSyncError(table.name, "pull", str(e)) from e

        logger.debug(f"Pulled {written} rows into {table.name}")
        return written
