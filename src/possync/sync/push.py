"""Push local rows and assets to the remote store.

This module provides:
- PushReconciler: Makes the remote mirror the local database

A push runs in phases:
1. Verify the storage bucket (when an asset directory is configured)
2. Upsert every local row, table by table in dependency order
3. Delete remote rows absent locally, in reverse dependency order
4. Upload referenced assets and remove unreferenced ones
5. Record the last-sync timestamp
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import TYPE_CHECKING

import httpx

from possync.client.api import APIError, is_permission_error
from possync.core.types import SyncPhase
from possync.sync.tables import SYNC_TABLES, SyncTable, deletion_order
from possync.sync.transcode import to_remote
from possync.sync.types import (
    CancelCheck,
    ProgressCallback,
    PushResult,
    SyncCancelledError,
    SyncProgress,
    TableIssue,
    TableSyncError,
)

if TYPE_CHECKING:
    from possync.client.api import RemoteClient
    from possync.client.store import LocalStore
    from possync.sync.assets import AssetSyncer

logger = logging.getLogger(__name__)

_TABLE_ERRORS = (APIError, httpx.HTTPError, sqlite3.Error)


class PushReconciler:
    """Reconciles the remote store to match the local database."""

    def __init__(
        self,
        client: RemoteClient,
        store: LocalStore,
        assets: AssetSyncer,
        progress_callback: ProgressCallback | None = None,
        cancel_check: CancelCheck | None = None,
        tables: tuple[SyncTable, ...] = SYNC_TABLES,
    ) -> None:
        """Initialize the reconciler.

        Args:
            client: Remote store client.
            store: Local database.
            assets: Asset syncer (holds the bucket-verified flag).
            progress_callback: Optional callback, called once per table per phase.
            cancel_check: Optional callable returning True to stop between tables.
            tables: Tables to push, in dependency order.
        """
        self._client = client
        self._store = store
        self._assets = assets
        self._progress_callback = progress_callback
        self._cancel_check = cancel_check or (lambda: False)
        self._tables = tables

    def push(self, asset_dir: Path | None = None) -> PushResult:
        """Make the remote store mirror the local database.

        Args:
            asset_dir: Local asset directory; assets are skipped when None.

        Returns:
            PushResult with row counts, asset counts and tolerated issues.

        Raises:
            TableSyncError: If an upsert or a non-permission deletion failed.
            BucketError: If the storage bucket could not be ensured.
            AssetUploadError: If an asset upload failed.
            SyncCancelledError: If cancellation was requested.
        """
        result = PushResult()
        total = len(self._tables) * 2

        if asset_dir is not None:
            self._assets.ensure_bucket(self._client)

        for index, table in enumerate(self._tables, start=1):
            self._checkpoint(table.name, index, total)
            result.rows_pushed += self._upsert_table(table, result.warnings)

        for index, table in enumerate(deletion_order(self._tables), start=len(self._tables) + 1):
            self._checkpoint(table.name, index, total)
            try:
                result.rows_deleted += self._delete_orphans(table)
            except (APIError, httpx.HTTPError) as e:
                if not is_permission_error(e):
                    raise TableSyncError(table.name, "delete orphans", str(e)) from e
                logger.warning(f"Skipping orphan deletion for {table.name}: {e}")
                result.warnings.append(TableIssue(table.name, f"Orphan deletion denied: {e}"))

        if asset_dir is not None:
            result.images = self._assets.push_assets(
                self._client, self._store, asset_dir, self._cancel_check
            )
            result.images_deleted = self._assets.delete_orphaned_assets(self._client, self._store)

        result.last_sync = self._store.set_last_sync()
        logger.info(
            f"Push complete: {result.rows_pushed} rows pushed, "
            f"{result.rows_deleted} remote rows deleted"
        )
        return result

    def _checkpoint(self, table: str, index: int, total: int) -> None:
        if self._cancel_check():
            raise SyncCancelledError(f"Push cancelled before table {table}")
        if self._progress_callback:
            self._progress_callback(SyncProgress(table, index, total, SyncPhase.PUSH))

    def _upsert_table(self, table: SyncTable, warnings: list[TableIssue]) -> int:
        try:
            rows = self._store.fetch_rows(table.name)
            if not rows:
                return 0

            payload = [
                to_remote(table.strip_excluded(row), table)
                for row in rows
                if row.get(table.identity) is not None
            ]
            skipped = len(rows) - len(payload)
            if skipped:
                logger.warning(f"Skipping {skipped} rows without {table.identity} in {table.name}")
                warnings.append(TableIssue(table.name, f"{skipped} rows without {table.identity} skipped"))
            if not payload:
                return 0

            sent = self._client.upsert_rows(table.name, payload, on_conflict=table.identity)
        except _TABLE_ERRORS as e:
            raise TableSyncError(table.name, "push", str(e)) from e

        logger.debug(f"Pushed {sent} rows to {table.name}")
        return sent

    def _delete_orphans(self, table: SyncTable) -> int:
        """Delete remote rows whose identity no longer exists locally.

        An empty local table means every remote row is an orphan.
        """
        try:
            local = set(self._store.fetch_identities(table.name, table.identity))
        except sqlite3.Error as e:
            raise TableSyncError(table.name, "delete orphans", str(e)) from e

        remote = self._client.select_identities(table.name, table.identity)
        orphans = [value for value in remote if value not in local]
        if not orphans:
            return 0

        deleted = self._client.delete_rows_in(table.name, table.identity, orphans)
        logger.info(f"Deleted {deleted} orphaned rows from {table.name}")
        return deleted
