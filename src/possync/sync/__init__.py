"""Sync operations between the local store and the remote store.

Architecture:
    SyncEngine → PushReconciler / PullReconciler → RemoteClient + LocalStore

Components:
- **SyncEngine**: Exposed operations, single-flight lock, cancellation
- **PushReconciler**: Upserts local rows, deletes remote orphans, pushes assets
- **PullReconciler**: Replaces local tables from the remote, pulls missing assets
- **AssetSyncer**: Bucket verification and image transfer
- **AutoSyncScheduler**: Periodic push
- **SYNC_TABLES**: The table plan, in dependency order
"""

from possync.sync.assets import STORAGE_BUCKET, AssetSyncer, content_type_for, image_filename
from possync.sync.engine import SyncEngine
from possync.sync.pull import PullReconciler
from possync.sync.push import PushReconciler
from possync.sync.scheduler import ALLOWED_INTERVALS, AutoSyncScheduler, parse_interval
from possync.sync.tables import (
    ANCHOR_TABLES,
    SETTINGS_TABLE,
    SYNC_TABLES,
    ForeignKey,
    KeyedSyncTable,
    SyncTable,
    deletion_order,
    get_table,
)
from possync.sync.transcode import to_local, to_remote
from possync.sync.types import (
    AssetPushResult,
    AssetUploadError,
    BucketError,
    ConnectionTestError,
    FullSyncResult,
    ImageSyncDiagnostics,
    ProgressCallback,
    PullResult,
    PushResult,
    SyncCancelledError,
    SyncError,
    SyncInProgressError,
    SyncProgress,
    TableIssue,
    TableSyncError,
)

__all__ = [
    # Engine
    "SyncEngine",
    "PullReconciler",
    "PushReconciler",
    # Assets
    "STORAGE_BUCKET",
    "AssetSyncer",
    "content_type_for",
    "image_filename",
    # Scheduler
    "ALLOWED_INTERVALS",
    "AutoSyncScheduler",
    "parse_interval",
    # Table plan
    "ANCHOR_TABLES",
    "SETTINGS_TABLE",
    "SYNC_TABLES",
    "ForeignKey",
    "KeyedSyncTable",
    "SyncTable",
    "deletion_order",
    "get_table",
    # Transcoding
    "to_local",
    "to_remote",
    # Types
    "AssetPushResult",
    "AssetUploadError",
    "BucketError",
    "ConnectionTestError",
    "FullSyncResult",
    "ImageSyncDiagnostics",
    "ProgressCallback",
    "PullResult",
    "PushResult",
    "SyncCancelledError",
    "SyncError",
    "SyncInProgressError",
    "SyncProgress",
    "TableIssue",
    "TableSyncError",
]
