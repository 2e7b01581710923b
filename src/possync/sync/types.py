"""Shared types and dataclasses for sync operations.

This module provides:
- SyncError and subclasses: Exception classes for the reconciler
- TableIssue: A tolerated, table-scoped problem recorded in a result
- SyncProgress: Progress tracking dataclass
- AssetPushResult, PushResult, PullResult, FullSyncResult: Operation results
- ImageSyncDiagnostics: Read-only asset troubleshooting report
- Type aliases for callbacks
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from possync.core.types import SyncPhase


class SyncError(Exception):
    """Base exception for sync errors."""


class TableSyncError(SyncError):
    """A fetch, upsert, delete or insert failed for one table.

    Attributes:
        table: Name of the table being processed.
        operation: What was being done ("push", "pull", "delete orphans").
    """

    def __init__(self, table: str, operation: str, detail: str) -> None:
        self.table = table
        self.operation = operation
        self.detail = detail
        super().__init__(f"{operation.capitalize()} failed at table \"{table}\": {detail}")


class BucketError(SyncError):
    """The storage bucket is missing and could not be created."""


class AssetUploadError(SyncError):
    """Failed to upload an asset."""

    def __init__(self, filename: str, detail: str) -> None:
        self.filename = filename
        super().__init__(f"Image upload failed: {filename} - {detail}")


class ConnectionTestError(SyncError):
    """Connectivity check failed.

    Attributes:
        component: "database" or "storage".
    """

    def __init__(self, component: str, detail: str) -> None:
        self.component = component
        super().__init__(f"{component.capitalize()}: {detail}")


class SyncCancelledError(SyncError):
    """The operation was cancelled by the caller."""


class SyncInProgressError(SyncError):
    """Another sync is already running."""


@dataclass
class TableIssue:
    """A tolerated problem scoped to one table."""

    table: str
    message: str


@dataclass
class SyncProgress:
    """Progress information for sync operations."""

    table: str
    index: int
    total: int
    phase: SyncPhase | None = None

    @property
    def percent(self) -> float:
        """Get progress percentage."""
        if self.total == 0:
            return 100.0
        return (self.index / self.total) * 100


# Type alias for progress callback
ProgressCallback = Callable[[SyncProgress], None]

# Returns True when the caller asked to stop
CancelCheck = Callable[[], bool]


@dataclass
class AssetPushResult:
    """Result of pushing assets to the bucket."""

    uploaded: int = 0
    skipped: int = 0
    total_referenced: int = 0


@dataclass
class PushResult:
    """Result of a push operation."""

    rows_pushed: int = 0
    rows_deleted: int = 0
    images: AssetPushResult | None = None
    images_deleted: int = 0
    warnings: list[TableIssue] = field(default_factory=list)
    last_sync: str | None = None


@dataclass
class PullResult:
    """Result of a pull operation."""

    rows_pulled: int = 0
    images_downloaded: int = 0
    warnings: list[TableIssue] = field(default_factory=list)
    last_sync: str | None = None


@dataclass
class ImageSyncDiagnostics:
    """Read-only report used to troubleshoot asset sync.

    Attributes:
        asset_dir: Configured asset directory (or None).
        asset_dir_exists: Whether the directory exists.
        files_in_asset_dir: Names of files actually present locally.
        rows_with_images: Number of rows with a non-empty image reference.
        image_paths: Raw image references from those rows.
        matching_files: Referenced filenames present locally.
    """

    asset_dir: str | None
    asset_dir_exists: bool = False
    files_in_asset_dir: list[str] = field(default_factory=list)
    rows_with_images: int = 0
    image_paths: list[str] = field(default_factory=list)
    matching_files: list[str] = field(default_factory=list)


@dataclass
class FullSyncResult:
    """Result of a full sync (push then pull).

    Attributes:
        push: Push result, or None when the push was skipped because the
            local store had no anchor rows.
        pull: Pull result.
    """

    push: PushResult | None
    pull: PullResult
