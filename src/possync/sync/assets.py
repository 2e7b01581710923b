"""Image asset synchronization with the storage bucket.

This module provides:
- AssetSyncer: bucket verification, upload on push, download-if-missing
  on pull, and removal of objects no longer referenced
- image_filename / content_type_for: helpers for asset references

Assets are identified by filename. Rows reference them through an
image column (``media://name.jpg``, an absolute path, or a bare name);
the reference is reduced to its base filename and deduplicated, so an
asset shared by several rows is transferred once.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING

import httpx

from possync.client.api import APIError, ConflictError, NotFoundError, is_permission_error
from possync.sync.tables import SYNC_TABLES, SyncTable, asset_tables
from possync.sync.types import (
    AssetPushResult,
    AssetUploadError,
    BucketError,
    CancelCheck,
    ImageSyncDiagnostics,
    SyncCancelledError,
)

if TYPE_CHECKING:
    from possync.client.api import RemoteClient
    from possync.client.store import LocalStore

logger = logging.getLogger(__name__)

STORAGE_BUCKET = "menu-images"

_PROTOCOL_PREFIXES = ("media://", "file://")

_CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}

# Errors that mean "this transfer didn't happen"
TRANSFER_ERRORS = (APIError, httpx.HTTPError)


def image_filename(image_path: str | None) -> str | None:
    """Extract the asset filename from an image reference.

    Handles ``media://`` and ``file://`` URLs, POSIX and Windows paths,
    and plain filenames.

    Returns:
        The base filename, or None for an empty reference.
    """
    if not image_path or not isinstance(image_path, str):
        return None
    trimmed = image_path.strip()
    for prefix in _PROTOCOL_PREFIXES:
        if trimmed.startswith(prefix):
            trimmed = trimmed[len(prefix):]
            break
    filename = trimmed.replace("\\", "/").rstrip("/").rsplit("/", 1)[-1]
    return filename or None


def content_type_for(filename: str) -> str:
    """Return the content type for an image filename."""
    return _CONTENT_TYPES.get(Path(filename).suffix.lower(), "application/octet-stream")


def _never_cancelled() -> bool:
    return False


class AssetSyncer:
    """Synchronizes referenced image files with a storage bucket.

    Holds the bucket-verified flag for the lifetime of the syncer so
    repeated syncs skip the existence check.
    """

    def __init__(
        self,
        bucket: str = STORAGE_BUCKET,
        tables: tuple[SyncTable, ...] = SYNC_TABLES,
    ) -> None:
        self._bucket = bucket
        self._tables = asset_tables(tables)
        self._bucket_verified = False

    @property
    def bucket_verified(self) -> bool:
        """Whether the bucket has been confirmed usable in this process."""
        return self._bucket_verified

    # === References ===

    def referenced_paths(self, store: LocalStore) -> list[str]:
        """Read every non-blank image reference from the local rows."""
        paths: list[str] = []
        for table in self._tables:
            if table.asset_column:
                paths.extend(store.fetch_non_blank(table.name, table.asset_column))
        return paths

    def referenced_filenames(self, store: LocalStore) -> set[str]:
        """Distinct asset filenames referenced by the local rows."""
        return {name for name in map(image_filename, self.referenced_paths(store)) if name}

    # === Bucket ===

    def ensure_bucket(self, client: RemoteClient) -> None:
        """Make sure the bucket exists, creating it as private if needed.

        An "already exists" answer and a permission rejection are both
        accepted: a restricted key usually can't create buckets but can
        still use one that was created from the dashboard.

        Raises:
            BucketError: If creation failed for any other reason.
        """
        if self._bucket_verified:
            return

        try:
            client.get_bucket(self._bucket)
            self._bucket_verified = True
            return
        except TRANSFER_ERRORS as e:
            logger.debug(f"Bucket lookup for {self._bucket} failed ({e}), trying to create it")

        try:
            client.create_bucket(self._bucket, public=False)
        except httpx.HTTPError as e:
            raise BucketError(f'Storage bucket "{self._bucket}" is unreachable: {e}') from e
        except ConflictError:
            logger.debug(f"Bucket {self._bucket} already exists")
        except APIError as e:
            if not is_permission_error(e):
                raise BucketError(
                    f'Storage bucket "{self._bucket}" could not be created: {e}. '
                    f"Create it manually in the storage dashboard with the name {self._bucket}."
                ) from e
            logger.warning(
                f'Bucket "{self._bucket}" could not be created ({e}). '
                "Make sure it exists in the storage dashboard."
            )
        else:
            logger.info(f"Created storage bucket {self._bucket}")
        self._bucket_verified = True

    # === Push ===

    def push_assets(
        self,
        client: RemoteClient,
        store: LocalStore,
        asset_dir: Path,
        cancel_check: CancelCheck = _never_cancelled,
    ) -> AssetPushResult:
        """Upload every referenced asset present in the asset directory.

        Missing local files are skipped. Any upload failure is fatal.

        Raises:
            AssetUploadError: If reading or uploading a file failed.
            SyncCancelledError: If cancellation was requested.
        """
        asset_dir = Path(asset_dir)
        if not asset_dir.exists():
            logger.warning(f"Asset directory does not exist, skipping image upload: {asset_dir}")
            return AssetPushResult()

        filenames = sorted(self.referenced_filenames(store))
        if not filenames:
            logger.info("No rows reference images")
            return AssetPushResult()

        result = AssetPushResult(total_referenced=len(filenames))
        for filename in filenames:
            if cancel_check():
                raise SyncCancelledError("Push cancelled during image upload")

            local_path = asset_dir / filename
            if not local_path.exists():
                logger.warning(f"File not found locally, skipping: {filename}")
                result.skipped += 1
                continue

            try:
                data = local_path.read_bytes()
                client.upload_object(self._bucket, filename, data, content_type_for(filename))
            except (OSError, *TRANSFER_ERRORS) as e:
                logger.error(f"Failed to upload {filename}: {e}")
                raise AssetUploadError(filename, str(e)) from e
            logger.debug(f"Uploaded {filename} ({len(data)} bytes)")
            result.uploaded += 1

        logger.info(
            f"Images: {result.uploaded} uploaded, {result.skipped} missing locally, "
            f"{result.total_referenced} referenced"
        )
        return result

    def delete_orphaned_assets(self, client: RemoteClient, store: LocalStore) -> int:
        """Remove bucket objects no longer referenced by any local row.

        Best effort: listing or removal failures are logged and reported
        as zero deletions.

        Returns:
            Number of objects removed.
        """
        keep = self.referenced_filenames(store)
        try:
            objects = client.list_objects(self._bucket)
        except TRANSFER_ERRORS as e:
            logger.warning(f"Could not list images in {self._bucket}: {e}")
            return 0

        orphans = [obj.name for obj in objects if obj.name not in keep]
        if not orphans:
            return 0

        try:
            client.remove_objects(self._bucket, orphans)
        except TRANSFER_ERRORS as e:
            logger.warning(f"Could not delete orphaned images: {e}")
            return 0

        logger.info(f"Deleted {len(orphans)} orphaned images from {self._bucket}")
        return len(orphans)

    # === Pull ===

    def pull_assets(
        self,
        client: RemoteClient,
        asset_dir: Path,
        referenced_paths: list[str],
        cancel_check: CancelCheck = _never_cancelled,
    ) -> int:
        """Download referenced assets that are not present locally.

        Files already present are never downloaded again. A missing
        remote object or a failed download is logged and skipped.

        Returns:
            Number of files downloaded.

        Raises:
            SyncCancelledError: If cancellation was requested.
        """
        asset_dir = Path(asset_dir)
        if not asset_dir.exists():
            logger.warning(f"Asset directory does not exist, skipping image download: {asset_dir}")
            return 0

        filenames = sorted({name for name in map(image_filename, referenced_paths) if name})
        downloaded = 0
        for filename in filenames:
            if cancel_check():
                raise SyncCancelledError("Pull cancelled during image download")

            local_path = asset_dir / filename
            if local_path.exists():
                continue

            try:
                data = client.download_object(self._bucket, filename)
            except NotFoundError:
                logger.info(f"Image {filename} is not in storage, skipping")
                continue
            except TRANSFER_ERRORS as e:
                logger.warning(f"Could not download {filename}: {e}")
                continue

            partial = local_path.with_name(f".{filename}.part")
            try:
                partial.write_bytes(data)
                os.replace(partial, local_path)
            except OSError as e:
                logger.warning(f"Could not write {filename}: {e}")
                partial.unlink(missing_ok=True)
                continue
            downloaded += 1

        if downloaded:
            logger.info(f"Downloaded {downloaded} images")
        return downloaded

    # === Diagnostics ===

    def diagnostics(self, store: LocalStore, asset_dir: Path | None) -> ImageSyncDiagnostics:
        """Build a read-only report of asset references versus local files."""
        report = ImageSyncDiagnostics(asset_dir=str(asset_dir) if asset_dir else None)
        if not asset_dir:
            return report

        asset_dir = Path(asset_dir)
        report.asset_dir_exists = asset_dir.is_dir()
        paths = self.referenced_paths(store)
        report.rows_with_images = len(paths)
        report.image_paths = paths

        if report.asset_dir_exists:
            report.files_in_asset_dir = sorted(p.name for p in asset_dir.iterdir())
            filenames = sorted({name for name in map(image_filename, paths) if name})
            report.matching_files = [f for f in filenames if (asset_dir / f).exists()]
        return report
