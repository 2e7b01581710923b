"""HTTP client for the remote store.

This module provides:
- RemoteClient: HTTP client for the remote relational REST endpoint and
  its object storage endpoint
- Row operations (select, upsert, delete by identity)
- Bucket and object operations (exists, create, upload, download, list, remove)
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx

if TYPE_CHECKING:
    from possync.core.config import RemoteConfig

logger = logging.getLogger(__name__)

# Rows per request when reading or writing tables
DEFAULT_PAGE_SIZE = 1000
UPSERT_BATCH_SIZE = 500
DELETE_BATCH_SIZE = 200

# PostgreSQL "insufficient_privilege"
PERMISSION_DENIED_CODE = "42501"

_PERMISSION_MESSAGE = re.compile(r"row-level security|\bRLS\b|permission|policy", re.IGNORECASE)
_EXISTS_MESSAGE = re.compile(r"already exists?|duplicate", re.IGNORECASE)


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class AuthenticationError(APIError):
    """Authentication failed."""


class PermissionDeniedError(APIError):
    """Request rejected by a permission or row-level security policy."""


class ConflictError(APIError):
    """Resource already exists."""


class NotFoundError(APIError):
    """Resource not found."""


def is_permission_error(error: BaseException) -> bool:
    """Check whether an error is a permission / row-level security rejection."""
    if isinstance(error, PermissionDeniedError):
        return True
    return bool(_PERMISSION_MESSAGE.search(str(error)))


@dataclass
class StoredObject:
    """Object metadata from the storage listing."""

    name: str
    size: int | None = None
    content_type: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StoredObject:
        """Create from API response dictionary."""
        metadata = data.get("metadata") or {}
        return cls(
            name=data["name"],
            size=metadata.get("size"),
            content_type=metadata.get("mimetype"),
        )


def _format_filter_value(value: Any) -> str:
    """Format a value for a PostgREST ``in.(...)`` filter."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    text = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{text}"'


def in_filter(values: list[Any]) -> str:
    """Build a PostgREST ``in`` filter expression."""
    return f"in.({','.join(_format_filter_value(v) for v in values)})"


def _chunks(items: list[Any], size: int) -> list[list[Any]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


class RemoteClient:
    """HTTP client for the remote relational store and object storage."""

    def __init__(
        self,
        config: RemoteConfig,
        page_size: int = DEFAULT_PAGE_SIZE,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the remote client.

        Args:
            config: Remote URL, service key and timeout.
            page_size: Rows or objects fetched per request when listing.
            transport: Optional httpx transport (for tests).
        """
        self._config = config
        self._page_size = page_size
        self._client = httpx.Client(
            base_url=config.url,
            timeout=config.timeout,
            headers={
                "apikey": config.secret,
                "Authorization": f"Bearer {config.secret}",
            },
            transport=transport,
        )

    @property
    def config(self) -> RemoteConfig:
        """Connection configuration."""
        return self._config

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> RemoteClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        """Handle API response and raise appropriate exceptions.

        The storage service sometimes answers 400 with the real status in
        the body (``statusCode``), so both are considered.
        """
        if response.status_code < 400:
            return response

        body: dict[str, Any] = {}
        try:
            parsed = response.json()
            if isinstance(parsed, dict):
                body = parsed
        except ValueError:
            pass

        message = str(
            body.get("message") or body.get("error") or body.get("detail")
            or response.text or "Unknown error"
        )
        code = body.get("code")
        code = str(code) if code is not None else None
        try:
            status = int(body.get("statusCode", response.status_code))
        except (TypeError, ValueError):
            status = response.status_code

        if code == PERMISSION_DENIED_CODE or status == 403 or _PERMISSION_MESSAGE.search(message):
            raise PermissionDeniedError(message, response.status_code, code)
        if status == 401:
            raise AuthenticationError(message or "Invalid service key", 401, code)
        if status == 404:
            raise NotFoundError(message, 404, code)
        if status == 409 or _EXISTS_MESSAGE.search(message):
            raise ConflictError(message, response.status_code, code)
        raise APIError(message, response.status_code, code)

    # === Row operations ===

    def _table_path(self, table: str) -> str:
        return f"/rest/v1/{quote(table)}"

    def select_rows(
        self,
        table: str,
        columns: str = "*",
        order_by: str | None = None,
    ) -> list[dict[str, Any]]:
        """Fetch every row of a table, page by page.

        Args:
            table: Table name.
            columns: PostgREST select expression.
            order_by: Column giving a stable page order.

        Returns:
            List of rows.
        """
        rows: list[dict[str, Any]] = []
        offset = 0
        while True:
            params: dict[str, str] = {
                "select": columns,
                "limit": str(self._page_size),
                "offset": str(offset),
            }
            if order_by:
                params["order"] = f"{order_by}.asc"
            response = self._handle_response(
                self._client.get(self._table_path(table), params=params)
            )
            page = response.json()
            rows.extend(page)
            if len(page) < self._page_size:
                return rows
            offset += len(page)

    def select_identities(self, table: str, column: str) -> list[Any]:
        """Fetch the values of one column for every row."""
        rows = self.select_rows(table, columns=column, order_by=column)
        return [row[column] for row in rows if row.get(column) is not None]

    def probe(self, table: str) -> None:
        """Issue a trivial one-row read to check the data endpoint."""
        self._handle_response(
            self._client.get(self._table_path(table), params={"select": "id", "limit": "1"})
        )

    def upsert_rows(self, table: str, rows: list[dict[str, Any]], on_conflict: str) -> int:
        """Insert or update rows matched on a conflict column.

        Args:
            table: Table name.
            rows: Rows in remote representation.
            on_conflict: Identity column used to detect existing rows.

        Returns:
            Number of rows sent.
        """
        sent = 0
        for batch in _chunks(rows, UPSERT_BATCH_SIZE):
            self._handle_response(
                self._client.post(
                    self._table_path(table),
                    params={"on_conflict": on_conflict},
                    json=batch,
                    headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
                )
            )
            sent += len(batch)
        return sent

    def delete_rows_in(self, table: str, column: str, values: list[Any]) -> int:
        """Delete rows whose column value is in values.

        Returns:
            Number of values targeted.
        """
        for batch in _chunks(values, DELETE_BATCH_SIZE):
            self._handle_response(
                self._client.delete(
                    self._table_path(table),
                    params={column: in_filter(batch)},
                    headers={"Prefer": "return=minimal"},
                )
            )
        return len(values)

    # === Bucket operations ===

    def get_bucket(self, bucket: str) -> dict[str, Any]:
        """Get bucket metadata.

        Raises:
            NotFoundError: If the bucket doesn't exist.
        """
        response = self._handle_response(
            self._client.get(f"/storage/v1/bucket/{quote(bucket)}")
        )
        result: dict[str, Any] = response.json()
        return result

    def create_bucket(self, bucket: str, public: bool = False) -> None:
        """Create a bucket.

        Raises:
            ConflictError: If the bucket already exists.
            PermissionDeniedError: If the key may not create buckets.
        """
        self._handle_response(
            self._client.post(
                "/storage/v1/bucket",
                json={"id": bucket, "name": bucket, "public": public},
            )
        )

    # === Object operations ===

    def _object_path(self, bucket: str, name: str) -> str:
        return f"/storage/v1/object/{quote(bucket)}/{quote(name)}"

    def upload_object(self, bucket: str, name: str, data: bytes, content_type: str) -> None:
        """Upload an object, overwriting any object with the same name."""
        self._handle_response(
            self._client.post(
                self._object_path(bucket, name),
                content=data,
                headers={"Content-Type": content_type, "x-upsert": "true"},
            )
        )

    def download_object(self, bucket: str, name: str) -> bytes:
        """Download an object.

        Raises:
            NotFoundError: If the object doesn't exist.
        """
        response = self._handle_response(self._client.get(self._object_path(bucket, name)))
        return response.content

    def list_objects(self, bucket: str, prefix: str = "") -> list[StoredObject]:
        """List the objects under a prefix, page by page."""
        objects: list[StoredObject] = []
        offset = 0
        while True:
            response = self._handle_response(
                self._client.post(
                    f"/storage/v1/object/list/{quote(bucket)}",
                    json={
                        "prefix": prefix,
                        "limit": self._page_size,
                        "offset": offset,
                        "sortBy": {"column": "name", "order": "asc"},
                    },
                )
            )
            page = response.json()
            objects.extend(StoredObject.from_dict(o) for o in page if o.get("name"))
            if len(page) < self._page_size:
                return objects
            offset += len(page)

    def remove_objects(self, bucket: str, names: list[str]) -> int:
        """Remove objects by name.

        Returns:
            Number of objects targeted.
        """
        if not names:
            return 0
        self._handle_response(
            self._client.request(
                "DELETE",
                f"/storage/v1/object/{quote(bucket)}",
                json={"prefixes": names},
            )
        )
        return len(names)
