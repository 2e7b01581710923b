"""Test helpers: an in-memory remote store and local row seeding."""

from __future__ import annotations

import copy
from typing import Any

from possync.client.api import NotFoundError, StoredObject
from possync.client.store import LocalStore


def insert_row(store: LocalStore, table: str, row: dict[str, Any]) -> None:
    """Insert or overwrite one row by id."""
    store.upsert_rows(table, "id", [row])


class InMemoryRemote:
    """Stand-in for RemoteClient holding tables and bucket objects in memory.

    Every call is recorded in ``calls`` as ``(method, target)``. A failure
    can be injected per call with ``fail(method, target, error)``.
    """

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self.objects: dict[str, bytes] = {}
        self.bucket_exists = True
        self.calls: list[tuple[str, str]] = []
        self._failures: dict[tuple[str, str], Exception] = {}

    # === Test helpers ===

    def fail(self, method: str, target: str, error: Exception) -> None:
        self._failures[(method, target)] = error

    def count(self, method: str, target: str | None = None) -> int:
        return sum(
            1 for m, t in self.calls if m == method and (target is None or t == target)
        )

    def rows(self, table: str) -> list[dict[str, Any]]:
        return self.tables.setdefault(table, [])

    def _record(self, method: str, target: str) -> None:
        self.calls.append((method, target))
        error = self._failures.get((method, target))
        if error is not None:
            raise error

    # === Rows ===

    def select_rows(
        self,
        table: str,
        columns: str = "*",
        order_by: str | None = None,
    ) -> list[dict[str, Any]]:
        self._record("select_rows", table)
        rows = copy.deepcopy(self.rows(table))
        if order_by:
            rows.sort(key=lambda row: row.get(order_by))
        if columns != "*":
            names = columns.split(",")
            rows = [{name: row.get(name) for name in names} for row in rows]
        return rows

    def select_identities(self, table: str, column: str) -> list[Any]:
        self._record("select_identities", table)
        return [row[column] for row in self.rows(table) if row.get(column) is not None]

    def probe(self, table: str) -> None:
        self._record("probe", table)

    def upsert_rows(self, table: str, rows: list[dict[str, Any]], on_conflict: str) -> int:
        self._record("upsert_rows", table)
        existing = self.rows(table)
        for row in rows:
            match = next((r for r in existing if r.get(on_conflict) == row[on_conflict]), None)
            if match is None:
                existing.append(dict(row))
            else:
                match.update(row)
        return len(rows)

    def delete_rows_in(self, table: str, column: str, values: list[Any]) -> int:
        self._record("delete_rows_in", table)
        targets = set(values)
        self.tables[table] = [r for r in self.rows(table) if r.get(column) not in targets]
        return len(values)

    # === Storage ===

    def get_bucket(self, bucket: str) -> dict[str, Any]:
        self._record("get_bucket", bucket)
        if not self.bucket_exists:
            raise NotFoundError("Bucket not found", 404)
        return {"id": bucket, "name": bucket, "public": False}

    def create_bucket(self, bucket: str, public: bool = False) -> None:
        self._record("create_bucket", bucket)
        self.bucket_exists = True

    def upload_object(self, bucket: str, name: str, data: bytes, content_type: str) -> None:
        self._record("upload_object", name)
        self.objects[name] = data

    def download_object(self, bucket: str, name: str) -> bytes:
        self._record("download_object", name)
        if name not in self.objects:
            raise NotFoundError("Object not found", 404)
        return self.objects[name]

    def list_objects(self, bucket: str, prefix: str = "") -> list[StoredObject]:
        self._record("list_objects", bucket)
        return [StoredObject(name, len(data)) for name, data in sorted(self.objects.items())]

    def remove_objects(self, bucket: str, names: list[str]) -> int:
        self._record("remove_objects", bucket)
        for name in names:
            self.objects.pop(name, None)
        return len(names)
