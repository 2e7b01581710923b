"""Local SQLite store for the point-of-sale data.

This module provides:
- LocalStore: the reconciler's view of the local database

The store exposes only what sync needs: whole-table reads, identity
reads, counts, whole-table replacement, keyed upserts, the settings
key/value table, and a scoped suspension of foreign-key enforcement.
Table names come from the sync plan; column names are checked against
the table's actual columns before they are placed in SQL.
"""

from __future__ import annotations

import logging
import re
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from possync.client.schema import SCHEMA_SQL
from possync.core.config import SETTING_LAST_SYNC

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

Row = dict[str, Any]


def utc_timestamp() -> str:
    """Current UTC time as ISO-8601 with millisecond precision."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def quote_identifier(name: str) -> str:
    """Quote a table or column name for SQL.

    Raises:
        ValueError: If the name is not a plain identifier.
    """
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return f'"{name}"'


class LocalStore:
    """SQLite-backed local store."""

    def __init__(self, db_path: Path, create_schema: bool = False) -> None:
        """Open the local database.

        Args:
            db_path: Path to SQLite database file.
            create_schema: Create the synchronized tables if missing.
        """
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.RLock()
        self._columns: dict[str, list[str]] = {}

        self._conn = sqlite3.connect(
            str(self._db_path),
            check_same_thread=False,
            isolation_level=None,  # Autocommit mode
        )
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")

        if create_schema:
            self.create_schema()

    @property
    def path(self) -> Path:
        """Path of the database file."""
        return self._db_path

    def create_schema(self) -> None:
        """Create the synchronized tables if they don't exist."""
        with self._lock:
            self._conn.executescript(SCHEMA_SQL)
            self._columns.clear()

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def __enter__(self) -> LocalStore:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # === Introspection ===

    def table_columns(self, table: str) -> list[str]:
        """Return the column names of a table, in declaration order."""
        if table not in self._columns:
            with self._lock:
                cursor = self._conn.execute(f"PRAGMA table_info({quote_identifier(table)})")
                self._columns[table] = [row["name"] for row in cursor.fetchall()]
        return self._columns[table]

    # === Reads ===

    def fetch_rows(self, table: str) -> list[Row]:
        """Read every row of a table."""
        with self._lock:
            cursor = self._conn.execute(
                f"SELECT * FROM {quote_identifier(table)} ORDER BY rowid"
            )
            rows = cursor.fetchall()
        return [dict(row) for row in rows]

    def fetch_identities(self, table: str, column: str) -> list[Any]:
        """Read the non-null values of one column (usually the identity)."""
        col = quote_identifier(column)
        with self._lock:
            cursor = self._conn.execute(
                f"SELECT {col} FROM {quote_identifier(table)} WHERE {col} IS NOT NULL ORDER BY rowid"
            )
            rows = cursor.fetchall()
        return [row[0] for row in rows]

    def fetch_non_blank(self, table: str, column: str) -> list[str]:
        """Read the values of a text column that are neither null nor blank."""
        col = quote_identifier(column)
        with self._lock:
            cursor = self._conn.execute(
                f"SELECT {col} FROM {quote_identifier(table)} "
                f"WHERE {col} IS NOT NULL AND length(trim({col})) > 0 ORDER BY rowid"
            )
            rows = cursor.fetchall()
        return [row[0] for row in rows]

    def count_rows(self, table: str) -> int:
        """Count the rows of a table."""
        with self._lock:
            cursor = self._conn.execute(f"SELECT COUNT(*) FROM {quote_identifier(table)}")
            return int(cursor.fetchone()[0])

    # === Writes ===

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        with self._lock:
            self._conn.execute("BEGIN")
            try:
                yield
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise
            self._conn.execute("COMMIT")

    def _insert_sql(self, table: str, columns: list[str]) -> str:
        col_list = ", ".join(quote_identifier(c) for c in columns)
        placeholders = ", ".join("?" for _ in columns)
        return f"INSERT OR REPLACE INTO {quote_identifier(table)} ({col_list}) VALUES ({placeholders})"

    def _drop_unknown(self, table: str, rows: list[Row]) -> list[Row]:
        known = set(self.table_columns(table))
        dropped = {name for row in rows for name in row if name not in known}
        if dropped:
            logger.warning(f"Ignoring columns not present locally in {table}: {sorted(dropped)}")
            rows = [{k: v for k, v in row.items() if k in known} for row in rows]
        return rows

    def replace_rows(self, table: str, rows: list[Row]) -> int:
        """Replace the whole content of a table with rows.

        Runs in one transaction: either every row lands or the table is
        left as it was.

        Returns:
            Number of rows written.
        """
        rows = self._drop_unknown(table, rows)
        with self._transaction():
            self._conn.execute(f"DELETE FROM {quote_identifier(table)}")
            for row in rows:
                columns = list(row)
                self._conn.execute(self._insert_sql(table, columns), [row[c] for c in columns])
        return len(rows)

    def upsert_rows(self, table: str, key_column: str, rows: list[Row]) -> int:
        """Insert or update rows matched by a unique key column.

        Rows already present keep columns the incoming row doesn't carry
        (such as a local surrogate id).

        Returns:
            Number of rows written.
        """
        rows = self._drop_unknown(table, rows)
        key = quote_identifier(key_column)
        with self._transaction():
            for row in rows:
                columns = list(row)
                col_list = ", ".join(quote_identifier(c) for c in columns)
                placeholders = ", ".join("?" for _ in columns)
                updates = [
                    f"{quote_identifier(c)} = excluded.{quote_identifier(c)}"
                    for c in columns
                    if c != key_column
                ]
                conflict = f"DO UPDATE SET {', '.join(updates)}" if updates else "DO NOTHING"
                self._conn.execute(
                    f"INSERT INTO {quote_identifier(table)} ({col_list}) VALUES ({placeholders}) "
                    f"ON CONFLICT({key}) {conflict}",
                    [row[c] for c in columns],
                )
        return len(rows)

    @contextmanager
    def foreign_keys_disabled(self) -> Iterator[None]:
        """Suspend foreign-key enforcement for the duration of the block.

        Enforcement is restored on exit, including when the block raises.
        """
        with self._lock:
            self._conn.execute("PRAGMA foreign_keys=OFF")
            try:
                yield
            finally:
                self._conn.execute("PRAGMA foreign_keys=ON")

    def foreign_keys_enabled(self) -> bool:
        """Check whether foreign-key enforcement is on."""
        with self._lock:
            return bool(self._conn.execute("PRAGMA foreign_keys").fetchone()[0])

    # === Settings ===

    def get_setting(self, key: str) -> str | None:
        """Get a settings value."""
        with self._lock:
            cursor = self._conn.execute("SELECT value FROM settings WHERE key = ?", (key,))
            row = cursor.fetchone()
        return row["value"] if row else None

    def set_setting(self, key: str, value: str, category: str = "general") -> None:
        """Set a settings value (upsert by key)."""
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO settings (key, value, category) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (key, value, category),
            )

    # === Sync state ===

    def get_last_sync(self) -> str | None:
        """Get timestamp of last successful sync (ISO-8601)."""
        return self.get_setting(SETTING_LAST_SYNC) or None

    def set_last_sync(self, timestamp: str | None = None) -> str:
        """Record a successful sync.

        Args:
            timestamp: ISO-8601 timestamp (default: now).

        Returns:
            The timestamp stored.
        """
        timestamp = timestamp or utc_timestamp()
        self.set_setting(SETTING_LAST_SYNC, timestamp, category="sync")
        return timestamp
