"""Row conversion between local and remote representations.

Booleans are stored as 0/1 integers locally and as native booleans
remotely. Which columns are booleans is declared per table in the plan.
Absent or null values are left untouched in both directions.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from possync.sync.tables import SyncTable

Row = dict[str, Any]


def to_remote(row: Row, table: SyncTable) -> Row:
    """Convert a local row to the remote representation."""
    out = dict(row)
    for column in table.boolean_columns:
        value = out.get(column)
        if value is not None:
            out[column] = value is True or value == 1
    return out


def to_local(row: Row, table: SyncTable) -> Row:
    """Convert a remote row to the local representation."""
    out = dict(row)
    for column in table.boolean_columns:
        value = out.get(column)
        if value is not None:
            out[column] = 1 if value else 0
    return out
