"""Table synchronization plan.

This module declares every table the reconciler moves between the local
store and the remote store, in dependency order (parents before children).
Each entry carries the facts the reconciler needs about that table:

- identity column (the conflict key for upserts and the presence key
  for orphan deletion)
- boolean columns (stored as 0/1 locally, native booleans remotely)
- foreign keys (used to verify the order)
- an optional asset column holding an image reference

Orphan deletion walks the plan in reverse so children are removed before
their parents.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from possync.core.config import SETTING_REMOTE_KEY, SETTING_REMOTE_URL


@dataclass(frozen=True)
class ForeignKey:
    """A reference from a column to another table's identity.

    Attributes:
        column: Referencing column.
        references: Referenced table name.
        deferrable: True for a nullable back-reference that may point at a
            table later in the plan (the one circular link in the schema).
    """

    column: str
    references: str
    deferrable: bool = False


@dataclass(frozen=True)
class SyncTable:
    """A table synchronized by primary key."""

    name: str
    identity: str = "id"
    boolean_columns: tuple[str, ...] = ()
    foreign_keys: tuple[ForeignKey, ...] = ()
    asset_column: str | None = None

    @property
    def excluded_columns(self) -> frozenset[str]:
        """Columns never transferred in either direction."""
        return frozenset()

    def strip_excluded(self, row: dict[str, Any]) -> dict[str, Any]:
        """Return a copy of row without the excluded columns."""
        excluded = self.excluded_columns
        if not excluded:
            return dict(row)
        return {k: v for k, v in row.items() if k not in excluded}


@dataclass(frozen=True)
class KeyedSyncTable(SyncTable):
    """A settings-style table identified by a unique name column.

    Its surrogate ``id`` is assigned independently on each side and is not
    transferred. Protected keys are held locally only and are never
    overwritten by a pull.
    """

    identity: str = "key"
    surrogate_key: str = "id"
    protected_keys: frozenset[str] = field(default_factory=frozenset)

    @property
    def excluded_columns(self) -> frozenset[str]:
        return frozenset({self.surrogate_key})

    def is_protected(self, row: dict[str, Any]) -> bool:
        """Check whether a row holds a locally-protected key."""
        return row.get(self.identity) in self.protected_keys


def _fk(column: str, references: str, deferrable: bool = False) -> ForeignKey:
    return ForeignKey(column=column, references=references, deferrable=deferrable)


SETTINGS_TABLE = KeyedSyncTable(
    name="settings",
    protected_keys=frozenset({SETTING_REMOTE_URL, SETTING_REMOTE_KEY}),
)

SYNC_TABLES: tuple[SyncTable, ...] = (
    SyncTable("categories"),
    SyncTable("menu_items", boolean_columns=("is_available",), asset_column="image_path"),
    SyncTable("customers"),
    SyncTable("inventory_items"),
    SyncTable("option_groups", boolean_columns=("is_required",)),
    SyncTable(
        "options",
        boolean_columns=("is_available",),
        foreign_keys=(_fk("option_group_id", "option_groups"),),
    ),
    SyncTable("addons", boolean_columns=("is_available",)),
    SyncTable("users", boolean_columns=("is_active",)),
    SETTINGS_TABLE,
    SyncTable(
        "tables",
        foreign_keys=(_fk("current_order_id", "orders", deferrable=True),),
    ),
    SyncTable(
        "orders",
        foreign_keys=(
            _fk("customer_id", "customers"),
            _fk("table_id", "tables"),
            _fk("user_id", "users"),
        ),
    ),
    SyncTable(
        "order_items",
        foreign_keys=(_fk("order_id", "orders"), _fk("menu_item_id", "menu_items")),
    ),
    SyncTable(
        "menu_item_option_groups",
        foreign_keys=(
            _fk("menu_item_id", "menu_items"),
            _fk("option_group_id", "option_groups"),
        ),
    ),
    SyncTable(
        "menu_item_addons",
        foreign_keys=(_fk("menu_item_id", "menu_items"), _fk("addon_id", "addons")),
    ),
    SyncTable(
        "order_item_options",
        foreign_keys=(
            _fk("order_item_id", "order_items"),
            _fk("option_id", "options"),
            _fk("option_group_id", "option_groups"),
        ),
    ),
    SyncTable(
        "order_item_addons",
        foreign_keys=(_fk("order_item_id", "order_items"), _fk("addon_id", "addons")),
    ),
    SyncTable(
        "menu_item_sizes",
        boolean_columns=("is_default",),
        foreign_keys=(_fk("menu_item_id", "menu_items"),),
    ),
    SyncTable(
        "menu_item_custom_options",
        boolean_columns=("is_available",),
        foreign_keys=(_fk("menu_item_id", "menu_items"),),
    ),
    SyncTable(
        "inventory_transactions",
        foreign_keys=(_fk("inventory_item_id", "inventory_items"),),
    ),
    SyncTable(
        "menu_item_ingredients",
        foreign_keys=(
            _fk("menu_item_id", "menu_items"),
            _fk("inventory_item_id", "inventory_items"),
        ),
    ),
    SyncTable("analytics"),
    SyncTable("discounts", boolean_columns=("is_active",)),
)

# Tables whose row counts decide whether this install holds any real data
ANCHOR_TABLES = ("menu_items", "orders")

_BY_NAME = {table.name: table for table in SYNC_TABLES}


def get_table(name: str) -> SyncTable:
    """Look up a plan entry by table name.

    Raises:
        KeyError: If the table is not part of the plan.
    """
    return _BY_NAME[name]


def deletion_order(tables: tuple[SyncTable, ...] = SYNC_TABLES) -> list[SyncTable]:
    """Return the plan in child-before-parent order."""
    return list(reversed(tables))


def asset_tables(tables: tuple[SyncTable, ...] = SYNC_TABLES) -> list[SyncTable]:
    """Return the tables that reference assets."""
    return [table for table in tables if table.asset_column]


def find_order_violations(tables: tuple[SyncTable, ...] = SYNC_TABLES) -> list[str]:
    """Find foreign keys that point at a table not yet created in plan order.

    Deferrable references are allowed to point forward. A reference to a
    table outside the plan is also reported.

    Returns:
        Human-readable descriptions, empty when the order is valid.
    """
    position = {table.name: index for index, table in enumerate(tables)}
    violations: list[str] = []
    for index, table in enumerate(tables):
        for fk in table.foreign_keys:
            target = position.get(fk.references)
            if target is None:
                violations.append(f"{table.name}.{fk.column} references unknown table {fk.references}")
            elif target >= index and not fk.deferrable:
                violations.append(
                    f"{table.name}.{fk.column} references {fk.references}, "
                    "which is not synced before it"
                )
    return violations
