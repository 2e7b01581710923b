"""Tests for the push reconciler."""

import sqlite3
from contextlib import closing
from pathlib import Path

import httpx
import pytest

from possync.client.api import APIError, PermissionDeniedError
from possync.client.store import LocalStore
from possync.core.types import SyncPhase
from possync.sync.assets import AssetSyncer
from possync.sync.push import PushReconciler
from possync.sync.tables import SYNC_TABLES, SyncTable
from possync.sync.types import BucketError, SyncCancelledError, SyncProgress, TableSyncError

from tests.helpers import InMemoryRemote, insert_row


def make_reconciler(remote: InMemoryRemote, store: LocalStore, **kwargs) -> PushReconciler:  # type: ignore[no-untyped-def]
    return PushReconciler(remote, store, AssetSyncer(), **kwargs)  # type: ignore[arg-type]


class TestUpsert:
    """Tests for the upsert phase."""

    def test_pushes_rows_with_remote_booleans(self, store: LocalStore, remote: InMemoryRemote) -> None:
        """Should upsert every local row, converting 0/1 flags."""
        insert_row(store, "categories", {"id": 1, "name": "Drinks"})
        insert_row(store, 
            "menu_items",
            {"id": 1, "name": "Latte", "price": 3.5, "category": "Drinks", "is_available": 0},
        )

        result = make_reconciler(remote, store).push()

        assert result.rows_pushed == 2
        item = remote.rows("menu_items")[0]
        assert item["is_available"] is False
        assert item["name"] == "Latte"

    def test_settings_pushed_by_key_without_id(self, store: LocalStore, remote: InMemoryRemote) -> None:
        """Should upsert settings on key and never send the local surrogate id."""
        store.set_setting("currency", "EUR")

        make_reconciler(remote, store).push()

        settings = {row["key"]: row for row in remote.rows("settings")}
        assert settings["currency"]["value"] == "EUR"
        assert "id" not in settings["currency"]

    def test_updates_existing_remote_rows(self, store: LocalStore, remote: InMemoryRemote) -> None:
        remote.tables["categories"] = [{"id": 1, "name": "Old name"}]
        insert_row(store, "categories", {"id": 1, "name": "Bread"})

        make_reconciler(remote, store).push()

        rows = remote.rows("categories")
        assert len(rows) == 1
        assert rows[0]["name"] == "Bread"

    def test_empty_table_not_upserted(self, store: LocalStore, remote: InMemoryRemote) -> None:
        make_reconciler(remote, store).push()
        assert remote.count("upsert_rows", "orders") == 0

    def test_rows_without_identity_skipped(self, store: LocalStore, remote: InMemoryRemote) -> None:
        """Should push identified rows and report the skipped ones as a warning."""
        with closing(sqlite3.connect(store.path)) as conn:
            conn.execute("CREATE TABLE widgets (code TEXT UNIQUE, name TEXT)")
            conn.executemany("INSERT INTO widgets (code, name) VALUES (?, ?)", [(None, "a"), ("x", "b")])
            conn.commit()
        remote.tables["widgets"] = [{"code": "x", "name": "old"}, {"code": "y", "name": "gone"}]

        result = make_reconciler(remote, store, tables=(SyncTable("widgets", identity="code"),)).push()

        assert remote.rows("widgets") == [{"code": "x", "name": "b"}]
        assert result.rows_pushed == 1
        assert result.rows_deleted == 1
        assert [issue.table for issue in result.warnings] == ["widgets"]
        assert "without code" in result.warnings[0].message

    def test_upsert_failure_aborts(self, store: LocalStore, remote: InMemoryRemote) -> None:
        """Should stop at the failing table and name it."""
        insert_row(store, "categories", {"id": 1, "name": "Bread"})
        insert_row(store, "customers", {"id": 1, "name": "Ada"})
        remote.fail("upsert_rows", "categories", APIError("column does not exist", 400))

        with pytest.raises(TableSyncError, match='Push failed at table "categories"') as exc_info:
            make_reconciler(remote, store).push()

        assert exc_info.value.table == "categories"
        assert remote.count("upsert_rows", "customers") == 0
        assert remote.count("select_identities") == 0
        assert store.get_last_sync() is None

    def test_transport_failure_aborts(self, store: LocalStore, remote: InMemoryRemote) -> None:
        insert_row(store, "categories", {"id": 1, "name": "Bread"})
        remote.fail("upsert_rows", "categories", httpx.ConnectTimeout("timed out"))

        with pytest.raises(TableSyncError, match="categories"):
            make_reconciler(remote, store).push()


class TestOrphanDeletion:
    """Tests for the orphan deletion phase."""

    def test_removes_rows_missing_locally(self, store: LocalStore, remote: InMemoryRemote) -> None:
        """Should turn remote {1,2,3} into {1,3} when local has {1,3}."""
        remote.tables["categories"] = [
            {"id": 1, "name": "Bread"},
            {"id": 2, "name": "Cakes"},
            {"id": 3, "name": "Drinks"},
        ]
        insert_row(store, "categories", {"id": 1, "name": "Bread"})
        insert_row(store, "categories", {"id": 3, "name": "Drinks"})

        result = make_reconciler(remote, store).push()

        assert sorted(row["id"] for row in remote.rows("categories")) == [1, 3]
        assert result.rows_deleted == 1

    def test_empty_local_table_wipes_remote(self, store: LocalStore, remote: InMemoryRemote) -> None:
        """Should delete every remote row when the local table is empty."""
        remote.tables["discounts"] = [{"id": 1}, {"id": 2}]

        make_reconciler(remote, store).push()

        assert remote.rows("discounts") == []

    def test_settings_orphans_by_key(self, store: LocalStore, remote: InMemoryRemote) -> None:
        remote.tables["settings"] = [{"key": "currency", "value": "EUR"}, {"key": "old", "value": "x"}]
        store.set_setting("currency", "EUR")

        make_reconciler(remote, store).push()

        assert [row["key"] for row in remote.rows("settings")] == ["currency"]

    def test_deletes_children_before_parents(self, store: LocalStore, remote: InMemoryRemote) -> None:
        remote.tables["orders"] = [{"id": 1}]
        remote.tables["order_items"] = [{"id": 1, "order_id": 1}]

        make_reconciler(remote, store).push()

        deletions = [target for method, target in remote.calls if method == "delete_rows_in"]
        assert deletions.index("order_items") < deletions.index("orders")

    def test_permission_error_is_warning(self, store: LocalStore, remote: InMemoryRemote) -> None:
        """Should record a warning and keep going on row-level security rejections."""
        remote.tables["analytics"] = [{"id": 1}]
        remote.tables["categories"] = [{"id": 9}]
        remote.fail(
            "delete_rows_in",
            "analytics",
            PermissionDeniedError("new row violates row-level security policy", 403, "42501"),
        )

        result = make_reconciler(remote, store).push()

        assert [issue.table for issue in result.warnings] == ["analytics"]
        assert remote.rows("categories") == []
        assert result.last_sync is not None

    def test_other_error_aborts(self, store: LocalStore, remote: InMemoryRemote) -> None:
        remote.tables["analytics"] = [{"id": 1}]
        remote.fail("delete_rows_in", "analytics", APIError("internal error", 500))

        with pytest.raises(TableSyncError, match='Delete orphans failed at table "analytics"'):
            make_reconciler(remote, store).push()


class TestAssetsAndState:
    """Tests for asset phases, progress and last-sync state."""

    def test_bucket_checked_before_rows(
        self, store: LocalStore, remote: InMemoryRemote, asset_dir: Path
    ) -> None:
        """Should fail before any upsert when the bucket can't be ensured."""
        insert_row(store, "categories", {"id": 1, "name": "Bread"})
        remote.bucket_exists = False
        remote.fail("create_bucket", "menu-images", APIError("internal error", 500))

        with pytest.raises(BucketError):
            make_reconciler(remote, store).push(asset_dir)

        assert remote.count("upsert_rows") == 0

    def test_no_asset_dir_skips_storage(self, store: LocalStore, remote: InMemoryRemote) -> None:
        make_reconciler(remote, store).push()

        assert remote.count("get_bucket") == 0
        assert remote.count("list_objects") == 0

    def test_pushes_assets(self, store: LocalStore, remote: InMemoryRemote, asset_dir: Path) -> None:
        (asset_dir / "latte.jpg").write_bytes(b"latte")
        insert_row(store, "menu_items", {"id": 1, "name": "Latte", "price": 3.5, "image_path": "latte.jpg"})
        remote.objects = {"stale.png": b"old"}

        result = make_reconciler(remote, store).push(asset_dir)

        assert result.images is not None
        assert result.images.uploaded == 1
        assert result.images_deleted == 1
        assert set(remote.objects) == {"latte.jpg"}

    def test_records_last_sync(self, store: LocalStore, remote: InMemoryRemote) -> None:
        result = make_reconciler(remote, store).push()

        assert result.last_sync is not None
        assert store.get_last_sync() == result.last_sync

    def test_progress_covers_both_passes(self, store: LocalStore, remote: InMemoryRemote) -> None:
        """Should report each table twice over 2x the plan length."""
        events: list[SyncProgress] = []

        make_reconciler(remote, store, progress_callback=events.append).push()

        total = 2 * len(SYNC_TABLES)
        assert [e.index for e in events] == list(range(1, total + 1))
        assert {e.total for e in events} == {total}
        assert {e.phase for e in events} == {SyncPhase.PUSH}
        assert events[0].table == "categories"
        assert events[len(SYNC_TABLES)].table == "discounts"

    def test_cancel_between_tables(self, store: LocalStore, remote: InMemoryRemote) -> None:
        insert_row(store, "categories", {"id": 1, "name": "Bread"})
        calls = iter([False, True])

        with pytest.raises(SyncCancelledError):
            make_reconciler(remote, store, cancel_check=lambda: next(calls)).push()

        assert remote.count("upsert_rows") == 1
        assert store.get_last_sync() is None
