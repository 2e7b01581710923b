"""Tests for the local SQLite store."""

import logging
import re
import sqlite3
from pathlib import Path

import pytest

from possync.client.store import LocalStore, quote_identifier, utc_timestamp
from possync.core.config import SETTING_LAST_SYNC

from tests.helpers import insert_row


class TestStoreCreation:
    """Tests for LocalStore initialization."""

    def test_creates_database(self, tmp_path: Path) -> None:
        """Should create the database file and parent directories."""
        db_path = tmp_path / "nested" / "pos.db"
        store = LocalStore(db_path, create_schema=True)

        assert db_path.exists()
        assert "image_path" in store.table_columns("menu_items")
        store.close()

    def test_foreign_keys_enabled(self, store: LocalStore) -> None:
        """Should enforce foreign keys by default."""
        assert store.foreign_keys_enabled()


class TestQuoteIdentifier:
    """Tests for SQL identifier quoting."""

    def test_plain_name(self) -> None:
        assert quote_identifier("menu_items") == '"menu_items"'

    def test_rejects_injection(self) -> None:
        """Should reject anything that is not a plain identifier."""
        with pytest.raises(ValueError):
            quote_identifier('orders"; DROP TABLE orders; --')


class TestReads:
    """Tests for row reads."""

    def test_fetch_rows(self, store: LocalStore) -> None:
        """Should return every row as a dict."""
        insert_row(store, "categories", {"id": 1, "name": "Bread"})
        insert_row(store, "categories", {"id": 2, "name": "Cakes"})

        rows = store.fetch_rows("categories")

        assert [(r["id"], r["name"]) for r in rows] == [(1, "Bread"), (2, "Cakes")]

    def test_fetch_identities(self, store: LocalStore) -> None:
        insert_row(store, "categories", {"id": 5, "name": "Drinks"})
        assert store.fetch_identities("categories", "id") == [5]

    def test_fetch_non_blank(self, store: LocalStore) -> None:
        """Should skip null and blank values."""
        insert_row(store, "menu_items", {"id": 1, "name": "Latte", "price": 3.5, "image_path": "latte.jpg"})
        insert_row(store, "menu_items", {"id": 2, "name": "Tea", "price": 2.0, "image_path": "   "})
        insert_row(store, "menu_items", {"id": 3, "name": "Water", "price": 1.0})

        assert store.fetch_non_blank("menu_items", "image_path") == ["latte.jpg"]

    def test_count_rows(self, store: LocalStore) -> None:
        assert store.count_rows("orders") == 0
        insert_row(store, "categories", {"id": 1, "name": "Bread"})
        assert store.count_rows("categories") == 1


class TestWrites:
    """Tests for table replacement and upserts."""

    def test_replace_rows(self, store: LocalStore) -> None:
        """Should replace the whole table content."""
        insert_row(store, "categories", {"id": 1, "name": "Old"})

        written = store.replace_rows("categories", [{"id": 2, "name": "Bread"}, {"id": 3, "name": "Cakes"}])

        assert written == 2
        assert store.fetch_identities("categories", "id") == [2, 3]

    def test_replace_rows_is_atomic(self, store: LocalStore) -> None:
        """Should leave the table untouched when an insert fails."""
        insert_row(store, "categories", {"id": 1, "name": "Bread"})

        with pytest.raises(sqlite3.IntegrityError):
            store.replace_rows("categories", [{"id": 2, "name": "Cakes"}, {"id": 3, "name": None}])

        assert store.fetch_identities("categories", "id") == [1]

    def test_replace_rows_drops_unknown_columns(
        self, store: LocalStore, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Should ignore columns the local table doesn't have."""
        with caplog.at_level(logging.WARNING, logger="possync"):
            store.replace_rows("categories", [{"id": 1, "name": "Bread", "remote_only": "x"}])

        assert store.fetch_identities("categories", "id") == [1]
        assert "remote_only" in caplog.text

    def test_upsert_rows_keeps_surrogate_id(self, store: LocalStore) -> None:
        """Should update matching keys in place and insert new ones."""
        store.set_setting("currency", "EUR")
        original_id = store.fetch_rows("settings")[0]["id"]

        store.upsert_rows(
            "settings",
            "key",
            [{"key": "currency", "value": "USD"}, {"key": "tax_rate", "value": "0.2"}],
        )

        rows = {r["key"]: r for r in store.fetch_rows("settings")}
        assert rows["currency"]["value"] == "USD"
        assert rows["currency"]["id"] == original_id
        assert rows["tax_rate"]["value"] == "0.2"


class TestForeignKeys:
    """Tests for scoped foreign-key suspension."""

    def test_disabled_inside_block(self, store: LocalStore) -> None:
        """Should allow dangling references while suspended."""
        with store.foreign_keys_disabled():
            assert not store.foreign_keys_enabled()
            insert_row(store, "options", {"id": 1, "option_group_id": 99, "name": "Large"})

        assert store.foreign_keys_enabled()

    def test_restored_on_error(self, store: LocalStore) -> None:
        """Should re-enable enforcement when the block raises."""
        with pytest.raises(RuntimeError), store.foreign_keys_disabled():
            raise RuntimeError("boom")

        assert store.foreign_keys_enabled()

    def test_enforced_outside_block(self, store: LocalStore) -> None:
        with pytest.raises(sqlite3.IntegrityError):
            insert_row(store, "options", {"id": 1, "option_group_id": 99, "name": "Large"})


class TestSettings:
    """Tests for the settings key/value table."""

    def test_get_missing(self, store: LocalStore) -> None:
        assert store.get_setting("nope") is None

    def test_set_and_update(self, store: LocalStore) -> None:
        """Should upsert by key."""
        store.set_setting("currency", "EUR")
        store.set_setting("currency", "USD")

        assert store.get_setting("currency") == "USD"
        assert store.count_rows("settings") == 1

    def test_last_sync(self, store: LocalStore) -> None:
        """Should store the last sync time in the sync category."""
        assert store.get_last_sync() is None

        stamp = store.set_last_sync()

        assert store.get_last_sync() == stamp
        row = next(r for r in store.fetch_rows("settings") if r["key"] == SETTING_LAST_SYNC)
        assert row["category"] == "sync"

    def test_utc_timestamp_format(self) -> None:
        """Should produce ISO-8601 UTC with milliseconds."""
        assert re.fullmatch(r"\d{4}-\d\d-\d\dT\d\d:\d\d:\d\d\.\d{3}Z", utc_timestamp())
