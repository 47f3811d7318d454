"""Tests for the settings stores (memory and SQLite).

Covers:
  - Defaults when nothing is stored
  - Storage-area split (digest and preference always local)
  - Normalization on read
  - SQLite persistence across instances
  - StorageError wrapping
"""

import sqlite3
from unittest.mock import patch

import pytest

from sitelock.blocker.exceptions import StorageError
from sitelock.blocker.rules import StorageLocation
from sitelock.settings.store import (
    KEY_BLOCKED_SITES,
    MemorySettingsStore,
    SQLiteSettingsStore,
    get_settings_store,
    set_settings_store,
)


@pytest.fixture(params=["memory", "sqlite"])
def any_store(request, tmp_path):
    if request.param == "memory":
        return MemorySettingsStore()
    return SQLiteSettingsStore(db_path=tmp_path / "settings.db")


class TestStoreContract:

    @pytest.mark.asyncio
    async def test_defaults(self, any_store):
        assert await any_store.get_storage_location() == StorageLocation.SYNC
        assert await any_store.get_rule_set() == ()
        assert await any_store.get_secret_digest() == ""

    @pytest.mark.asyncio
    async def test_rule_set_roundtrip_normalized(self, any_store):
        saved = await any_store.set_rule_set([" Facebook.com ", "facebook.com", "", "reddit.com"])
        assert saved == ("facebook.com", "reddit.com")
        assert await any_store.get_rule_set() == ("facebook.com", "reddit.com")

    @pytest.mark.asyncio
    async def test_rules_follow_location_preference(self, any_store):
        await any_store.set_rule_set(["synced.com"])
        await any_store.set_storage_location(StorageLocation.LOCAL)
        assert await any_store.get_rule_set() == ()

        await any_store.set_rule_set(["local.com"])
        assert await any_store.get_rule_set() == ("local.com",)
        assert await any_store.get_rule_set(StorageLocation.SYNC) == ("synced.com",)

    @pytest.mark.asyncio
    async def test_explicit_location(self, any_store):
        await any_store.set_rule_set(["a.com"], StorageLocation.LOCAL)
        assert await any_store.get_rule_set(StorageLocation.LOCAL) == ("a.com",)
        assert await any_store.get_rule_set() == ()

    @pytest.mark.asyncio
    async def test_storage_location_from_string(self, any_store):
        await any_store.set_storage_location("local")
        assert await any_store.get_storage_location() == StorageLocation.LOCAL
        await any_store.set_storage_location("bogus")
        assert await any_store.get_storage_location() == StorageLocation.SYNC

    @pytest.mark.asyncio
    async def test_digest_roundtrip(self, any_store):
        await any_store.set_secret_digest("ab" * 32)
        assert await any_store.get_secret_digest() == "ab" * 32

    @pytest.mark.asyncio
    async def test_digest_survives_location_change(self, any_store):
        await any_store.set_secret_digest("cd" * 32)
        await any_store.set_storage_location(StorageLocation.LOCAL)
        await any_store.set_storage_location(StorageLocation.SYNC)
        assert await any_store.get_secret_digest() == "cd" * 32

    @pytest.mark.asyncio
    async def test_non_list_rules_read_as_empty(self, any_store):
        await any_store._write(StorageLocation.SYNC, KEY_BLOCKED_SITES, "facebook.com")
        assert await any_store.get_rule_set() == ()


class TestSQLiteSettingsStore:

    def test_creates_db_file(self, tmp_path):
        SQLiteSettingsStore(db_path=tmp_path / "sub" / "dir" / "s.db")
        assert (tmp_path / "sub" / "dir" / "s.db").exists()

    @pytest.mark.asyncio
    async def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "s.db"
        first = SQLiteSettingsStore(db_path=path)
        await first.set_rule_set(["facebook.com"])
        await first.set_secret_digest("ef" * 32)

        second = SQLiteSettingsStore(db_path=path)
        assert await second.get_rule_set() == ("facebook.com",)
        assert await second.get_secret_digest() == "ef" * 32

    @pytest.mark.asyncio
    async def test_corrupt_value_uses_default(self, tmp_path):
        path = tmp_path / "s.db"
        store = SQLiteSettingsStore(db_path=path)
        conn = sqlite3.connect(str(path))
        conn.execute(
            "INSERT INTO settings (area, key, value, updated_at) VALUES (?, ?, ?, ?)",
            ("local", "masterHash", "{not json", "now"),
        )
        conn.commit()
        conn.close()

        assert await store.get_secret_digest() == ""

    @pytest.mark.asyncio
    async def test_read_error_wrapped(self, tmp_path):
        store = SQLiteSettingsStore(db_path=tmp_path / "s.db")
        with patch.object(store, "_read_sync", side_effect=sqlite3.OperationalError("locked")):
            with pytest.raises(StorageError):
                await store.get_rule_set()

    @pytest.mark.asyncio
    async def test_write_error_wrapped(self, tmp_path):
        store = SQLiteSettingsStore(db_path=tmp_path / "s.db")
        with patch.object(store, "_write_sync", side_effect=OSError("read-only")):
            with pytest.raises(StorageError):
                await store.set_secret_digest("x")

    @pytest.mark.asyncio
    async def test_default_location_until_chosen(self, tmp_path):
        store = SQLiteSettingsStore(tmp_path / "s.db", default_location=StorageLocation.LOCAL)
        assert await store.get_storage_location() == StorageLocation.LOCAL
        await store.set_storage_location(StorageLocation.SYNC)
        assert await store.get_storage_location() == StorageLocation.SYNC

    def test_unopenable_path(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a dir")
        with pytest.raises(StorageError):
            SQLiteSettingsStore(db_path=blocker / "s.db")


class TestSingleton:

    def test_singleton_roundtrip(self):
        instance = MemorySettingsStore()
        set_settings_store(instance)
        assert get_settings_store() is instance
