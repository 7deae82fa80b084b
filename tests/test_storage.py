"""
Unit tests for storage layer.

Tests schema creation and key-value operations on SQLite and in memory.
"""

import asyncio
import os
import tempfile

from ymobile_usage.storage.db import get_connection
from ymobile_usage.storage.repository import (
    MemoryKeyValueStore,
    SqliteKeyValueStore,
    initialize_schema,
)


class TestStorageSchema:
    """Test database schema creation and structure."""

    def test_schema_creation(self):
        """Verify table is created correctly."""
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "test.db")
            initialize_schema(db_path)

            conn = get_connection(db_path)
            try:
                cursor = conn.execute("""
                    SELECT name FROM sqlite_master
                    WHERE type='table' AND name='kv_entry'
                """)
                assert cursor.fetchall() == [("kv_entry",)]

                cursor = conn.execute("PRAGMA table_info(kv_entry)")
                column_names = [col[1] for col in cursor.fetchall()]
                assert column_names == ['key', 'value', 'updated_at']
            finally:
                conn.close()

    def test_schema_creation_is_idempotent(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "test.db")
            initialize_schema(db_path)
            initialize_schema(db_path)

    def test_connection_creates_parent_directory(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "a", "b", "test.db")
            get_connection(db_path).close()
            assert os.path.exists(db_path)


class TestSqliteKeyValueStore:
    """Test SQLite-backed key-value operations."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = os.path.join(self.temp_dir, "test.db")
        self.store = SqliteKeyValueStore(self.db_path)

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_get_missing(self):
        assert asyncio.run(self.store.get("nothing")) is None

    def test_set_and_get(self):
        asyncio.run(self.store.set("k", "v"))
        assert asyncio.run(self.store.get("k")) == "v"

    def test_set_overwrites(self):
        asyncio.run(self.store.set("k", "one"))
        asyncio.run(self.store.set("k", "two"))
        assert asyncio.run(self.store.get("k")) == "two"
        assert self.store.keys() == ["k"]

    def test_remove(self):
        asyncio.run(self.store.set("k", "v"))
        asyncio.run(self.store.remove("k"))
        assert asyncio.run(self.store.get("k")) is None

    def test_remove_missing_is_not_error(self):
        asyncio.run(self.store.remove("never-set"))

    def test_remove_many(self):
        for key in ("a", "b", "c"):
            asyncio.run(self.store.set(key, key))
        asyncio.run(self.store.remove_many(["a", "c"]))
        assert self.store.keys() == ["b"]

    def test_values_survive_new_instance(self):
        asyncio.run(self.store.set("k", "persisted"))
        assert asyncio.run(SqliteKeyValueStore(self.db_path).get("k")) == "persisted"

    def test_unicode_values(self):
        asyncio.run(self.store.set("k", "データ残量"))
        assert asyncio.run(self.store.get("k")) == "データ残量"

    def test_concurrent_writes(self):
        async def _run():
            await asyncio.gather(*(self.store.set(f"k{i}", str(i)) for i in range(10)))

        asyncio.run(_run())
        assert len(self.store.keys()) == 10


class TestMemoryKeyValueStore:
    """Test the in-memory store used by tests and dry runs."""

    def test_initial_values_are_copied(self):
        initial = {"k": "v"}
        store = MemoryKeyValueStore(initial)
        asyncio.run(store.set("k", "changed"))
        assert initial == {"k": "v"}
        assert asyncio.run(store.get("k")) == "changed"

    def test_remove(self):
        store = MemoryKeyValueStore({"k": "v"})
        asyncio.run(store.remove("k"))
        asyncio.run(store.remove("k"))
        assert store.data == {}
