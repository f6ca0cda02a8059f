"""SQLite record store."""

import os

import pytest
from sqlalchemy import text
from sqlmodel import SQLModel

from persistent_cache.core.database import RecordStore
from persistent_cache.core.exceptions import CacheStoreError
from persistent_cache.models.cache import CacheRecord


class TestStartup:

    def test_creates_schema(self, store):
        with store.engine.connect() as conn:
            columns = [row[1] for row in conn.execute(text("PRAGMA table_info(cache)"))]
        assert set(columns) == {"id", "function", "args", "result", "timestamp"}

    def test_startup_is_idempotent(self, db_path, clock):
        first = RecordStore(db_path, clock=clock)
        first.startup()
        first.insert("f", "k", b"v")
        first.shutdown()

        second = RecordStore(db_path, clock=clock)
        second.startup()
        assert second.lookup("f", "k") == (b"v", int(clock()))
        second.shutdown()

    def test_unopenable_path_is_fatal(self, tmp_path):
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("file, not a directory")
        store = RecordStore(str(blocker / "cache.db"))
        with pytest.raises(CacheStoreError) as exc_info:
            store.startup()
        assert exc_info.value.db_path == str(blocker / "cache.db")
        assert store.engine is None

    def test_use_before_startup(self, db_path):
        store = RecordStore(db_path)
        with pytest.raises(CacheStoreError, match="not initialized"):
            with store.get_session():
                pass

    def test_unstarted_store_reads_miss_and_writes_fail(self, db_path):
        store = RecordStore(db_path)
        assert store.insert("f", "k", b"v") is False
        assert store.lookup("f", "k") is None
        assert store.delete("f", "k") is False
        assert store.delete_all("f") == 0
        assert not os.path.exists(db_path)

    def test_store_after_shutdown(self, db_path, clock):
        store = RecordStore(db_path, clock=clock)
        store.startup()
        store.insert("f", "k", b"v")
        store.shutdown()
        assert store.lookup("f", "k") is None
        assert store.insert("f", "k", b"w") is False

    def test_timestamp_defaults_in_database(self, store):
        with store.engine.begin() as conn:
            conn.execute(text(
                "INSERT INTO cache (function, args, result) VALUES ('raw', 'k', x'00')"
            ))
        payload, created_at = store.lookup("raw", "k")
        assert payload == b"\x00"
        assert created_at > 0


class TestReadWrite:

    def test_lookup_missing(self, store):
        assert store.lookup("f", "k") is None

    def test_insert_then_lookup(self, store, clock):
        assert store.insert("f", "k", b"payload")
        assert store.lookup("f", "k") == (b"payload", int(clock()))

    def test_exact_match_only(self, store):
        store.insert("f", "k", b"1")
        assert store.lookup("f", "k2") is None
        assert store.lookup("g", "k") is None

    def test_duplicates_return_most_recent(self, store, clock):
        store.insert("f", "k", b"old")
        clock.advance(10)
        store.insert("f", "k", b"new")
        assert store.lookup("f", "k") == (b"new", int(clock()))

    def test_duplicates_same_second_return_last_written(self, store):
        store.insert("f", "k", b"first")
        store.insert("f", "k", b"second")
        assert store.lookup("f", "k")[0] == b"second"

    def test_delete_removes_all_duplicates(self, store):
        store.insert("f", "k", b"1")
        store.insert("f", "k", b"2")
        store.insert("f", "other", b"3")
        assert store.delete("f", "k")
        assert store.lookup("f", "k") is None
        assert store.lookup("f", "other")[0] == b"3"

    def test_delete_all_is_per_function(self, store):
        store.insert("f", "a", b"1")
        store.insert("f", "b", b"2")
        store.insert("g", "a", b"3")
        assert store.delete_all("f") == 2
        assert store.lookup("f", "a") is None
        assert store.lookup("g", "a") is not None
        assert store.delete_all("f") == 0

    def test_persists_across_handles(self, db_path, store):
        store.insert("f", "k", b"durable")
        assert os.path.exists(db_path)
        other = RecordStore(db_path)
        other.startup()
        assert other.lookup("f", "k")[0] == b"durable"
        other.shutdown()


class TestStoreErrors:
    """Errors after startup are logged and reported, never raised."""

    @pytest.fixture
    def broken_store(self, store):
        SQLModel.metadata.drop_all(store.engine, tables=[CacheRecord.__table__])
        return store

    def test_insert_failure(self, broken_store):
        assert broken_store.insert("f", "k", b"v") is False

    def test_lookup_failure(self, broken_store):
        assert broken_store.lookup("f", "k") is None

    def test_delete_failure(self, broken_store):
        assert broken_store.delete("f", "k") is False
        assert broken_store.delete_all("f") == 0
