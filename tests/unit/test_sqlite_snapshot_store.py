"""Unit tests for SQLiteSnapshotStore."""

import sqlite3

import pytest

from sopdesk.adapters.outbound.sqlite_snapshot_store import SQLiteSnapshotStore
from sopdesk.core.domain.exceptions import StorageError

pytestmark = pytest.mark.unit


def test_init_db(tmp_path):
    """Test database initialization and schema creation."""
    db_file = tmp_path / "nested" / "index.db"
    SQLiteSnapshotStore(db_file)

    with sqlite3.connect(db_file) as conn:
        cursor = conn.cursor()
        cursor.execute("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name")
        assert [row[0] for row in cursor.fetchall()] == ["documents", "meta"]


def test_empty_store_loads_nothing(tmp_path):
    assert SQLiteSnapshotStore(tmp_path / "index.db").load() is None


def test_save_and_load(tmp_path, make_document, now):
    store = SQLiteSnapshotStore(tmp_path / "index.db")
    docs = [
        make_document("1", sections=2, keywords=("refund", "policy")),
        make_document("2", title="Billing SOP"),
    ]

    store.save(docs, now)
    loaded, last_sync = store.load()

    assert loaded == docs
    assert last_sync == now


def test_save_replaces_previous_snapshot(tmp_path, make_document, now):
    store = SQLiteSnapshotStore(tmp_path / "index.db")
    store.save([make_document("1"), make_document("2")], now)
    store.save([make_document("3")], None)

    loaded, last_sync = store.load()

    assert [doc.id for doc in loaded] == ["3"]
    assert last_sync is None


def test_corrupt_payload_raises_storage_error(tmp_path, make_document, now):
    db_file = tmp_path / "index.db"
    store = SQLiteSnapshotStore(db_file)
    store.save([make_document("1")], now)

    with sqlite3.connect(db_file) as conn:
        conn.execute("UPDATE documents SET payload = ? WHERE id = ?", ("{not json", "1"))

    with pytest.raises(StorageError):
        store.load()


def test_unwritable_database_raises_storage_error(tmp_path):
    # A directory where the database file should be cannot be opened
    db_path = tmp_path / "index.db"
    db_path.mkdir()

    with pytest.raises(StorageError):
        SQLiteSnapshotStore(db_path)
