"""SQLite adapter persisting the published index snapshot."""

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path

from ...core.domain import ProcedureDocument
from ...core.domain.exceptions import StorageError
from ...core.ports import SnapshotStorePort

logger = logging.getLogger(__name__)

LAST_SYNC_KEY = "last_sync"


class SQLiteSnapshotStore(SnapshotStorePort):
    """Stores each document as JSON keyed by id, plus a small metadata table.

    ``save`` replaces the whole snapshot in one transaction so a crash never
    leaves a mix of two generations on disk.
    """

    def __init__(self, db_path: str | Path = "data/sop_index.db") -> None:
        """Initialize the store.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = Path(db_path)
        self._ensure_db_dir()
        self._init_db()

    def _ensure_db_dir(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _init_db(self) -> None:
        """Initialize the database schema."""
        try:
            with sqlite3.connect(self.db_path) as conn:
                cursor = conn.cursor()

                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS documents (
                        id TEXT PRIMARY KEY,
                        version INTEGER NOT NULL,
                        payload TEXT NOT NULL
                    )
                """)

                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS meta (
                        key TEXT PRIMARY KEY,
                        value TEXT
                    )
                """)

                conn.commit()

        except sqlite3.Error as e:
            logger.error(f"Failed to initialize snapshot store: {e}")
            raise StorageError(
                "Could not initialize snapshot store",
                cause=e,
                context={"db_path": str(self.db_path)},
            ) from e

    def save(self, documents: list[ProcedureDocument], last_sync: datetime | None) -> None:
        """Replace the stored snapshot.

        Args:
            documents: Every document of the snapshot.
            last_sync: Sync time of the snapshot, if any.

        Raises:
            StorageError: If the write fails; the previous snapshot is kept.
        """
        try:
            with sqlite3.connect(self.db_path) as conn:
                cursor = conn.cursor()
                cursor.execute("DELETE FROM documents")
                cursor.executemany(
                    "INSERT INTO documents (id, version, payload) VALUES (?, ?, ?)",
                    [(doc.id, doc.version, json.dumps(doc.to_dict())) for doc in documents],
                )
                cursor.execute(
                    "INSERT OR REPLACE INTO meta (key, value) VALUES (?, ?)",
                    (LAST_SYNC_KEY, last_sync.isoformat() if last_sync else None),
                )
                conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Failed to save snapshot: {e}")
            raise StorageError(
                "Could not save index snapshot",
                cause=e,
                context={"db_path": str(self.db_path), "documents": len(documents)},
            ) from e

        logger.debug(f"Saved {len(documents)} documents to {self.db_path}")

    def load(self) -> tuple[list[ProcedureDocument], datetime | None] | None:
        """Return the stored documents and sync time, or None if nothing was saved."""
        try:
            with sqlite3.connect(self.db_path) as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT value FROM meta WHERE key = ?", (LAST_SYNC_KEY,))
                meta_row = cursor.fetchone()
                if meta_row is None:
                    return None

                cursor.execute("SELECT payload FROM documents ORDER BY id")
                rows = cursor.fetchall()
        except sqlite3.Error as e:
            logger.error(f"Failed to load snapshot: {e}")
            raise StorageError(
                "Could not load index snapshot",
                cause=e,
                context={"db_path": str(self.db_path)},
            ) from e

        try:
            documents = [ProcedureDocument.from_dict(json.loads(payload)) for (payload,) in rows]
        except (ValueError, KeyError) as e:
            raise StorageError(
                "Stored snapshot is corrupt", cause=e, context={"db_path": str(self.db_path)}
            ) from e

        last_sync = datetime.fromisoformat(meta_row[0]) if meta_row[0] else None
        return documents, last_sync
