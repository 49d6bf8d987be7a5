import logging
import sqlite3
import struct
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import sqlite_vec

from clipai.config import DB_PATH, MS_PER_DAY
from clipai.errors import StorageError, VectorExtensionError, VectorSearchUnavailableError
from clipai.models import ClipboardItem, ContentType, SearchResult, StoreStats, now_ms

logger = logging.getLogger(__name__)

ACTIVE_TABLE = "clipboard_items"
ARCHIVE_TABLE = "archived_items"

ITEM_COLUMNS = (
    "type",
    "text",
    "image",
    "file_path",
    "file_name",
    "timestamp",
    "embedding",
    "embedding_model",
    "embedding_dim",
    "created_at",
)

SCHEMA = """
CREATE TABLE IF NOT EXISTS clipboard_items (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    type            TEXT NOT NULL CHECK(type IN ('text', 'image', 'file')),
    text            TEXT,
    image           TEXT,
    file_path       TEXT,
    file_name       TEXT,
    timestamp       INTEGER NOT NULL,
    embedding       BLOB,
    embedding_model TEXT,
    embedding_dim   INTEGER,
    created_at      TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S', 'now'))
);

CREATE INDEX IF NOT EXISTS idx_timestamp ON clipboard_items(timestamp DESC);
CREATE INDEX IF NOT EXISTS idx_type ON clipboard_items(type);

CREATE TABLE IF NOT EXISTS archived_items (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    original_id     INTEGER,
    type            TEXT NOT NULL CHECK(type IN ('text', 'image', 'file')),
    text            TEXT,
    image           TEXT,
    file_path       TEXT,
    file_name       TEXT,
    timestamp       INTEGER NOT NULL,
    embedding       BLOB,
    embedding_model TEXT,
    embedding_dim   INTEGER,
    created_at      TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S', 'now')),
    archived_at     INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_archived_timestamp ON archived_items(timestamp DESC);
CREATE INDEX IF NOT EXISTS idx_archived_type ON archived_items(type);
"""

# Columns that databases created before file and embedding-model support lack
_MIGRATED_COLUMNS = {
    "file_path": "TEXT",
    "file_name": "TEXT",
    "embedding_model": "TEXT",
    "embedding_dim": "INTEGER",
}


def encode_embedding(embedding: list[float] | None) -> bytes | None:
    if not embedding:
        return None
    return sqlite_vec.serialize_float32(embedding)


def decode_embedding(blob: bytes | None) -> list[float] | None:
    if blob is None:
        return None
    blob = bytes(blob)
    return list(struct.unpack(f"{len(blob) // 4}f", blob))


class StorageManager:
    """SQLite-backed store for active and archived clipboard items.

    Both tables share one connection guarded by a lock, so the capture thread
    and callers on other threads are serialized onto a single writer.
    """

    def __init__(self, db_path: str | Path | None = None, require_vector: bool = True):
        self._db_path = str(db_path) if db_path else str(DB_PATH)
        self._lock = threading.RLock()
        try:
            self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open database at {self._db_path}: {e}") from e
        self._conn.row_factory = sqlite3.Row
        self._vector_enabled = False
        try:
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._open_vector_extension(require_vector)
            self.init_db()
        except sqlite3.Error as e:
            self._conn.close()
            raise StorageError(f"Cannot initialize database at {self._db_path}: {e}") from e
        except StorageError:
            self._conn.close()
            raise
        logger.info("Database ready at %s", self._db_path)

    def _open_vector_extension(self, required: bool) -> None:
        try:
            self._load_vector_extension()
        except VectorExtensionError:
            if required:
                raise
            logger.warning("sqlite-vec unavailable; semantic search disabled")

    def _load_vector_extension(self) -> None:
        try:
            self._conn.enable_load_extension(True)
            sqlite_vec.load(self._conn)
            self._conn.enable_load_extension(False)
        except (AttributeError, sqlite3.Error) as e:
            raise VectorExtensionError(f"Failed to load sqlite-vec extension: {e}") from e
        self._vector_enabled = True
        logger.debug("sqlite-vec extension loaded")

    @property
    def vector_enabled(self) -> bool:
        return self._vector_enabled

    def init_db(self) -> None:
        with self._lock:
            try:
                self._conn.executescript(SCHEMA)
                self._migrate_schema()
                self._conn.commit()
            except sqlite3.Error as e:
                raise StorageError(f"Failed to initialize schema: {e}") from e

    def _migrate_schema(self) -> None:
        """Add new columns to existing databases."""
        for table in (ACTIVE_TABLE, ARCHIVE_TABLE):
            cursor = self._conn.execute(f"PRAGMA table_info({table})")
            columns = {row[1] for row in cursor.fetchall()}
            for column, column_type in _MIGRATED_COLUMNS.items():
                if column not in columns:
                    self._conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {column_type}")

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                with self._conn:
                    yield self._conn
            except sqlite3.Error as e:
                raise StorageError(str(e)) from e

    def _query(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        with self._lock:
            try:
                return self._conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise StorageError(str(e)) from e

    # -- active items ---------------------------------------------------

    def add_item(self, item: ClipboardItem) -> int:
        embedding = encode_embedding(item.embedding)
        with self._transaction() as conn:
            cursor = conn.execute(
                """INSERT INTO clipboard_items
                   (type, text, image, file_path, file_name, timestamp, embedding, embedding_model, embedding_dim)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    item.type.value,
                    item.text,
                    item.image,
                    item.file_path,
                    item.file_name,
                    item.timestamp,
                    embedding,
                    item.embedding_model if embedding else None,
                    len(item.embedding) if embedding else None,
                ),
            )
        return cursor.lastrowid

    def get_items(self, limit: int = 1000, offset: int = 0) -> list[ClipboardItem]:
        return self._list(ACTIVE_TABLE, limit, offset)

    def get_item_by_id(self, item_id: int) -> ClipboardItem | None:
        return self._get(ACTIVE_TABLE, item_id)

    def get_latest_item(self) -> ClipboardItem | None:
        items = self._list(ACTIVE_TABLE, 1, 0)
        return items[0] if items else None

    def delete_item(self, item_id: int) -> bool:
        return self._delete(ACTIVE_TABLE, item_id)

    def clear_all_history(self) -> None:
        with self._transaction() as conn:
            conn.execute("DELETE FROM clipboard_items")
        logger.info("All clipboard items cleared")

    def count(self) -> int:
        return self._query("SELECT COUNT(*) AS cnt FROM clipboard_items")[0]["cnt"]

    def get_stats(self) -> StoreStats:
        return self._stats(ACTIVE_TABLE)

    def search_items(self, query: str, limit: int = 100) -> list[ClipboardItem]:
        return self._search(ACTIVE_TABLE, query, limit)

    def update_item_embedding(self, item_id: int, embedding: list[float], model: str | None = None) -> bool:
        blob = encode_embedding(embedding)
        with self._transaction() as conn:
            cursor = conn.execute(
                """UPDATE clipboard_items
                   SET embedding = ?, embedding_model = ?, embedding_dim = ?
                   WHERE id = ? AND type = 'text'""",
                (blob, model if blob else None, len(embedding) if blob else None, item_id),
            )
        return cursor.rowcount > 0

    def semantic_search(self, query_vector: list[float], limit: int = 10, model: str | None = None) -> list[SearchResult]:
        return self._semantic_search(ACTIVE_TABLE, query_vector, limit, model)

    # -- archive ----------------------------------------------------------

    def archive_old_items(self, retention_days: int, now: int | None = None) -> int:
        """Move active items older than ``retention_days`` into the archive.

        A retention period of zero or less disables archival. The copy and the
        delete run in one transaction, so a failure leaves both tables as they
        were.
        """
        if retention_days <= 0:
            return 0
        now = now if now is not None else now_ms()
        cutoff = now - retention_days * MS_PER_DAY
        columns = ", ".join(ITEM_COLUMNS)
        with self._transaction() as conn:
            conn.execute(
                f"""INSERT INTO archived_items (original_id, {columns}, archived_at)
                    SELECT id, {columns}, ? FROM clipboard_items
                    WHERE timestamp < ?
                    ORDER BY timestamp ASC, id ASC""",
                (now, cutoff),
            )
            cursor = conn.execute("DELETE FROM clipboard_items WHERE timestamp < ?", (cutoff,))
        moved = cursor.rowcount
        if moved:
            logger.info("Archived %d items older than %d days", moved, retention_days)
        return moved

    def get_archived_items(self, limit: int = 1000, offset: int = 0) -> list[ClipboardItem]:
        return self._list(ARCHIVE_TABLE, limit, offset)

    def get_archived_item_by_id(self, item_id: int) -> ClipboardItem | None:
        return self._get(ARCHIVE_TABLE, item_id)

    def unarchive_item(self, item_id: int) -> bool:
        """Move one archived item back into active history.

        The item gets its pre-archive id back when that id is still free.
        """
        columns = ", ".join(ITEM_COLUMNS)
        with self._transaction() as conn:
            row = conn.execute("SELECT original_id FROM archived_items WHERE id = ?", (item_id,)).fetchone()
            if row is None:
                return False
            original_id = row["original_id"]
            taken = original_id is None or conn.execute(
                "SELECT 1 FROM clipboard_items WHERE id = ?", (original_id,)
            ).fetchone() is not None
            if taken:
                conn.execute(
                    f"INSERT INTO clipboard_items ({columns}) SELECT {columns} FROM archived_items WHERE id = ?",
                    (item_id,),
                )
            else:
                conn.execute(
                    f"INSERT INTO clipboard_items (id, {columns}) SELECT original_id, {columns} FROM archived_items WHERE id = ?",
                    (item_id,),
                )
            conn.execute("DELETE FROM archived_items WHERE id = ?", (item_id,))
        logger.info("Unarchived item %d", item_id)
        return True

    def delete_archived_item(self, item_id: int) -> bool:
        return self._delete(ARCHIVE_TABLE, item_id)

    def clear_archive(self) -> None:
        with self._transaction() as conn:
            conn.execute("DELETE FROM archived_items")
        logger.info("Archive cleared")

    def get_archive_stats(self) -> StoreStats:
        return self._stats(ARCHIVE_TABLE)

    def search_archive(self, query: str, limit: int = 100) -> list[ClipboardItem]:
        return self._search(ARCHIVE_TABLE, query, limit)

    def semantic_search_archive(self, query_vector: list[float], limit: int = 10, model: str | None = None) -> list[SearchResult]:
        return self._semantic_search(ARCHIVE_TABLE, query_vector, limit, model)

    # -- shared table operations ------------------------------------------

    def _list(self, table: str, limit: int, offset: int) -> list[ClipboardItem]:
        rows = self._query(
            f"SELECT * FROM {table} ORDER BY timestamp DESC, id DESC LIMIT ? OFFSET ?",
            (max(limit, 0), max(offset, 0)),
        )
        return [self._row_to_item(r) for r in rows]

    def _get(self, table: str, item_id: int) -> ClipboardItem | None:
        rows = self._query(f"SELECT * FROM {table} WHERE id = ?", (item_id,))
        return self._row_to_item(rows[0]) if rows else None

    def _delete(self, table: str, item_id: int) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute(f"DELETE FROM {table} WHERE id = ?", (item_id,))
        return cursor.rowcount > 0

    def _stats(self, table: str) -> StoreStats:
        rows = self._query(f"SELECT type, COUNT(*) AS cnt FROM {table} GROUP BY type")
        by_type = {t.value: 0 for t in ContentType}
        for row in rows:
            by_type[row["type"]] = row["cnt"]
        with_embedding = self._query(f"SELECT COUNT(*) AS cnt FROM {table} WHERE embedding IS NOT NULL")[0]["cnt"]
        return StoreStats(total=sum(by_type.values()), by_type=by_type, with_embedding=with_embedding)

    def _search(self, table: str, query: str, limit: int) -> list[ClipboardItem]:
        if not query.strip():
            return []
        rows = self._query(
            f"""SELECT * FROM {table}
                WHERE text LIKE ? ESCAPE '\\'
                ORDER BY timestamp DESC, id DESC
                LIMIT ?""",
            (f"%{self._escape_like(query)}%", max(limit, 0)),
        )
        return [self._row_to_item(r) for r in rows]

    def _semantic_search(self, table: str, query_vector: list[float], limit: int, model: str | None) -> list[SearchResult]:
        if not self._vector_enabled:
            raise VectorSearchUnavailableError("Semantic search is not supported: sqlite-vec is not loaded")
        if not query_vector:
            return []
        sql = f"""SELECT *, vec_distance_cosine(embedding, ?) AS distance FROM {table}
                  WHERE embedding IS NOT NULL AND embedding_dim = ?"""
        params: list = [encode_embedding(query_vector), len(query_vector)]
        if model is not None:
            sql += " AND (embedding_model = ? OR embedding_model IS NULL)"
            params.append(model)
        sql += " ORDER BY distance ASC, id ASC LIMIT ?"
        params.append(max(limit, 0))
        rows = self._query(sql, tuple(params))
        return [SearchResult(item=self._row_to_item(r), distance=r["distance"]) for r in rows]

    def close(self) -> None:
        with self._lock:
            self._conn.close()
        logger.info("Database closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    @staticmethod
    def _escape_like(query: str) -> str:
        return query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")

    def _row_to_item(self, row: sqlite3.Row) -> ClipboardItem:
        keys = row.keys()
        return ClipboardItem(
            id=row["id"],
            type=ContentType(row["type"]),
            timestamp=row["timestamp"],
            text=row["text"],
            image=row["image"],
            file_path=row["file_path"],
            file_name=row["file_name"],
            embedding=decode_embedding(row["embedding"]),
            embedding_model=row["embedding_model"],
            created_at=row["created_at"],
            original_id=row["original_id"] if "original_id" in keys else None,
            archived_at=row["archived_at"] if "archived_at" in keys else None,
        )
