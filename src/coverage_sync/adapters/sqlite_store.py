"""SQLite-backed record store for the offline queue.

Records are written to disk the moment they are enqueued so a power loss or
process restart never drops backlog.  Ordering uses ``(enqueued_at, seq)``
where ``seq`` is an AUTOINCREMENT rowid, which gives a stable tie-break for
entries stamped within the same millisecond.

Table:
    offline_measurements(seq INTEGER PK AUTOINCREMENT, id TEXT UNIQUE,
                         payload TEXT, enqueued_at REAL)
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import uuid
from pathlib import Path

import aiosqlite

from src.coverage_sync.base import PersistenceError, RecordStore, StoredRow

logger = logging.getLogger("coverage_sync.adapters.sqlite")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS offline_measurements (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    payload TEXT NOT NULL,
    enqueued_at REAL NOT NULL
)
"""

_INDEX = """
CREATE INDEX IF NOT EXISTS idx_offline_order
ON offline_measurements(enqueued_at ASC, seq ASC)
"""


class SQLiteRecordStore(RecordStore):
    """Durable :class:`RecordStore` on a local SQLite file.

    The connection is opened lazily on first use; call :meth:`close` at
    shutdown.  Every engine failure surfaces as :class:`PersistenceError`.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None
        self._init_lock = asyncio.Lock()

    async def _conn(self) -> aiosqlite.Connection:
        if self._db is not None:
            return self._db
        async with self._init_lock:
            if self._db is None:
                try:
                    if self._db_path != ":memory:":
                        Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
                    db = await aiosqlite.connect(self._db_path)
                except (sqlite3.Error, OSError) as exc:
                    raise PersistenceError(
                        f"Cannot open queue database {self._db_path}: {exc}"
                    ) from exc
                try:
                    await db.execute("PRAGMA journal_mode=WAL")
                    await db.execute("PRAGMA synchronous=NORMAL")
                    await db.execute(_SCHEMA)
                    await db.execute(_INDEX)
                    await db.commit()
                except sqlite3.Error as exc:
                    await db.close()
                    raise PersistenceError(
                        f"Cannot open queue database {self._db_path}: {exc}"
                    ) from exc
                self._db = db
                logger.info("Opened queue database %s", self._db_path)
        return self._db

    async def append(self, payload: str, enqueued_at: float) -> str:
        entry_id = str(uuid.uuid4())
        db = await self._conn()
        try:
            await db.execute(
                "INSERT INTO offline_measurements (id, payload, enqueued_at) VALUES (?, ?, ?)",
                (entry_id, payload, enqueued_at),
            )
            await db.commit()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to append queue entry: {exc}") from exc
        return entry_id

    async def list_all_ordered(self) -> list[StoredRow]:
        db = await self._conn()
        try:
            cursor = await db.execute(
                "SELECT id, payload, enqueued_at, seq FROM offline_measurements "
                "ORDER BY enqueued_at ASC, seq ASC"
            )
            rows = await cursor.fetchall()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to read queue: {exc}") from exc
        return [
            StoredRow(id=row[0], payload=row[1], enqueued_at=row[2], seq=row[3])
            for row in rows
        ]

    async def delete_by_id(self, entry_id: str) -> None:
        db = await self._conn()
        try:
            await db.execute("DELETE FROM offline_measurements WHERE id = ?", (entry_id,))
            await db.commit()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to delete queue entry {entry_id}: {exc}") from exc

    async def count(self) -> int:
        db = await self._conn()
        try:
            cursor = await db.execute("SELECT COUNT(*) FROM offline_measurements")
            row = await cursor.fetchone()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to count queue entries: {exc}") from exc
        return int(row[0])

    async def delete_oldest(self, n: int) -> int:
        if n <= 0:
            return 0
        db = await self._conn()
        try:
            cursor = await db.execute(
                "DELETE FROM offline_measurements WHERE seq IN ("
                "SELECT seq FROM offline_measurements "
                "ORDER BY enqueued_at ASC, seq ASC LIMIT ?)",
                (n,),
            )
            await db.commit()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to evict {n} oldest entries: {exc}") from exc
        return cursor.rowcount

    async def delete_all(self) -> None:
        db = await self._conn()
        try:
            await db.execute("DELETE FROM offline_measurements")
            await db.commit()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to clear queue: {exc}") from exc

    async def close(self) -> None:
        """Close the database connection."""
        if self._db is not None:
            await self._db.close()
            self._db = None
            logger.info("Closed queue database %s", self._db_path)
