"""Bounded, durable FIFO of records waiting to be delivered.

The queue sits on top of a :class:`RecordStore` and adds the policy:

- capacity is enforced on every insert by evicting the *oldest* entries
  first, so a device that stays offline for days keeps its freshest data;
- ``enqueued_at`` never goes backwards, even if the wall clock does;
- entries leave the queue only through :meth:`DurableQueue.remove` (after a
  confirmed submission), eviction, or the administrative :meth:`clear`.

Usage::

    queue = DurableQueue(SQLiteRecordStore("data/queue.db"), capacity=100)
    entry_id = await queue.enqueue({"latitude": 52.1, "download_speed": None})
    for entry in await queue.snapshot_ordered():
        ...
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Callable

from src.coverage_sync.base import (
    MeasurementRecord,
    PersistenceError,
    QueueEntry,
    RecordStore,
    validate_record,
)

logger = logging.getLogger("coverage_sync.queue")

DEFAULT_CAPACITY = 100


def _now_ms() -> float:
    return time.time() * 1000.0


class DurableQueue:
    """Capacity-limited FIFO with drop-oldest overflow."""

    def __init__(
        self,
        store: RecordStore,
        capacity: int = DEFAULT_CAPACITY,
        clock: Callable[[], float] = _now_ms,
    ) -> None:
        """Initialize the queue.

        Args:
            store:    Persistence collaborator.
            capacity: Maximum number of entries kept (must be >= 1).
            clock:    Returns the current time in epoch milliseconds.
        """
        if not isinstance(capacity, int) or capacity < 1:
            raise ValueError(f"capacity must be a positive integer, got {capacity!r}")
        self._store = store
        self._capacity = capacity
        self._clock = clock
        self._last_enqueued_at: float | None = None
        self._lock = asyncio.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    async def enqueue(self, record: MeasurementRecord) -> str:
        """Append a record, evicting the oldest entries if the queue is full.

        Args:
            record: Flat measurement record.

        Returns:
            The id of the new entry.

        Raises:
            PersistenceError: If the store fails.
            ValueError:       If the record is not flat/scalar.
        """
        validate_record(record)
        payload = json.dumps(record, separators=(",", ":"), allow_nan=False)

        async with self._lock:
            size = await self._store.count()
            if size >= self._capacity:
                excess = max(0, size - self._capacity + 1)
                removed = await self._store.delete_oldest(excess)
                logger.warning(
                    "Queue at capacity (%d/%d): evicted %d oldest entr%s",
                    size, self._capacity, removed, "y" if removed == 1 else "ies",
                )

            if self._last_enqueued_at is None:
                # Entries left by a previous process still bound the clock.
                rows = await self._store.list_all_ordered()
                self._last_enqueued_at = rows[-1].enqueued_at if rows else 0.0

            enqueued_at = max(self._clock(), self._last_enqueued_at)
            entry_id = await self._store.append(payload, enqueued_at)
            self._last_enqueued_at = enqueued_at

        logger.debug("Enqueued %s at %.0f", entry_id, enqueued_at)
        return entry_id

    async def snapshot_ordered(self) -> list[QueueEntry]:
        """Return all entries oldest first, without modifying the queue."""
        rows = await self._store.list_all_ordered()
        entries: list[QueueEntry] = []
        for row in rows:
            try:
                record = json.loads(row.payload)
            except ValueError as exc:
                raise PersistenceError(f"Corrupt queue entry {row.id}: {exc}") from exc
            entries.append(
                QueueEntry(
                    id=row.id,
                    record=record,
                    enqueued_at=row.enqueued_at,
                    seq=row.seq,
                )
            )
        return entries

    async def remove(self, entry_id: str) -> None:
        """Delete one entry.  Removing an unknown id is a no-op."""
        async with self._lock:
            await self._store.delete_by_id(entry_id)

    async def count(self) -> int:
        return await self._store.count()

    async def clear(self) -> None:
        """Remove every entry (administrative; not used by the sync path)."""
        async with self._lock:
            await self._store.delete_all()
        logger.info("Queue cleared")
