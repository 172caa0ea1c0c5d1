"""In-memory stores.

Used in tests and by hosts that do not need the backlog or the credential to
survive a restart.  Behaviour matches the durable implementations exactly,
including ordering and idempotent deletes.
"""

from __future__ import annotations

import itertools
import uuid

from src.coverage_sync.base import KeyValueStore, RecordStore, StoredRow


class InMemoryRecordStore(RecordStore):
    """List-backed :class:`RecordStore`."""

    def __init__(self) -> None:
        self._rows: list[StoredRow] = []
        self._seq = itertools.count(1)

    async def append(self, payload: str, enqueued_at: float) -> str:
        entry_id = str(uuid.uuid4())
        self._rows.append(
            StoredRow(id=entry_id, payload=payload, enqueued_at=enqueued_at, seq=next(self._seq))
        )
        return entry_id

    async def list_all_ordered(self) -> list[StoredRow]:
        return sorted(self._rows, key=lambda r: (r.enqueued_at, r.seq))

    async def delete_by_id(self, entry_id: str) -> None:
        self._rows = [r for r in self._rows if r.id != entry_id]

    async def count(self) -> int:
        return len(self._rows)

    async def delete_oldest(self, n: int) -> int:
        if n <= 0:
            return 0
        doomed = {r.id for r in (await self.list_all_ordered())[:n]}
        self._rows = [r for r in self._rows if r.id not in doomed]
        return len(doomed)

    async def delete_all(self) -> None:
        self._rows.clear()


class InMemoryKeyValueStore(KeyValueStore):
    """Dict-backed :class:`KeyValueStore`."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)
