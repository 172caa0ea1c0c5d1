"""Per-install preferences file used for the credential cache and device id.

A small JSON object on disk.  Writes go to a temporary sibling file that is
then renamed over the original, so a crash mid-write leaves the previous
contents intact.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path

from src.coverage_sync.base import KeyValueStore, PersistenceError

logger = logging.getLogger("coverage_sync.adapters.kv_store")


class JsonFileKeyValueStore(KeyValueStore):
    """:class:`KeyValueStore` persisted as a flat JSON object."""

    def __init__(self, path: str) -> None:
        self._path = Path(path)
        self._lock = asyncio.Lock()

    def _read(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8") or "{}")
        except (OSError, ValueError) as exc:
            raise PersistenceError(f"Cannot read preferences {self._path}: {exc}") from exc
        if not isinstance(data, dict):
            raise PersistenceError(f"Preferences file {self._path} is not a JSON object")
        return data

    def _write(self, data: dict[str, str]) -> None:
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(data, sort_keys=True), encoding="utf-8")
            os.replace(tmp, self._path)
        except OSError as exc:
            raise PersistenceError(f"Cannot write preferences {self._path}: {exc}") from exc

    async def get(self, key: str) -> str | None:
        async with self._lock:
            value = (await asyncio.to_thread(self._read)).get(key)
        return value if isinstance(value, str) else None

    async def set(self, key: str, value: str) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            data[key] = value
            await asyncio.to_thread(self._write, data)

    async def delete(self, key: str) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            if key in data:
                del data[key]
                await asyncio.to_thread(self._write, data)
