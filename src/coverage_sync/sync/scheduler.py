"""Periodic trigger for the sync orchestrator.

Deciding *when* to sync belongs to the host; this runner is the simple
fixed-interval loop used by the service when ``sync_interval_seconds > 0``.
Triggers go through :meth:`SyncOrchestrator.run`, which is single-flight, so
a slow run is never overlapped by the next tick.
"""

from __future__ import annotations

import asyncio
import logging

from src.coverage_sync.base import PersistenceError
from src.coverage_sync.sync.orchestrator import SyncOrchestrator

logger = logging.getLogger("coverage_sync.sync.scheduler")


class PeriodicSyncRunner:
    """Run the orchestrator every ``interval_seconds`` until stopped."""

    def __init__(self, orchestrator: SyncOrchestrator, interval_seconds: float) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._orchestrator = orchestrator
        self._interval = interval_seconds
        self._stop = asyncio.Event()
        self._task: asyncio.Task | None = None
        self.runs = 0

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._stop.clear()
            self._task = asyncio.create_task(self._loop())
            logger.info("Periodic sync started (every %.0fs)", self._interval)

    async def stop(self) -> None:
        self._stop.set()
        if self._task is not None:
            await self._task
            self._task = None
        logger.info("Periodic sync stopped after %d runs", self.runs)

    async def _loop(self) -> None:
        while not self._stop.is_set():
            try:
                await self._orchestrator.run()
            except PersistenceError:
                # Retried on the next tick.
                logger.exception("Sync run aborted: durable store failed")
            except Exception:
                logger.exception("Sync run failed unexpectedly")
            self.runs += 1
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass
