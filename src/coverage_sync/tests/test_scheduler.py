"""Tests for the periodic sync runner."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.coverage_sync.base import PersistenceError, SyncReport
from src.coverage_sync.queue import DurableQueue
from src.coverage_sync.sync.orchestrator import SyncOrchestrator
from src.coverage_sync.sync.scheduler import PeriodicSyncRunner
from src.coverage_sync.tests.conftest import FakeProbe


class TestPeriodicSyncRunner:
    def test_rejects_non_positive_interval(self) -> None:
        with pytest.raises(ValueError):
            PeriodicSyncRunner(MagicMock(), 0)

    @pytest.mark.asyncio
    async def test_runs_until_stopped(
        self, orchestrator: SyncOrchestrator, probe: FakeProbe, queue: DurableQueue
    ) -> None:
        probe.online = False
        runner = PeriodicSyncRunner(orchestrator, interval_seconds=0.01)

        runner.start()
        await asyncio.sleep(0.05)
        await runner.stop()

        assert runner.runs >= 2
        assert await queue.count() == runner.runs

    @pytest.mark.asyncio
    async def test_storage_failure_does_not_stop_loop(self) -> None:
        orchestrator = MagicMock()
        orchestrator.run = AsyncMock(side_effect=[PersistenceError("disk full"), SyncReport()] * 10)
        runner = PeriodicSyncRunner(orchestrator, interval_seconds=0.01)

        runner.start()
        await asyncio.sleep(0.05)
        await runner.stop()

        assert orchestrator.run.await_count >= 2

    @pytest.mark.asyncio
    async def test_unexpected_error_does_not_stop_loop(self) -> None:
        orchestrator = MagicMock()
        orchestrator.run = AsyncMock(side_effect=RuntimeError("unexpected"))
        runner = PeriodicSyncRunner(orchestrator, interval_seconds=0.01)

        runner.start()
        await asyncio.sleep(0.1)
        await runner.stop()

        assert orchestrator.run.await_count > 1
        assert runner.runs == orchestrator.run.await_count
