"""Sync orchestrator: the per-invocation state machine.

Each run walks these states::

    PROBING ──offline──▶ OFFLINE_PERSIST ──────────────▶ DONE
       │
       └─online──▶ RESOLVING_KEY ──no key──▶ KEY_FAILED_PERSIST ──▶ DONE
                        │
                        └─key──▶ SYNCING ──▶ DONE

In SYNCING the backlog is drained oldest first, one submission at a time,
and the drain stops at the first failure so delivery order is preserved.
The fresh record is then attempted regardless of how the drain went; if it
fails it joins the tail of the queue.

Queue entries are removed only after the server acknowledged them, so an
interrupted run re-sends at most the entry that was in flight
(at-least-once delivery).  Expected failures (no network, no key, failed
sends) never escape :meth:`SyncOrchestrator.run`; a
:class:`PersistenceError` does, because nothing below the queue can save the
record.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum

from src.coverage_sync.base import (
    ConnectivityError,
    ConnectivityProbe,
    MeasurementProvider,
    MeasurementRecord,
    RemoteSyncClient,
    SubmissionError,
    SyncReport,
)
from src.coverage_sync.credentials import CredentialManager
from src.coverage_sync.queue import DurableQueue

logger = logging.getLogger("coverage_sync.sync.orchestrator")


class SyncState(str, Enum):
    PROBING = "PROBING"
    OFFLINE_PERSIST = "OFFLINE_PERSIST"
    RESOLVING_KEY = "RESOLVING_KEY"
    KEY_FAILED_PERSIST = "KEY_FAILED_PERSIST"
    SYNCING = "SYNCING"
    DONE = "DONE"


class SyncOrchestrator:
    """Ties connectivity, credential, queue and transmission together.

    Usage::

        orchestrator = SyncOrchestrator(
            probe=HttpConnectivityProbe(settings.base_url),
            credentials=CredentialManager(client, prefs),
            client=client,
            queue=DurableQueue(SQLiteRecordStore(settings.queue_db_path)),
            provider=provider,
            device_id=device_id,
        )
        report = await orchestrator.run()

    Concurrent calls to :meth:`run` on the same instance are single-flight:
    later callers wait for the run already in progress and get its report.
    """

    def __init__(
        self,
        probe: ConnectivityProbe,
        credentials: CredentialManager,
        client: RemoteSyncClient,
        queue: DurableQueue,
        provider: MeasurementProvider,
        device_id: str,
    ) -> None:
        self._probe = probe
        self._credentials = credentials
        self._client = client
        self._queue = queue
        self._provider = provider
        self._device_id = device_id
        self._inflight: asyncio.Task[SyncReport] | None = None

    @property
    def queue(self) -> DurableQueue:
        return self._queue

    @property
    def is_running(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    # ------------------------------------------------------------------
    # Public entry point
    # ------------------------------------------------------------------

    async def run(self) -> SyncReport:
        """Execute one sync invocation (or join the one in progress).

        Returns:
            Diagnostic report of the run.

        Raises:
            PersistenceError: If the durable queue itself fails.
        """
        task = self._inflight
        if task is None or task.done():
            task = asyncio.create_task(self._run_once())
            task.add_done_callback(self._clear_inflight)
            self._inflight = task
        else:
            logger.info("Sync already in progress; joining the running invocation")
        return await asyncio.shield(task)

    def _clear_inflight(self, task: asyncio.Task) -> None:
        if self._inflight is task:
            self._inflight = None
        # Every caller may have been cancelled.
        if not task.cancelled() and task.exception() is not None:
            logger.error("Sync run failed: %r", task.exception())

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    async def _run_once(self) -> SyncReport:
        report = SyncReport()
        self._enter(report, SyncState.PROBING)

        report.online = await self._probe_online()
        logger.info("Network available: %s", report.online)
        if not report.online:
            self._enter(report, SyncState.OFFLINE_PERSIST)
            await self._persist_offline_record(report)
            return await self._finish(report)

        self._enter(report, SyncState.RESOLVING_KEY)
        credential = await self._credentials.resolve(self._device_id)
        if credential is None:
            logger.error("Failed to obtain API key. Storing measurement offline.")
            self._enter(report, SyncState.KEY_FAILED_PERSIST)
            await self._persist_offline_record(report)
            return await self._finish(report)

        report.credential_ok = True
        self._enter(report, SyncState.SYNCING)
        record = await self._provider.collect(credential, True)
        logger.debug("Collected measurements: %s", record)

        await self._drain_backlog(credential, report)
        await self._send_current(credential, record, report)

        if report.credential_rejected:
            await self._credentials.invalidate()
        return await self._finish(report)

    async def _probe_online(self) -> bool:
        try:
            return bool(await self._probe.is_online())
        except ConnectivityError as exc:
            logger.info("Connectivity probe reported no transport: %s", exc)
        except Exception as exc:
            logger.warning("Connectivity probe raised %r; assuming offline", exc)
        return False

    async def _persist_offline_record(self, report: SyncReport) -> None:
        record = await self._provider.collect(None, False)
        await self._queue.enqueue(record)
        report.current_queued = True
        logger.info("Stored offline measurement. Total stored: %d", await self._queue.count())

    async def _drain_backlog(self, credential: str, report: SyncReport) -> None:
        backlog = await self._queue.snapshot_ordered()
        if not backlog:
            return
        logger.info("Found %d stored measurements to send", len(backlog))

        for entry in backlog:
            try:
                await self._client.submit_record(credential, entry.record)
            except SubmissionError as exc:
                report.drain_halted = True
                report.credential_rejected |= exc.is_auth_rejection
                logger.warning(
                    "Failed to send stored measurement %s: %s. Stopping batch send.",
                    entry.id, exc,
                )
                return
            await self._queue.remove(entry.id)
            report.backlog_sent += 1
            logger.info("Sent and deleted stored measurement %s", entry.id)

        logger.info("Sent all %d stored measurements", len(backlog))

    async def _send_current(
        self, credential: str, record: MeasurementRecord, report: SyncReport
    ) -> None:
        try:
            await self._client.submit_record(credential, record)
        except SubmissionError as exc:
            report.credential_rejected |= exc.is_auth_rejection
            logger.warning("Failed to send current measurement (%s). Storing offline.", exc)
            await self._queue.enqueue(record)
            report.current_queued = True
            return
        report.current_sent = True
        logger.info("Sent current measurement")

    async def _finish(self, report: SyncReport) -> SyncReport:
        self._enter(report, SyncState.DONE)
        report.backlog_remaining = await self._queue.count()
        logger.info(
            "Sync complete: backlog_sent=%d current_sent=%s queued=%s remaining=%d",
            report.backlog_sent, report.current_sent,
            report.current_queued, report.backlog_remaining,
        )
        return report

    @staticmethod
    def _enter(report: SyncReport, state: SyncState) -> None:
        report.states.append(state.value)
        report.final_state = state.value
        logger.debug("Sync state → %s", state.value)
