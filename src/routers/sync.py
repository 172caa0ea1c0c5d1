"""Sync trigger and backlog inspection endpoints."""

from __future__ import annotations

import dataclasses
from typing import Any

from fastapi import APIRouter, HTTPException

from src.coverage_sync.base import PersistenceError
from src.dependencies import Orchestrator
from src.models.base import ErrorDetail
from src.models.sync import QueueRead, SyncReportRead

router = APIRouter(prefix="/sync", tags=["sync"])


@router.post("/run", response_model=SyncReportRead, responses={503: {"model": ErrorDetail}})
async def run_sync(orchestrator: Orchestrator) -> Any:
    """Run one sync invocation, or join the one already in progress."""
    try:
        report = await orchestrator.run()
    except PersistenceError as exc:
        raise HTTPException(status_code=503, detail=f"Local storage failure: {exc}") from exc
    return dataclasses.asdict(report)


@router.get("/queue", response_model=QueueRead)
async def read_queue(orchestrator: Orchestrator) -> Any:
    entries = await orchestrator.queue.snapshot_ordered()
    return {
        "count": len(entries),
        "capacity": orchestrator.queue.capacity,
        "entries": [
            {"id": e.id, "enqueued_at": e.enqueued_at, "record": e.record} for e in entries
        ],
    }


@router.delete("/queue", status_code=204)
async def clear_queue(orchestrator: Orchestrator) -> None:
    """Drop the whole backlog (administrative)."""
    await orchestrator.queue.clear()
