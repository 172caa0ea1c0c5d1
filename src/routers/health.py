"""Health check endpoint — public, no auth required."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter

from src.dependencies import AppSettings, Orchestrator

router = APIRouter(tags=["system"])
logger = logging.getLogger("coverage_sync.health")


@router.get("/health")
async def health_check(settings: AppSettings, orchestrator: Orchestrator) -> dict:
    """Liveness probe. Returns 200 if the process is up.

    Also reports the backlog depth; an unreadable queue marks the service
    as degraded.
    """
    backlog: int | None = None
    try:
        backlog = await orchestrator.queue.count()
    except Exception as exc:
        logger.warning("Health check queue probe failed: %s", exc)

    return {
        "status": "healthy" if backlog is not None else "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "backlog": backlog,
        "sync_running": orchestrator.is_running,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
