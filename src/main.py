"""Coverage Sync service — FastAPI application entry point.

Run locally:
    uvicorn src.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from src.config import get_settings
from src.coverage_sync.sync.scheduler import PeriodicSyncRunner
from src.routers import health, sync
from src.services.sync_runtime import close_runtime, init_runtime

# ---------- Logging ----------

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger("coverage_sync")


# ---------- Lifespan ----------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup / shutdown hooks."""
    settings = get_settings()
    logger.info(
        "Starting Coverage Sync v%s [%s]",
        settings.app_version,
        settings.environment,
    )
    orchestrator = await init_runtime(settings)
    runner: PeriodicSyncRunner | None = None
    if settings.sync_interval_seconds > 0:
        runner = PeriodicSyncRunner(orchestrator, settings.sync_interval_seconds)
        runner.start()
    yield
    if runner is not None:
        await runner.stop()
    await close_runtime()
    logger.info("Coverage Sync shut down")


# ---------- App factory ----------

def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description=(
            "On-device coverage telemetry collection with offline buffering "
            "and ordered, at-least-once delivery to the coverage backend."
        ),
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
    )

    # ---------- Health check (always at /health) ----------
    app.include_router(health.router)

    # ---------- API v1 routes ----------
    app.include_router(sync.router, prefix="/api/v1")

    return app


app = create_app()
