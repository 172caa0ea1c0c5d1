"""Process-wide sync runtime.

Builds the orchestrator and its collaborators from :class:`Settings` once at
app startup and tears them down at shutdown.  Route handlers reach the
orchestrator through :func:`get_orchestrator`.

The speed tester and connectivity probe share one ``httpx.AsyncClient`` so
connections are reused across runs.
"""

from __future__ import annotations

import logging

import httpx

from src.config import Settings, get_settings
from src.coverage_sync.adapters import (
    CoverageMeasurementProvider,
    HttpConnectivityProbe,
    HttpSyncClient,
    JsonFileKeyValueStore,
    SensorSnapshot,
    SpeedTester,
    SQLiteRecordStore,
    StaticSensorReader,
)
from src.coverage_sync.adapters.measurements import SensorReader
from src.coverage_sync.credentials import CredentialManager, get_or_create_device_id
from src.coverage_sync.queue import DurableQueue
from src.coverage_sync.record_schema import get_record_schema
from src.coverage_sync.sync.orchestrator import SyncOrchestrator

logger = logging.getLogger("coverage_sync.runtime")

# Module-level runtime — initialized once at app startup
_orchestrator: SyncOrchestrator | None = None
_store: SQLiteRecordStore | None = None
_http_client: httpx.AsyncClient | None = None


async def init_runtime(
    settings: Settings | None = None, sensors: SensorReader | None = None
) -> SyncOrchestrator:
    """Create the orchestrator and its collaborators.  Call once at startup.

    Args:
        settings: Override settings (defaults to :func:`get_settings`).
        sensors:  Platform sensor reader.  Defaults to a static reader that
                  only reports the device id and app metadata.
    """
    global _orchestrator, _store, _http_client
    s = settings or get_settings()
    base_url = s.base_url.rstrip("/")

    _http_client = httpx.AsyncClient(timeout=s.http_timeout_seconds)
    prefs = JsonFileKeyValueStore(s.credential_store_path)
    device_id = await get_or_create_device_id(prefs, s.device_id or None)

    client = HttpSyncClient(base_url, http_client=_http_client)
    schema = get_record_schema()
    speed_tester = None
    if s.speedtest_enabled:
        speed_tester = SpeedTester(
            download_url=s.speedtest_asset_url,
            upload_url=f"{base_url}{schema.speed_test.upload_path}",
            upload_bytes=schema.speed_test.upload_bytes,
            http_client=_http_client,
        )
    sensors = sensors or StaticSensorReader(
        SensorSnapshot(device_id=device_id, app_name=s.app_label, app_version=s.app_version)
    )

    _store = SQLiteRecordStore(s.queue_db_path)
    _orchestrator = SyncOrchestrator(
        probe=HttpConnectivityProbe(
            base_url, timeout_seconds=s.probe_timeout_seconds, http_client=_http_client
        ),
        credentials=CredentialManager(client, prefs),
        client=client,
        queue=DurableQueue(_store, capacity=s.queue_capacity),
        provider=CoverageMeasurementProvider(sensors, speed_tester, schema=schema),
        device_id=device_id,
    )
    logger.info(
        "Sync runtime initialized (backend=%s, queue=%s, capacity=%d)",
        base_url, s.queue_db_path, s.queue_capacity,
    )
    return _orchestrator


async def close_runtime() -> None:
    """Close the queue database and HTTP client.  Call at shutdown."""
    global _orchestrator, _store, _http_client
    if _store is not None:
        await _store.close()
        _store = None
    if _http_client is not None:
        await _http_client.aclose()
        _http_client = None
    _orchestrator = None
    logger.info("Sync runtime closed")


def get_orchestrator() -> SyncOrchestrator:
    if _orchestrator is None:
        raise RuntimeError("Sync runtime not initialized — call init_runtime() first")
    return _orchestrator
