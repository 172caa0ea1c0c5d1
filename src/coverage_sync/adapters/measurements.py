"""Coverage measurement provider.

Builds the canonical record from two sources:

- a :class:`SensorReader` supplied by the host platform (location, primary
  cell signal and identity, radio technology, app metadata);
- a :class:`SpeedTester` that times a download of a known asset and an
  authenticated upload of a synthetic payload.

Throughput fields are only measured when the network is available; the
upload test additionally requires an API key.  Any sensor or speed-test
failure leaves the affected fields ``None`` rather than failing the record.
"""

from __future__ import annotations

import logging
import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable

import httpx

from src.coverage_sync.base import Credential, MeasurementProvider, MeasurementRecord
from src.coverage_sync.record_schema import RecordSchema, get_record_schema

logger = logging.getLogger("coverage_sync.adapters.measurements")


# ---------------------------------------------------------------------------
# Sensors
# ---------------------------------------------------------------------------


@dataclass
class SensorSnapshot:
    """Raw device readings; every field is optional.

    Attributes:
        latitude:           Degrees.
        longitude:          Degrees.
        location_provider:  ``"gps"`` or ``"network"``.
        gps_accuracy:       Metres; only reported for GPS fixes.
        signal_dbm:         Primary cell signal strength.
        signal_asu:         Primary cell signal level in ASU.
        network_code:       MNC of the primary cell.
        mobile_country_code: MCC of the primary cell.
        cell_id:            Cell identity.
        network_type_code:  Voice radio technology code.
        data_network_type_code: Data radio technology code.
        device_id:          Per-install identifier.
        app_name:           Host application label.
        app_version:        Host application version.
    """

    latitude: float | None = None
    longitude: float | None = None
    location_provider: str | None = None
    gps_accuracy: float | None = None
    signal_dbm: int | None = None
    signal_asu: int | None = None
    network_code: str | None = None
    mobile_country_code: str | None = None
    cell_id: int | None = None
    network_type_code: int | None = None
    data_network_type_code: int | None = None
    device_id: str | None = None
    app_name: str | None = None
    app_version: str | None = None


class SensorReader(ABC):
    """Platform hook that reads location and radio state."""

    @abstractmethod
    async def read(self) -> SensorSnapshot:
        ...


class StaticSensorReader(SensorReader):
    """Returns a fixed snapshot (device id and app metadata by default)."""

    def __init__(self, snapshot: SensorSnapshot | None = None) -> None:
        self._snapshot = snapshot or SensorSnapshot()

    async def read(self) -> SensorSnapshot:
        return self._snapshot


# ---------------------------------------------------------------------------
# Speed tests
# ---------------------------------------------------------------------------


def _finite(name: str, value):
    if isinstance(value, float) and not math.isfinite(value):
        logger.warning("Dropping non-finite reading %s=%r", name, value)
        return None
    return value


def _kbps(num_bytes: int, seconds: float) -> float | None:
    if seconds <= 0:
        return None
    return float(round(num_bytes * 8 / 1000 / seconds))


class SpeedTester:
    """Download/upload throughput measurements in kbit/s."""

    def __init__(
        self,
        download_url: str,
        upload_url: str,
        upload_bytes: int = 100_000,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._download_url = download_url
        self._upload_url = upload_url
        self._upload_bytes = upload_bytes
        self._http_client = http_client
        self._timeout = timeout_seconds
        self._clock = clock

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        if self._http_client:
            return await self._http_client.request(method, url, **kwargs)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.request(method, url, **kwargs)

    async def measure_download(self) -> float | None:
        """Time a GET of the test asset.  Returns ``None`` on any failure."""
        start = self._clock()
        try:
            response = await self._request("GET", self._download_url)
        except httpx.HTTPError as exc:
            logger.info("Download speed test failed: %s", exc)
            return None
        elapsed = self._clock() - start
        if not response.is_success:
            logger.info("Download speed test got HTTP %s", response.status_code)
            return None
        return _kbps(len(response.content), elapsed)

    async def measure_upload(self, credential: Credential | None) -> float | None:
        """Time an authenticated multipart upload.  Requires a credential."""
        if credential is None:
            return None
        payload = bytes(i % 256 for i in range(self._upload_bytes))
        start = self._clock()
        try:
            response = await self._request(
                "POST",
                self._upload_url,
                data={"api_key": credential},
                files={"file": ("test-upload.bin", payload, "application/octet-stream")},
            )
        except httpx.HTTPError as exc:
            logger.info("Upload speed test failed: %s", exc)
            return None
        elapsed = self._clock() - start
        if not response.is_success:
            logger.info("Upload speed test got HTTP %s", response.status_code)
            return None
        return _kbps(self._upload_bytes, elapsed)


# ---------------------------------------------------------------------------
# Provider
# ---------------------------------------------------------------------------


class CoverageMeasurementProvider(MeasurementProvider):
    """Assembles the canonical coverage record."""

    def __init__(
        self,
        sensors: SensorReader,
        speed_tester: SpeedTester | None = None,
        schema: RecordSchema | None = None,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self._sensors = sensors
        self._speed_tester = speed_tester
        self._schema = schema or get_record_schema()
        self._wall_clock = wall_clock

    async def collect(
        self, credential: Credential | None, network_available: bool
    ) -> MeasurementRecord:
        schema = self._schema
        data = schema.empty_record()

        try:
            snap = await self._sensors.read()
        except Exception as exc:
            logger.warning("Sensor read failed, sending record without sensor fields: %s", exc)
            snap = SensorSnapshot()

        if snap.latitude is not None and snap.longitude is not None:
            from_gps = snap.location_provider == "gps"
            data["latitude"] = snap.latitude
            data["longitude"] = snap.longitude
            data["is_position_from_GPS"] = from_gps
            if from_gps:
                data["gps_accuracy"] = snap.gps_accuracy

        data["signal_strength_dbm"] = snap.signal_dbm
        data["signal_strength_asu"] = snap.signal_asu
        data["network_code"] = snap.network_code
        data["mobile_country_code"] = snap.mobile_country_code
        data["cell_id"] = snap.cell_id
        data["network_type"] = schema.network_type_name(snap.network_type_code)
        data["data_network_type"] = schema.network_type_name(snap.data_network_type_code)
        data["android_id"] = snap.device_id
        data["app_name"] = snap.app_name
        data["app_version"] = snap.app_version

        if network_available and self._speed_tester is not None:
            data["download_speed"] = await self._speed_tester.measure_download()
            data["upload_speed"] = await self._speed_tester.measure_upload(credential)

        if not network_available:
            for name in schema.network_dependent:
                data[name] = None

        data["timestamp"] = int(self._wall_clock() * 1000)
        data["library_version"] = schema.library_version

        # Restrict to canonical keys.
        return {name: _finite(name, data.get(name)) for name in schema.fields}
