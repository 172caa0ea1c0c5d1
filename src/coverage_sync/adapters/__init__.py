"""Concrete collaborators for the coverage sync engine.

Available adapters:
    HttpSyncClient              — Key issuance + record submission over httpx
    HttpConnectivityProbe       — Reachability by HEAD request
    StaticConnectivityProbe     — Host-controlled link state
    SQLiteRecordStore           — Durable queue storage (aiosqlite)
    InMemoryRecordStore         — Volatile queue storage
    JsonFileKeyValueStore       — Per-install preferences file
    InMemoryKeyValueStore       — Volatile preferences
    CoverageMeasurementProvider — Canonical record from sensors + speed tests
"""

from src.coverage_sync.adapters.connectivity import (
    HttpConnectivityProbe,
    StaticConnectivityProbe,
)
from src.coverage_sync.adapters.http_client import HttpSyncClient
from src.coverage_sync.adapters.kv_store import JsonFileKeyValueStore
from src.coverage_sync.adapters.measurements import (
    CoverageMeasurementProvider,
    SensorReader,
    SensorSnapshot,
    SpeedTester,
    StaticSensorReader,
)
from src.coverage_sync.adapters.memory import InMemoryKeyValueStore, InMemoryRecordStore
from src.coverage_sync.adapters.sqlite_store import SQLiteRecordStore

__all__ = [
    "HttpSyncClient",
    "HttpConnectivityProbe",
    "StaticConnectivityProbe",
    "SQLiteRecordStore",
    "InMemoryRecordStore",
    "JsonFileKeyValueStore",
    "InMemoryKeyValueStore",
    "CoverageMeasurementProvider",
    "SensorReader",
    "SensorSnapshot",
    "SpeedTester",
    "StaticSensorReader",
]
