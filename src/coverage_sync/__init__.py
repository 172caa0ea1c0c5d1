"""Coverage Sync engine.

Collects coverage telemetry records on a device and delivers them to the
backend with at-least-once semantics, buffering locally while offline.

Subpackages:
    adapters/  — Concrete collaborators (httpx client, SQLite / JSON stores,
                 connectivity probes, measurement provider)
    sync/      — Orchestrator state machine and periodic runner

Core modules:
    base          — Collaborator ABCs, record types, error taxonomy
    queue         — Bounded durable FIFO with drop-oldest overflow
    credentials   — API key cache / fetch / invalidation
    record_schema — Load/validate the canonical record schema YAML
"""

from src.coverage_sync.base import (
    ConnectivityError,
    CoverageSyncError,
    CredentialError,
    MeasurementRecord,
    PersistenceError,
    QueueEntry,
    SubmissionError,
    SyncReport,
)
from src.coverage_sync.credentials import CredentialManager
from src.coverage_sync.queue import DurableQueue
from src.coverage_sync.sync.orchestrator import SyncOrchestrator, SyncState

__all__ = [
    "CoverageSyncError",
    "ConnectivityError",
    "CredentialError",
    "SubmissionError",
    "PersistenceError",
    "MeasurementRecord",
    "QueueEntry",
    "SyncReport",
    "DurableQueue",
    "CredentialManager",
    "SyncOrchestrator",
    "SyncState",
]
