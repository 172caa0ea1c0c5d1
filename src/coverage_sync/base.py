"""Base classes, contracts and data models for the coverage sync engine.

Every collaborator the orchestrator talks to is declared here as an ABC:
the measurement provider, the connectivity probe, the remote sync client,
the durable record store and the key-value store used for the credential
cache.  Concrete implementations live in ``adapters/``.  These types are
the single source of truth shared by the queue, the credential manager,
the orchestrator and the API layer.
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Union

logger = logging.getLogger("coverage_sync")


# ---------------------------------------------------------------------------
# Record types
# ---------------------------------------------------------------------------

#: A single telemetry value.  JSON keeps these four kinds apart on a round
#: trip, so no extra tagging is needed on disk or on the wire.
Scalar = Union[str, int, float, bool, None]

#: One flat snapshot of telemetry fields.  Key sets may differ between runs.
MeasurementRecord = dict[str, Scalar]

#: Opaque bearer token issued by the key endpoint.
Credential = str

_SCALAR_TYPES = (str, int, float, bool, type(None))


def validate_record(record: dict) -> MeasurementRecord:
    """Check that a record is a flat mapping of string keys to scalars.

    Args:
        record: Candidate record.

    Returns:
        The same record, unchanged.

    Raises:
        ValueError: If the record is not a dict, has a non-string key, or
                    holds a nested / non-scalar value or a
                    non-finite float.
    """
    if not isinstance(record, dict):
        raise ValueError(f"Record must be a mapping, got {type(record).__name__}")
    for key, value in record.items():
        if not isinstance(key, str):
            raise ValueError(f"Record keys must be strings, got {key!r}")
        if not isinstance(value, _SCALAR_TYPES):
            raise ValueError(
                f"Record field '{key}' must be a string, number, boolean or null, "
                f"got {type(value).__name__}"
            )
        if isinstance(value, float) and not math.isfinite(value):
            raise ValueError(f"Record field '{key}' must be a finite number, got {value!r}")
    return record


@dataclass(frozen=True)
class QueueEntry:
    """A record waiting in the durable queue.

    Attributes:
        id:          Opaque unique identifier assigned by the record store.
        record:      The measurement record, exactly as enqueued.
        enqueued_at: Epoch milliseconds; non-decreasing in queue order.
        seq:         Insertion sequence number, breaks ``enqueued_at`` ties.
    """

    id: str
    record: MeasurementRecord
    enqueued_at: float
    seq: int = 0


@dataclass(frozen=True)
class StoredRow:
    """Raw row handed back by a :class:`RecordStore` before decoding.

    Attributes:
        id:          Store-assigned identifier.
        payload:     Serialized record (JSON text).
        enqueued_at: Epoch milliseconds recorded at append time.
        seq:         Monotonic insertion counter.
    """

    id: str
    payload: str
    enqueued_at: float
    seq: int


# ---------------------------------------------------------------------------
# Error taxonomy
# ---------------------------------------------------------------------------


class CoverageSyncError(Exception):
    """Base class for every error raised by the sync engine."""


class ConnectivityError(CoverageSyncError):
    """No transport (WiFi, cellular, wired) is currently reachable."""


class CredentialError(CoverageSyncError):
    """The API key could not be obtained.

    Covers transport failures, non-2xx responses and responses that do not
    carry an ``api_key`` string.
    """


class SubmissionError(CoverageSyncError):
    """A record submission failed (transport error or non-2xx status).

    Attributes:
        status_code: HTTP status when a response was received, else ``None``.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_auth_rejection(self) -> bool:
        """True when the server refused the credential itself."""
        return self.status_code in (401, 403)


class PersistenceError(CoverageSyncError):
    """The durable store failed.  Fatal: there is no fallback below it."""


# ---------------------------------------------------------------------------
# Collaborator contracts
# ---------------------------------------------------------------------------


class MeasurementProvider(ABC):
    """Builds one flat record from the device's current state."""

    @abstractmethod
    async def collect(
        self, credential: Credential | None, network_available: bool
    ) -> MeasurementRecord:
        """Collect a record with the canonical field set.

        Network-dependent fields (throughput) must be ``None`` whenever
        ``network_available`` is False.  The key set does not depend on the
        arguments.

        Args:
            credential:        API key used for authenticated speed tests.
            network_available: Whether any transport is reachable.

        Returns:
            The collected record.
        """
        ...


class ConnectivityProbe(ABC):
    """Answers whether any transport is reachable right now."""

    @abstractmethod
    async def is_online(self) -> bool:
        ...


class RemoteSyncClient(ABC):
    """The two single-attempt wire calls: key issuance and record submission."""

    @abstractmethod
    async def fetch_credential(self, device_id: str) -> Credential:
        """Request an API key for this device.

        Raises:
            CredentialError: On any failure.
        """
        ...

    @abstractmethod
    async def submit_record(
        self, credential: Credential, record: MeasurementRecord
    ) -> None:
        """Submit one record.

        Raises:
            SubmissionError: On any failure.
        """
        ...


class RecordStore(ABC):
    """Persistence collaborator behind :class:`~src.coverage_sync.queue.DurableQueue`.

    Implementations must raise :class:`PersistenceError` when the underlying
    engine fails.
    """

    @abstractmethod
    async def append(self, payload: str, enqueued_at: float) -> str:
        """Store a serialized record and return its new unique id."""
        ...

    @abstractmethod
    async def list_all_ordered(self) -> list[StoredRow]:
        """Return all rows ordered by ``(enqueued_at, seq)`` ascending."""
        ...

    @abstractmethod
    async def delete_by_id(self, entry_id: str) -> None:
        """Delete one row.  Unknown ids are ignored."""
        ...

    @abstractmethod
    async def count(self) -> int:
        ...

    @abstractmethod
    async def delete_oldest(self, n: int) -> int:
        """Delete up to ``n`` oldest rows and return how many were removed."""
        ...

    @abstractmethod
    async def delete_all(self) -> None:
        ...


class KeyValueStore(ABC):
    """Small persistent key-value store (the per-install preferences file)."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        ...

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...


# ---------------------------------------------------------------------------
# Run report
# ---------------------------------------------------------------------------


@dataclass
class SyncReport:
    """Diagnostic summary of one orchestrator run.

    Attributes:
        final_state:       Always ``"DONE"`` once the run completes.
        states:            State names traversed, in order.
        online:            Result of the connectivity probe.
        credential_ok:     Whether a credential was resolved.
        backlog_sent:      Queue entries delivered and deleted.
        backlog_remaining: Queue size at the end of the run.
        drain_halted:      True if a backlog submission failed.
        current_sent:      True if the fresh record was delivered.
        current_queued:    True if the fresh record went to the queue.
        credential_rejected: True if the server answered 401/403.
    """

    final_state: str = "PROBING"
    states: list[str] = field(default_factory=list)
    online: bool = False
    credential_ok: bool = False
    backlog_sent: int = 0
    backlog_remaining: int = 0
    drain_halted: bool = False
    current_sent: bool = False
    current_queued: bool = False
    credential_rejected: bool = False
