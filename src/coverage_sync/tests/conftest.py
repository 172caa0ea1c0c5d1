"""Shared fixtures and fake collaborators for coverage sync tests."""

from __future__ import annotations

import itertools
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from src.coverage_sync.adapters.memory import InMemoryKeyValueStore, InMemoryRecordStore
from src.coverage_sync.base import (
    ConnectivityProbe,
    Credential,
    CredentialError,
    MeasurementProvider,
    MeasurementRecord,
    RemoteSyncClient,
)
from src.coverage_sync.credentials import CredentialManager
from src.coverage_sync.queue import DurableQueue
from src.coverage_sync.sync.orchestrator import SyncOrchestrator

TEST_DEVICE_ID = "a1b2c3d4e5f60718"
TEST_BASE_URL = "https://coverage.test"


# ---------------------------------------------------------------------------
# Fake collaborators
# ---------------------------------------------------------------------------


class FakeProbe(ConnectivityProbe):
    def __init__(self, online: bool = True) -> None:
        self.online = online
        self.calls = 0

    async def is_online(self) -> bool:
        self.calls += 1
        return self.online


class FakeProvider(MeasurementProvider):
    """Returns a small canonical record; records every call."""

    def __init__(self, label: str = "current") -> None:
        self.label = label
        self.calls: list[tuple[Credential | None, bool]] = []

    async def collect(
        self, credential: Credential | None, network_available: bool
    ) -> MeasurementRecord:
        self.calls.append((credential, network_available))
        online = network_available
        return {
            "label": self.label,
            "latitude": 52.37,
            "longitude": 4.89,
            "download_speed": 18432.0 if online else None,
            "upload_speed": 5120.0 if online else None,
            "network_type": "LTE",
        }


class FakeRemoteClient(RemoteSyncClient):
    """Scripted remote client.

    ``submit_outcomes`` is consumed in order; ``None`` means success and an
    exception instance is raised.  Once exhausted every submission succeeds.
    """

    def __init__(
        self,
        credential: str | None = "K1",
        submit_outcomes: list[Exception | None] | None = None,
    ) -> None:
        self.credential = credential
        self.submit_outcomes = list(submit_outcomes or [])
        self.fetch_calls: list[str] = []
        self.submitted: list[tuple[str, MeasurementRecord]] = []

    async def fetch_credential(self, device_id: str) -> Credential:
        self.fetch_calls.append(device_id)
        if self.credential is None:
            raise CredentialError("key endpoint unavailable")
        return self.credential

    async def submit_record(self, credential: Credential, record: MeasurementRecord) -> None:
        self.submitted.append((credential, dict(record)))
        if self.submit_outcomes:
            outcome = self.submit_outcomes.pop(0)
            if outcome is not None:
                raise outcome

    @property
    def submitted_labels(self) -> list[str]:
        return [record.get("label") for _, record in self.submitted]


class StepClock:
    """Deterministic millisecond clock advancing by ``step`` per call."""

    def __init__(self, start: float = 1_700_000_000_000.0, step: float = 1.0) -> None:
        self._counter = itertools.count()
        self.start = start
        self.step = step

    def __call__(self) -> float:
        return self.start + next(self._counter) * self.step


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def record_store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def queue(record_store: InMemoryRecordStore) -> DurableQueue:
    return DurableQueue(record_store, capacity=100, clock=StepClock())


@pytest.fixture
def prefs() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def probe() -> FakeProbe:
    return FakeProbe(online=True)


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def remote() -> FakeRemoteClient:
    return FakeRemoteClient()


@pytest.fixture
def credentials(remote: FakeRemoteClient, prefs: InMemoryKeyValueStore) -> CredentialManager:
    return CredentialManager(remote, prefs)


@pytest.fixture
def orchestrator(
    probe: FakeProbe,
    credentials: CredentialManager,
    remote: FakeRemoteClient,
    queue: DurableQueue,
    provider: FakeProvider,
) -> SyncOrchestrator:
    return SyncOrchestrator(
        probe=probe,
        credentials=credentials,
        client=remote,
        queue=queue,
        provider=provider,
        device_id=TEST_DEVICE_ID,
    )


# ---------------------------------------------------------------------------
# Mock HTTP clients
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_httpx_client() -> MagicMock:
    """Mock httpx.AsyncClient answering every call with an empty 200."""
    client = MagicMock()
    response = httpx.Response(200, json={})
    client.post = AsyncMock(return_value=response)
    client.head = AsyncMock(return_value=response)
    client.request = AsyncMock(return_value=response)
    return client
