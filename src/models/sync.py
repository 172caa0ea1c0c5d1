"""Response schemas for the sync endpoints."""

from __future__ import annotations

from typing import Union

from pydantic import Field

from src.models.base import CoverageBase

ScalarValue = Union[bool, int, float, str, None]


class SyncReportRead(CoverageBase):
    final_state: str
    states: list[str] = Field(default_factory=list)
    online: bool
    credential_ok: bool
    backlog_sent: int
    backlog_remaining: int
    drain_halted: bool
    current_sent: bool
    current_queued: bool
    credential_rejected: bool


class QueueEntryRead(CoverageBase):
    id: str
    enqueued_at: float
    record: dict[str, ScalarValue]


class QueueRead(CoverageBase):
    count: int
    capacity: int
    entries: list[QueueEntryRead] = Field(default_factory=list)
