"""Tests for the bounded durable queue."""

from __future__ import annotations

import json

import pytest

from src.coverage_sync.adapters.memory import InMemoryRecordStore
from src.coverage_sync.queue import DurableQueue
from src.coverage_sync.tests.conftest import StepClock


def _record(i: int) -> dict:
    return {"n": i, "download_speed": None}


# ---------------------------------------------------------------------------
# Capacity and eviction
# ---------------------------------------------------------------------------


class TestCapacity:
    @pytest.mark.asyncio
    async def test_count_never_exceeds_capacity(self) -> None:
        queue = DurableQueue(InMemoryRecordStore(), capacity=7, clock=StepClock())
        for i in range(30):
            await queue.enqueue(_record(i))
            assert await queue.count() <= 7
        assert await queue.count() == 7

    @pytest.mark.asyncio
    async def test_full_queue_evicts_exactly_one_oldest(self, queue: DurableQueue) -> None:
        """Overflow at C=100: the oldest entry goes, the new one is last."""
        ids = [await queue.enqueue(_record(i)) for i in range(100)]
        assert await queue.count() == 100

        new_id = await queue.enqueue(_record(100))

        entries = await queue.snapshot_ordered()
        assert len(entries) == 100
        assert ids[0] not in {e.id for e in entries}
        assert entries[0].id == ids[1]
        assert entries[-1].id == new_id
        assert entries[-1].record["n"] == 100

    @pytest.mark.asyncio
    async def test_overfull_store_evicts_k_plus_one(self) -> None:
        """A store already holding C+k rows loses its k+1 oldest on insert."""
        store = InMemoryRecordStore()
        for i in range(13):  # C=10, k=3
            await store.append(json.dumps(_record(i)), float(i))
        queue = DurableQueue(store, capacity=10, clock=StepClock(start=1000.0))

        await queue.enqueue(_record(99))

        entries = await queue.snapshot_ordered()
        assert len(entries) == 10
        assert [e.record["n"] for e in entries] == list(range(4, 13)) + [99]

    @pytest.mark.asyncio
    async def test_below_capacity_evicts_nothing(self, queue: DurableQueue) -> None:
        for i in range(99):
            await queue.enqueue(_record(i))
        await queue.enqueue(_record(99))
        entries = await queue.snapshot_ordered()
        assert [e.record["n"] for e in entries] == list(range(100))

    def test_capacity_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            DurableQueue(InMemoryRecordStore(), capacity=0)


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------


class TestOrdering:
    @pytest.mark.asyncio
    async def test_snapshot_matches_enqueue_order(self, queue: DurableQueue) -> None:
        ids = [await queue.enqueue(_record(i)) for i in range(5)]
        entries = await queue.snapshot_ordered()
        assert [e.id for e in entries] == ids
        stamps = [e.enqueued_at for e in entries]
        assert stamps == sorted(stamps)

    @pytest.mark.asyncio
    async def test_clock_going_backwards_keeps_order(self) -> None:
        times = iter([5000.0, 4000.0, 3000.0, 6000.0])
        queue = DurableQueue(InMemoryRecordStore(), clock=lambda: next(times))
        ids = [await queue.enqueue(_record(i)) for i in range(4)]

        entries = await queue.snapshot_ordered()
        assert [e.id for e in entries] == ids
        assert [e.enqueued_at for e in entries] == [5000.0, 5000.0, 5000.0, 6000.0]

    @pytest.mark.asyncio
    async def test_same_timestamp_ties_broken_by_insertion(self) -> None:
        queue = DurableQueue(InMemoryRecordStore(), clock=lambda: 42.0)
        ids = [await queue.enqueue(_record(i)) for i in range(4)]
        assert [e.id for e in await queue.snapshot_ordered()] == ids

    @pytest.mark.asyncio
    async def test_new_instance_respects_existing_entries(self) -> None:
        """A restarted process with an earlier clock still appends at the tail."""
        store = InMemoryRecordStore()
        first = DurableQueue(store, clock=lambda: 9000.0)
        old_id = await first.enqueue(_record(1))

        restarted = DurableQueue(store, clock=lambda: 100.0)
        new_id = await restarted.enqueue(_record(2))

        assert [e.id for e in await restarted.snapshot_ordered()] == [old_id, new_id]

    @pytest.mark.asyncio
    async def test_snapshot_does_not_mutate(self, queue: DurableQueue) -> None:
        await queue.enqueue(_record(1))
        await queue.snapshot_ordered()
        await queue.snapshot_ordered()
        assert await queue.count() == 1


# ---------------------------------------------------------------------------
# Removal and content
# ---------------------------------------------------------------------------


class TestRemoval:
    @pytest.mark.asyncio
    async def test_remove_known_id(self, queue: DurableQueue) -> None:
        keep = await queue.enqueue(_record(1))
        drop = await queue.enqueue(_record(2))
        await queue.remove(drop)
        assert [e.id for e in await queue.snapshot_ordered()] == [keep]

    @pytest.mark.asyncio
    async def test_remove_unknown_id_is_noop(self, queue: DurableQueue) -> None:
        await queue.enqueue(_record(1))
        await queue.enqueue(_record(2))
        before = await queue.snapshot_ordered()

        await queue.remove("does-not-exist")
        await queue.remove("does-not-exist")

        assert await queue.count() == 2
        assert await queue.snapshot_ordered() == before

    @pytest.mark.asyncio
    async def test_clear_empties_queue(self, queue: DurableQueue) -> None:
        for i in range(3):
            await queue.enqueue(_record(i))
        await queue.clear()
        assert await queue.count() == 0
        assert await queue.snapshot_ordered() == []

    @pytest.mark.asyncio
    async def test_ids_are_unique(self, queue: DurableQueue) -> None:
        ids = [await queue.enqueue(_record(i)) for i in range(50)]
        assert len(set(ids)) == 50

    @pytest.mark.asyncio
    async def test_scalar_kinds_survive_storage(self, queue: DurableQueue) -> None:
        record = {
            "cell_id": 12345,
            "gps_accuracy": 4.0,
            "is_position_from_GPS": False,
            "network_type": "LTE",
            "upload_speed": None,
        }
        await queue.enqueue(record)
        stored = (await queue.snapshot_ordered())[0].record
        assert stored == record
        assert type(stored["cell_id"]) is int
        assert type(stored["gps_accuracy"]) is float
        assert stored["is_position_from_GPS"] is False

    @pytest.mark.asyncio
    async def test_nested_record_rejected(self, queue: DurableQueue) -> None:
        with pytest.raises(ValueError):
            await queue.enqueue({"location": {"lat": 1.0}})
        assert await queue.count() == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad", [float("nan"), float("inf"), float("-inf")])
    async def test_non_finite_float_rejected(self, queue: DurableQueue, bad: float) -> None:
        with pytest.raises(ValueError, match="finite"):
            await queue.enqueue({"gps_accuracy": bad})
        assert await queue.count() == 0
