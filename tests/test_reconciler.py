"""Tests for debounced persistence and reconciliation."""

import asyncio
from dataclasses import replace
from datetime import datetime, timedelta

import pytest

from dispatch.engine import Cell, DispatchGrid, Edge
from dispatch.engine.reconciler import PersistenceReconciler
from dispatch.engine.state import Mutation, ScheduleStateStore


def _span(entry, start_hour, end_hour):
    return {"start": entry.start.replace(hour=start_hour), "end": entry.end.replace(hour=end_hour)}


@pytest.mark.asyncio
async def test_updates_within_window_coalesce(backend, day, existing_entry):
    store = ScheduleStateStore()
    await store.load(day, backend)
    reconciler = PersistenceReconciler(backend, store, debounce_seconds=0.05)

    for hour in (12, 13, 14):
        fields = _span(existing_entry, 10, hour)
        store.apply_local(Mutation.update(replace(existing_entry, **fields)))
        reconciler.schedule_update("E100", fields, entry_id="E100")

    await asyncio.sleep(0.01)
    assert backend.writes() == []

    await reconciler.drain()
    updates = backend.writes("update")
    assert len(updates) == 1
    assert updates[0][1] == ("E100", _span(existing_entry, 10, 14))
    assert store.get("E100").end == datetime(2025, 3, 10, 14)
    assert store.confirmed("E100").end == datetime(2025, 3, 10, 14)


@pytest.mark.asyncio
async def test_separate_windows_send_separate_writes(backend, day, existing_entry):
    store = ScheduleStateStore()
    await store.load(day, backend)
    reconciler = PersistenceReconciler(backend, store, debounce_seconds=0.02)

    reconciler.schedule_update("E100", _span(existing_entry, 10, 12), entry_id="E100")
    await reconciler.drain()
    reconciler.schedule_update("E100", _span(existing_entry, 10, 13), entry_id="E100")
    await reconciler.drain()

    assert len(backend.writes("update")) == 2


@pytest.mark.asyncio
async def test_flush_sends_immediately(backend, day, existing_entry):
    store = ScheduleStateStore()
    await store.load(day, backend)
    reconciler = PersistenceReconciler(backend, store, debounce_seconds=5)

    reconciler.schedule_update("E100", _span(existing_entry, 10, 12), entry_id="E100")
    task = reconciler.flush("E100")
    result = await task

    assert result.success
    assert not reconciler.has_pending("E100")
    assert len(backend.writes("update")) == 1


@pytest.mark.asyncio
async def test_newer_update_cancels_inflight_write(make_backend, day, existing_entry):
    backend = make_backend(delay=0.05)
    store = ScheduleStateStore()
    await store.load(day, backend)
    reconciler = PersistenceReconciler(backend, store, debounce_seconds=0.01)

    reconciler.schedule_update("E100", _span(existing_entry, 10, 12), entry_id="E100")
    await asyncio.sleep(0.02)  # first write now in flight
    reconciler.schedule_update("E100", _span(existing_entry, 10, 13), entry_id="E100")
    await reconciler.drain()

    assert backend.entries["E100"].end == datetime(2025, 3, 10, 13)


@pytest.mark.asyncio
async def test_update_waits_for_unconfirmed_create(make_backend, day, make_cfg):
    backend = make_backend(delay=0.03)
    grid = DispatchGrid(backend, make_cfg())
    await grid.select_day(day)

    grid.drag.start_work_item("W1")
    entry = grid.drop(Cell.at("T1", day, "08:00"))
    grid.resize.begin(entry.key, Edge.END, 0.0)
    grid.resize.move(120.0)
    grid.resize.end()

    await grid.wait_idle()
    ops = [c[0] for c in backend.writes()]
    assert ops == ["create", "update"]
    entry_id, fields = backend.writes("update")[0][1]
    assert entry_id == "E1"
    assert fields["end"] == datetime(2025, 3, 10, 10, 0)

    stored = grid.store.get(entry.key)
    assert stored.entry_id == "E1"
    assert stored.end == datetime(2025, 3, 10, 10, 0)
    await grid.close()


@pytest.mark.asyncio
async def test_delete_waits_for_unconfirmed_create(make_backend, day, make_cfg):
    backend = make_backend(delay=0.03)
    grid = DispatchGrid(backend, make_cfg())
    await grid.select_day(day)

    grid.drag.start_work_item("W1")
    entry = grid.drop(Cell.at("T1", day, "08:00"))
    grid.delete_entry(entry.key)

    await grid.wait_idle()
    assert backend.writes("delete") == [("delete", "E1")]
    assert "E1" not in backend.entries
    assert entry.key not in grid.store
    await grid.close()


@pytest.mark.asyncio
async def test_delete_cancels_pending_update(backend, cfg, day):
    grid = DispatchGrid(backend, cfg)
    await grid.select_day(day)

    grid.resize.begin("E100", Edge.END, 0.0)
    grid.resize.move(60.0)
    grid.delete_entry("E100")

    await grid.wait_idle()
    assert [c[0] for c in backend.writes()] == ["delete"]
    assert grid.resize.is_idle
    await grid.close()


@pytest.mark.asyncio
async def test_day_switch_detaches_pending_writes(make_backend, day, make_cfg):
    backend = make_backend(delay=0.03)
    grid = DispatchGrid(backend, make_cfg(debounce_seconds=1.0))
    await grid.select_day(day)

    grid.resize.begin("E100", Edge.END, 0.0)
    grid.resize.move(60.0)
    grid.drag.start_work_item("W1")
    created = grid.drop(Cell.at("T2", day, "08:00"))

    await grid.select_day(day + timedelta(days=1))
    assert len(grid.store) == 0

    await grid.wait_idle()
    # Both writes reached the backend but neither touched the new day's store
    assert backend.entries["E100"].end == datetime(2025, 3, 10, 11, 30)
    assert "E1" in backend.entries
    assert created.key not in grid.store
    assert len(grid.store) == 0

    await grid.select_day(day)
    assert {e.entry_id for e in grid.store} == {"E100", "E1"}
    await grid.close()


@pytest.mark.asyncio
async def test_close_discarding_pending(backend, make_cfg, day):
    grid = DispatchGrid(backend, make_cfg(debounce_seconds=1.0))
    await grid.select_day(day)

    grid.resize.begin("E100", Edge.END, 0.0)
    grid.resize.move(60.0)
    await grid.close(discard_pending=True)

    assert backend.writes() == []
    assert len(grid.store) == 0


@pytest.mark.asyncio
async def test_backend_exception_becomes_failure(backend, cfg, day, existing_entry):
    async def explode(entry_id, fields):
        raise ConnectionError("network down")

    backend.update_schedule_entry = explode
    grid = DispatchGrid(backend, cfg)
    await grid.select_day(day)

    grid.drag.start_entry("E100")
    grid.drop(Cell.at("T2", day, "14:00"))
    await grid.wait_idle()

    assert grid.store.get("E100") == existing_entry
    assert grid.notifications[-1].message == "Failed to update schedule entry: network down"
    await grid.close()
