"""Tests for the drag-and-drop controller."""

from datetime import datetime

import pytest

from dispatch.engine import IDLE, Cell, DispatchGrid, GridHooks, HighlightedSlot, SourceKind
from dispatch.engine.drag import Dragging


@pytest.mark.asyncio
async def test_drop_work_item_creates_entry(backend, cfg, day):
    """Fix printer dropped on T1 at 10:00 becomes a one-hour entry."""
    grid = DispatchGrid(backend, cfg)
    await grid.select_day(day)

    grid.drag.start_work_item("W1")
    entry = grid.drop(Cell.at("T1", day, "10:00"))

    assert entry.start == datetime(2025, 3, 10, 10, 0)
    assert entry.end == datetime(2025, 3, 10, 11, 0)
    assert entry.technician_ids == ("T1",)
    assert entry.title == "Fix printer"
    assert entry.key.startswith("new-")
    # Optimistic: visible before the write settles
    assert grid.store.get(entry.key) == entry
    assert grid.drag.state is IDLE

    await grid.wait_idle()
    creates = backend.writes("create")
    assert len(creates) == 1
    assert creates[0][1].work_item_id == "W1"
    assert grid.store.get(entry.key).entry_id == "E1"
    await grid.close()


@pytest.mark.asyncio
async def test_drag_entry_to_other_technician(backend, cfg, day):
    """T1 10:00-11:00 dragged to T2 at 14:00."""
    grid = DispatchGrid(backend, cfg)
    await grid.select_day(day)

    grid.drag.start_entry("E100")
    moved = grid.drop(Cell.at("T2", day, "14:00"))

    assert moved.technician_ids == ("T2",)
    assert (moved.start, moved.end) == (datetime(2025, 3, 10, 14), datetime(2025, 3, 10, 15))
    assert grid.render_row("T1") == []
    assert [b.entry.key for b in grid.render_row("T2")] == ["E100"]

    await grid.wait_idle()
    updates = backend.writes("update")
    assert len(updates) == 1
    entry_id, fields = updates[0][1]
    assert entry_id == "E100"
    assert fields == {
        "technician_ids": ["T2"],
        "start": datetime(2025, 3, 10, 14),
        "end": datetime(2025, 3, 10, 15),
    }
    assert backend.writes("create") == []
    await grid.close()


@pytest.mark.asyncio
async def test_drop_unknown_work_item(backend, cfg, day):
    grid = DispatchGrid(backend, cfg)
    await grid.select_day(day)
    before = grid.store.entries()

    grid.drag.start_work_item("W999")
    assert grid.drop(Cell.at("T1", day, "10:00")) is None

    assert grid.store.entries() == before
    assert grid.notifications[-1].level == "error"
    assert "W999" in grid.notifications[-1].message
    await grid.wait_idle()
    assert backend.writes() == []
    await grid.close()


@pytest.mark.asyncio
async def test_drop_outside_grid_is_noop(backend, cfg, day, existing_entry):
    grid = DispatchGrid(backend, cfg)
    await grid.select_day(day)

    grid.drag.start_entry("E100")
    assert grid.drop(None) is None
    assert grid.store.get("E100") == existing_entry
    assert grid.drag.is_idle

    await grid.wait_idle()
    assert backend.writes() == []
    await grid.close()


@pytest.mark.asyncio
async def test_cancel_returns_to_idle(backend, cfg, day):
    grid = DispatchGrid(backend, cfg)
    await grid.select_day(day)

    grid.drag.start_work_item("W1")
    assert isinstance(grid.drag.state, Dragging)
    grid.drag.cancel()
    assert grid.drag.state is IDLE
    assert grid.drop(Cell.at("T1", day, "10:00")) is None
    assert len(grid.store) == 1
    await grid.close()


@pytest.mark.asyncio
async def test_hover_highlights_default_block(backend, cfg, day):
    grid = DispatchGrid(backend, cfg)
    await grid.select_day(day)
    grid.drag.start_work_item("W1")

    highlighted = grid.hover(Cell.at("T2", day, "09:30"))

    assert highlighted == frozenset(
        HighlightedSlot("T2", slot) for slot in ("09:30", "09:45", "10:00", "10:15")
    )
    assert grid.highlighted_slots("T2") == frozenset({"09:30", "09:45", "10:00", "10:15"})
    assert grid.highlighted_slots("T1") == frozenset()
    # No store mutation while hovering
    assert len(grid.store) == 1
    assert grid.drag.state.drag.hover == Cell.at("T2", day, "09:30")

    grid.drop(Cell.at("T2", day, "09:30"))
    assert grid.highlighted == frozenset()
    await grid.close()


@pytest.mark.asyncio
async def test_hover_idle_highlights_nothing(backend, cfg, day):
    grid = DispatchGrid(backend, cfg)
    await grid.select_day(day)
    assert grid.hover(Cell.at("T1", day, "10:00")) == frozenset()
    await grid.close()


@pytest.mark.asyncio
async def test_move_keeps_pointer_anchor(backend, cfg, day):
    """Grabbing an entry 45px (one slot) in keeps that slot under the pointer."""
    grid = DispatchGrid(backend, cfg)
    await grid.select_day(day)

    state = grid.drag.start_entry("E100", pointer_offset_px=45.0)
    assert state.source_kind is SourceKind.ENTRY
    assert state.anchor_quanta == 1

    highlighted = grid.hover(Cell.at("T1", day, "13:15"))
    assert {h.slot for h in highlighted} == {"13:00", "13:15", "13:30", "13:45"}

    moved = grid.drop(Cell.at("T1", day, "13:15"))
    assert (moved.start, moved.end) == (datetime(2025, 3, 10, 13), datetime(2025, 3, 10, 14))
    await grid.close()


@pytest.mark.asyncio
async def test_move_clamped_to_end_of_day(backend, cfg, day):
    grid = DispatchGrid(backend, cfg)
    await grid.select_day(day)

    grid.drag.start_entry("E100")
    moved = grid.drop(Cell.at("T1", day, "23:30"))

    assert moved.start == datetime(2025, 3, 10, 23, 0)
    assert moved.end == datetime(2025, 3, 11, 0, 0)
    await grid.close()


@pytest.mark.asyncio
async def test_drop_on_same_place_sends_nothing(backend, cfg, day, existing_entry):
    grid = DispatchGrid(backend, cfg)
    await grid.select_day(day)

    grid.drag.start_entry("E100")
    assert grid.drop(Cell.at("T1", day, "10:00")) == existing_entry

    await grid.wait_idle()
    assert backend.writes() == []
    await grid.close()


@pytest.mark.asyncio
async def test_hooks_fire_on_create_and_move(backend, cfg, day):
    created, moved = [], []
    grid = DispatchGrid(backend, cfg, GridHooks(on_entry_created=created.append, on_entry_moved=moved.append))
    await grid.select_day(day)

    grid.drag.start_work_item("W1")
    grid.drop(Cell.at("T1", day, "08:00"))
    grid.drag.start_entry("E100")
    grid.drop(Cell.at("T2", day, "10:00"))

    assert [e.title for e in created] == ["Fix printer"]
    assert [e.key for e in moved] == ["E100"]
    await grid.close()


@pytest.mark.asyncio
async def test_drop_onto_occupied_cell_creates_overlap(backend, cfg, day):
    """T1 already has E100 at 10:00-11:00; a second entry may share the slot."""
    grid = DispatchGrid(backend, cfg)
    await grid.select_day(day)

    grid.drag.start_work_item("W1")
    entry = grid.drop(Cell.at("T1", day, "10:00"))

    assert entry is not None
    row = grid.store.row("T1")
    assert len(row) == 2
    assert {e.key for e in row} == {"E100", entry.key}

    await grid.wait_idle()
    assert len(backend.writes("create")) == 1
    assert len(grid.store.row("T1")) == 2
    await grid.close()
