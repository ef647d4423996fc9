"""Drag-and-drop controller: schedule work items and move entries."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Callable, FrozenSet, Optional, Tuple

from dispatch.domain.entities import SCHEDULED, ScheduleEntry, WorkItem, new_entry_key
from dispatch.errors import InvariantRejection, NotFoundError
from dispatch.services.geometry import TimeGrid

from .base import IDLE, GestureController
from .hooks import GridHooks
from .reconciler import PersistenceReconciler
from .state import Mutation, ScheduleStateStore

log = logging.getLogger(__name__)

WorkItemLookup = Callable[[str], Optional[WorkItem]]


class SourceKind(str, Enum):
    WORK_ITEM = "work_item"
    ENTRY = "schedule_entry"


@dataclass(frozen=True)
class Cell:
    """Intersection of a technician row and a time slot."""

    technician_id: str
    start: datetime

    @classmethod
    def at(cls, technician_id: str, day: date, slot: str) -> "Cell":
        hours, minutes = [int(x) for x in slot.split(":")]
        return cls(technician_id, datetime.combine(day, time()) + timedelta(hours=hours, minutes=minutes))


@dataclass(frozen=True)
class HighlightedSlot:
    technician_id: str
    slot: str


@dataclass(frozen=True)
class DragState:
    source_kind: SourceKind
    source_id: str
    anchor_quanta: int = 0  # quanta between the entry's left edge and the pointer
    original_start: Optional[datetime] = None
    original_end: Optional[datetime] = None
    hover: Optional[Cell] = None


@dataclass(frozen=True)
class Dragging:
    drag: DragState


class DragController(GestureController[Dragging]):
    """
    idle -> dragging -> idle

    A drop on a cell either creates an entry from an unassigned work item
    (default one-hour span starting at the cell) or moves an existing entry
    to the cell's technician, preserving its duration. A drop outside any
    cell, or a cancel, returns to idle with no mutation. Overlapping entries
    are allowed.
    """

    name = "drag"

    def __init__(
        self,
        store: ScheduleStateStore,
        reconciler: PersistenceReconciler,
        grid: TimeGrid,
        lookup_work_item: WorkItemLookup,
        hooks: GridHooks | None = None,
        default_duration: timedelta = timedelta(hours=1),
    ):
        super().__init__(store, reconciler, grid, hooks)
        self.lookup_work_item = lookup_work_item
        self.default_duration = default_duration

    # --- events ----------------------------------------------------------

    def start_work_item(self, work_item_id: str) -> DragState:
        drag = DragState(SourceKind.WORK_ITEM, work_item_id)
        self._transition(Dragging(drag))
        return drag

    def start_entry(
        self,
        key: str,
        pointer_offset_px: float = 0.0,
        column_pixel_width: float | None = None,
    ) -> Optional[DragState]:
        """
        Begin moving an entry grabbed `pointer_offset_px` from its left edge.
        """
        entry = self.store.get(key)
        if entry is None:
            log.warning("Drag started on unknown entry %s", key)
            return None

        slot_px = (column_pixel_width or self.grid.column_pixel_width) / self.grid.quanta_per_hour
        total_quanta = max(1, int(entry.duration / self.grid.quantum))
        anchor = min(max(0, math.floor(pointer_offset_px / slot_px)), total_quanta - 1)

        drag = DragState(
            SourceKind.ENTRY,
            key,
            anchor_quanta=anchor,
            original_start=entry.start,
            original_end=entry.end,
        )
        self._transition(Dragging(drag))
        return drag

    def hover(self, cell: Cell) -> FrozenSet[HighlightedSlot]:
        """Slots to highlight while hovering `cell`; no store mutation."""
        if self.is_idle:
            return frozenset()
        drag = self._state.drag
        try:
            start, end = self._proposed_span(drag, cell)
        except InvariantRejection:
            return frozenset()
        self._transition(Dragging(replace(drag, hover=cell)))
        return frozenset(
            HighlightedSlot(cell.technician_id, slot) for slot in self.grid.slots_covering(start, end)
        )

    def drop(self, cell: Optional[Cell]) -> Optional[ScheduleEntry]:
        """
        Finish the gesture. `cell` is None when the pointer was released
        outside the grid.

        Returns:
            The created or moved entry, or None if nothing changed
        """
        if self.is_idle:
            return None
        drag = self._state.drag
        self._transition(IDLE)

        if cell is None:
            log.debug("Drop outside the grid, %s %s unchanged", drag.source_kind.value, drag.source_id)
            return None

        try:
            if drag.source_kind is SourceKind.WORK_ITEM:
                return self._create(drag, cell)
            return self._move(drag, cell)
        except NotFoundError as e:
            log.warning("%s", e)
            self.hooks.error(str(e))
            return None
        except InvariantRejection as e:
            log.debug("Drop rejected: %s", e)
            return None

    def cancel(self) -> None:
        self.reset()

    # --- transitions -----------------------------------------------------

    def _proposed_span(self, drag: DragState, cell: Cell) -> Tuple[datetime, datetime]:
        day = self.store.day or cell.start.date()
        if drag.source_kind is SourceKind.WORK_ITEM:
            start = cell.start
            end = start + self.default_duration
        else:
            duration = drag.original_end - drag.original_start
            start = cell.start - self.grid.quantum * drag.anchor_quanta
            end = start + duration
        return self.grid.clamp_span(start, end, day)

    def _create(self, drag: DragState, cell: Cell) -> ScheduleEntry:
        item = self.lookup_work_item(drag.source_id)
        if item is None:
            raise NotFoundError(f"Unable to find work item with id: {drag.source_id}")

        start, end = self._proposed_span(drag, cell)
        entry = ScheduleEntry(
            key=new_entry_key(),
            work_item_id=item.work_item_id,
            work_item_type=item.type,
            technician_ids=(cell.technician_id,),
            start=start,
            end=end,
            title=item.name,
            status=SCHEDULED,
        )
        self.store.apply_local(Mutation.create(entry))
        self.reconciler.create(entry)
        log.info("Scheduled %s for %s at %s", item.work_item_id, cell.technician_id, start)
        self.hooks.entry_created(entry)
        return entry

    def _move(self, drag: DragState, cell: Cell) -> ScheduleEntry:
        current = self.store.get(drag.source_id)
        if current is None:
            raise NotFoundError(f"Unable to find schedule entry with key: {drag.source_id}")

        start, end = self._proposed_span(drag, cell)
        moved = replace(current, technician_ids=(cell.technician_id,), start=start, end=end)
        if moved == current:
            return current

        self.store.apply_local(Mutation.update(moved))
        self.reconciler.schedule_update(
            current.key,
            {"technician_ids": [cell.technician_id], "start": start, "end": end},
            entry_id=current.entry_id,
        )
        log.info("Moved %s to %s at %s", current.key, cell.technician_id, start)
        self.hooks.entry_moved(moved)
        return moved
