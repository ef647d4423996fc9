"""Resize controller: drag an entry's edge to change its span."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from dispatch.domain.entities import ScheduleEntry
from dispatch.errors import InvariantRejection
from dispatch.services.constraints import MIN_DURATION, check_span
from dispatch.services.geometry import TimeGrid

from .base import IDLE, GestureController
from .hooks import GridHooks
from .reconciler import PersistenceReconciler
from .state import Mutation, ScheduleStateStore

log = logging.getLogger(__name__)


class Edge(str, Enum):
    START = "start"
    END = "end"


@dataclass(frozen=True)
class ResizeState:
    key: str
    start_x: float
    initial_start: datetime
    initial_end: datetime
    edge: Edge


@dataclass(frozen=True)
class Resizing:
    resize: ResizeState


class ResizeController(GestureController[Resizing]):
    """
    idle -> resizing(edge) -> idle

    Every pointer move recomputes the dragged edge from the gesture's initial
    span and pointer X, quantized and clamped to the grid. Valid candidates
    are applied to the store at once and persisted through a debounced write;
    candidates that break ordering or the minimum duration are dropped
    silently while the gesture keeps tracking the pointer.
    """

    name = "resize"

    def __init__(
        self,
        store: ScheduleStateStore,
        reconciler: PersistenceReconciler,
        grid: TimeGrid,
        hooks: GridHooks | None = None,
        min_duration: timedelta = MIN_DURATION,
    ):
        super().__init__(store, reconciler, grid, hooks)
        self.min_duration = min_duration

    # --- events ----------------------------------------------------------

    def begin(self, key: str, edge: Edge, pointer_x: float) -> bool:
        """
        Pointer-down on an edge handle.

        Returns:
            True when the event was consumed; the host must then stop it
            from reaching drag-and-drop or cell-click handlers
        """
        entry = self.store.get(key)
        if entry is None:
            return False
        self._transition(
            Resizing(ResizeState(key, pointer_x, entry.start, entry.end, Edge(edge)))
        )
        return True

    def move(self, pointer_x: float, column_pixel_width: float | None = None) -> Optional[ScheduleEntry]:
        """
        Pointer-move while resizing.

        Returns:
            The resized entry, or None when the candidate was rejected or
            unchanged
        """
        if self.is_idle:
            return None
        r = self._state.resize
        current = self.store.get(r.key)
        if current is None:
            # Deleted mid-gesture
            self._transition(IDLE)
            return None

        delta = self.grid.delta_for_pixels(pointer_x - r.start_x, column_pixel_width)
        day = self.store.day or r.initial_start.date()
        lo, hi = self.grid.bounds(day)
        if r.edge is Edge.START:
            start, end = max(r.initial_start + delta, lo), r.initial_end
        else:
            start, end = r.initial_start, min(r.initial_end + delta, hi)

        try:
            check_span(start, end, self.store.day, self.min_duration)
        except InvariantRejection as e:
            log.debug("Resize candidate rejected: %s", e)
            return None

        if (start, end) == (current.start, current.end):
            return None
        return self._apply(current, start, end)

    def end(self) -> Optional[asyncio.Task]:
        """Pointer-up: leave the gesture and flush the pending write."""
        if self.is_idle:
            return None
        r = self._state.resize
        self._transition(IDLE)

        task = self.reconciler.flush(r.key)
        entry = self.store.get(r.key)
        if entry is not None and (entry.start, entry.end) != (r.initial_start, r.initial_end):
            log.info("Resized %s to %s - %s", r.key, entry.start, entry.end)
            self.hooks.entry_resized(entry)
        return task

    def cancel(self) -> Optional[asyncio.Task]:
        """Abort the gesture and restore the initial span."""
        if self.is_idle:
            return None
        r = self._state.resize
        self._transition(IDLE)

        current = self.store.get(r.key)
        if current is not None and (current.start, current.end) != (r.initial_start, r.initial_end):
            self._apply(current, r.initial_start, r.initial_end)
        return self.reconciler.flush(r.key)

    # --- helpers ---------------------------------------------------------

    def _apply(self, current: ScheduleEntry, start: datetime, end: datetime) -> ScheduleEntry:
        resized = current.with_span(start, end)
        self.store.apply_local(Mutation.update(resized))
        self.reconciler.schedule_update(
            current.key,
            {"technician_ids": list(current.technician_ids), "start": start, "end": end},
            entry_id=current.entry_id,
        )
        return resized
