"""DispatchGrid - wires the store, controllers and reconciler for one grid."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from typing import Dict, FrozenSet, List, Optional

from dispatch.config import DispatchConfig
from dispatch.domain.backend import ScheduleBackend
from dispatch.domain.entities import ScheduleEntry, Technician, WorkItem, WorkItemFilters, WorkItemPage
from dispatch.errors import InvariantRejection, LoadError, PersistenceError
from dispatch.services.constraints import check_span
from dispatch.services.geometry import GridPosition, TimeGrid

from .drag import Cell, DragController, HighlightedSlot
from .hooks import GridHooks, Notification
from .reconciler import PersistenceReconciler
from .resize import Edge, ResizeController
from .state import Mutation, ScheduleStateStore

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderedBlock:
    entry: ScheduleEntry
    position: GridPosition


@dataclass(frozen=True)
class RowView:
    technician: Technician
    blocks: List[RenderedBlock]
    highlighted_slots: FrozenSet[str]


class DispatchGrid:
    """
    Technician dispatch grid for one selected day.

    Pointer gestures go through `drag` and `resize` (or the `hover`/`drop`
    shortcuts, which also track slot highlighting). Every mutation lands in
    `store` synchronously and is persisted through `reconciler`. Load and
    persistence failures never raise out of the grid: they set `banner` or
    the store's error indicator and append to `notifications`.
    """

    def __init__(
        self,
        backend: ScheduleBackend,
        cfg: DispatchConfig | None = None,
        hooks: GridHooks | None = None,
    ):
        """
        Initialize the grid.

        Args:
            backend: Durable schedule store collaborator
            cfg: DispatchConfig (defaults apply when omitted)
            hooks: Host callbacks for create/move/resize/delete/notify
        """
        self.cfg = cfg or DispatchConfig()
        self.backend = backend
        self.grid = TimeGrid.from_config(self.cfg.grid)

        hooks = hooks or GridHooks()
        self._host_notify = hooks.on_notify
        self.hooks = replace(hooks, on_notify=self._record_notification)
        self.notifications: List[Notification] = []

        min_duration = timedelta(minutes=self.cfg.grid.min_duration_minutes)
        self.store = ScheduleStateStore(
            min_duration=min_duration,
            rollback_on_failure=self.cfg.persistence.rollback_on_failure,
        )
        self.reconciler = PersistenceReconciler(
            backend,
            self.store,
            debounce_seconds=self.cfg.persistence.debounce_seconds,
            on_failure=self._on_persistence_failure,
        )

        self.technicians: List[Technician] = []
        self.work_items: Dict[str, WorkItem] = {}
        self.work_item_total = 0
        self.banner: Optional[str] = None
        self.highlighted: FrozenSet[HighlightedSlot] = frozenset()

        self.drag = DragController(
            self.store,
            self.reconciler,
            self.grid,
            self.work_items.get,
            self.hooks,
            default_duration=timedelta(minutes=self.cfg.grid.default_duration_minutes),
        )
        self.resize = ResizeController(
            self.store, self.reconciler, self.grid, self.hooks, min_duration=min_duration
        )

    @property
    def day(self) -> Optional[date]:
        return self.store.day

    @property
    def error(self) -> Optional[str]:
        return self.banner or self.store.error

    # --- loading ---------------------------------------------------------

    async def select_day(self, day: date) -> None:
        """Switch the grid to `day`, abandoning gestures and detaching writes."""
        log.info("Selecting %s", day)
        self._reset_gestures()
        self.reconciler.detach()
        self.banner = None

        await self._load_technicians()
        await self._load_entries(day)
        await self.search_work_items()

    async def reload(self) -> None:
        """Re-fetch the current day, e.g. after a detail editor closed."""
        if self.store.day is None:
            return
        self._reset_gestures()
        self.reconciler.detach()
        self.banner = None
        await self._load_entries(self.store.day)

    async def search_work_items(
        self,
        query: str = "",
        filters: WorkItemFilters | None = None,
        page: int = 1,
    ) -> WorkItemPage:
        """Refresh the unassigned work item panel."""
        try:
            result = await self.backend.search_work_items(
                query, filters or WorkItemFilters(), page, self.cfg.page_size
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.error("Error searching work items: %s", e)
            self.hooks.error("Failed to search work items")
            return WorkItemPage()

        # Mutate in place: the drag controller holds this dict's lookup
        self.work_items.clear()
        self.work_items.update({item.work_item_id: item for item in result.items})
        self.work_item_total = result.total
        return result

    async def _load_technicians(self) -> None:
        try:
            self.technicians = list(await self.backend.list_technicians())
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.technicians = []
            self._load_failed(LoadError(f"Failed to fetch technicians: {e}"))

    async def _load_entries(self, day: date) -> None:
        try:
            await self.store.load(day, self.backend)
        except LoadError as e:
            self._load_failed(e)

    def _load_failed(self, error: LoadError) -> None:
        log.error("%s", error)
        self.banner = str(error)
        self.hooks.error(str(error))

    # --- gestures --------------------------------------------------------

    def hover(self, cell: Cell) -> FrozenSet[HighlightedSlot]:
        self.highlighted = self.drag.hover(cell)
        return self.highlighted

    def drop(self, cell: Optional[Cell]) -> Optional[ScheduleEntry]:
        self.highlighted = frozenset()
        return self.drag.drop(cell)

    def delete_entry(self, key: str) -> Optional[asyncio.Task]:
        """Remove an entry optimistically and send the delete."""
        entry = self.store.get(key)
        if entry is None:
            self.hooks.error(f"Unable to find schedule entry with key: {key}")
            return None

        self._reset_gestures()
        self.store.apply_local(Mutation.delete(key))
        task = self.reconciler.delete(key, entry.entry_id)
        log.info("Deleted %s", key)
        self.hooks.entry_deleted(entry)
        return task

    def resize_entry(self, key: str, start: datetime, end: datetime) -> Optional[ScheduleEntry]:
        """
        Resize an entry to `start`-`end` by replaying one gesture per edge.

        Both targets are snapped to the nearest quantum and clamped to the
        grid first. The edge moving away from the entry goes first so the
        intermediate span stays valid when the entry is shifted past its own
        bounds. Writes are flushed; use `wait_idle` to await them.

        Returns:
            The entry as now held (possibly unchanged), or None when the key
            is unknown or the snapped span is rejected
        """
        entry = self.store.get(key)
        if entry is None:
            self.hooks.error(f"Unable to find schedule entry with key: {key}")
            return None

        day = self.store.day or entry.start.date()
        start = self.grid.clamp_instant(self.grid.quantize(start), day)
        end = self.grid.clamp_instant(self.grid.quantize(end), day)
        try:
            check_span(start, end, self.store.day, self.resize.min_duration)
        except InvariantRejection as e:
            log.info("Resize of %s rejected: %s", key, e)
            self.hooks.error(f"Resize rejected: {e}")
            return None

        self._reset_gestures()
        px_per_hour = self.grid.column_pixel_width
        edges = [(Edge.START, start), (Edge.END, end)]
        if end > entry.end:
            edges.reverse()

        for edge, target in edges:
            current = self.store.get(key)
            origin = current.start if edge is Edge.START else current.end
            hours = (target - origin).total_seconds() / 3600.0
            if not hours:
                continue
            self.resize.begin(key, edge, 0.0)
            self.resize.move(hours * px_per_hour)
            self.resize.end()
        return self.store.get(key)

    def accept_external(self, entry: ScheduleEntry) -> None:
        """Take an entry updated outside the grid and re-render its rows."""
        self.store.accept_external(entry)

    def _reset_gestures(self) -> None:
        self.drag.reset()
        self.resize.reset()
        self.highlighted = frozenset()

    # --- rendering -------------------------------------------------------

    def render_row(self, technician_id: str) -> List[RenderedBlock]:
        return [
            RenderedBlock(entry, self.grid.time_to_position(entry.start, entry.end))
            for entry in self.store.row(technician_id)
        ]

    def highlighted_slots(self, technician_id: str) -> FrozenSet[str]:
        return frozenset(h.slot for h in self.highlighted if h.technician_id == technician_id)

    def rows(self) -> List[RowView]:
        return [
            RowView(
                technician=tech,
                blocks=self.render_row(tech.technician_id),
                highlighted_slots=self.highlighted_slots(tech.technician_id),
            )
            for tech in self.technicians
        ]

    # --- notifications and lifecycle -------------------------------------

    def _record_notification(self, notification: Notification) -> None:
        self.notifications.append(notification)
        if self._host_notify is not None:
            self._host_notify(notification)

    def _on_persistence_failure(self, error: PersistenceError) -> None:
        self.hooks.error(f"Failed to {error.operation} schedule entry: {error.message}")

    async def wait_idle(self) -> None:
        """Wait for all pending and in-flight writes to settle."""
        await self.reconciler.drain()

    async def close(self, discard_pending: bool = False) -> None:
        """
        Tear the grid down. Pending writes are sent (or dropped with
        `discard_pending`) without touching the store afterwards.
        """
        self._reset_gestures()
        if discard_pending:
            self.reconciler.cancel_all()
        else:
            self.reconciler.detach()
        await self.reconciler.drain()
        self.store.clear()
