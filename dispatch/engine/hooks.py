"""Host callbacks fired by the grid."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from dispatch.domain.entities import ScheduleEntry

log = logging.getLogger(__name__)

EntryCallback = Callable[[ScheduleEntry], None]


@dataclass(frozen=True)
class Notification:
    level: str  # info | error
    message: str


@dataclass
class GridHooks:
    """
    Optional host-level side effects.

    A failing host callback is logged and never interrupts the gesture that
    triggered it.
    """

    on_entry_created: Optional[EntryCallback] = None
    on_entry_moved: Optional[EntryCallback] = None
    on_entry_resized: Optional[EntryCallback] = None
    on_entry_deleted: Optional[EntryCallback] = None
    on_notify: Optional[Callable[[Notification], None]] = None

    def _fire(self, callback, arg) -> None:
        if callback is None:
            return
        try:
            callback(arg)
        except Exception:
            log.exception("Host callback %r failed", callback)

    def entry_created(self, entry: ScheduleEntry) -> None:
        self._fire(self.on_entry_created, entry)

    def entry_moved(self, entry: ScheduleEntry) -> None:
        self._fire(self.on_entry_moved, entry)

    def entry_resized(self, entry: ScheduleEntry) -> None:
        self._fire(self.on_entry_resized, entry)

    def entry_deleted(self, entry: ScheduleEntry) -> None:
        self._fire(self.on_entry_deleted, entry)

    def notify(self, level: str, message: str) -> None:
        self._fire(self.on_notify, Notification(level, message))

    def error(self, message: str) -> None:
        self.notify("error", message)
