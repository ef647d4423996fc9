"""In-memory schedule entries for the selected day."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import date, timedelta
from enum import Enum
from typing import Callable, Dict, FrozenSet, Iterable, Iterator, List, Optional, Union

from dispatch.domain.backend import ScheduleBackend
from dispatch.domain.entities import ScheduleEntry
from dispatch.errors import InvariantRejection, LoadError, NotFoundError, PersistenceError
from dispatch.services.constraints import MIN_DURATION, check_span, day_bounds

log = logging.getLogger(__name__)

RowListener = Callable[[FrozenSet[str]], None]

# ScheduleEntry = confirmed by the backend, None = deletion confirmed
Outcome = Union[ScheduleEntry, PersistenceError, None]


class MutationKind(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class Mutation:
    kind: MutationKind
    entry: Optional[ScheduleEntry] = None
    key: Optional[str] = None

    @classmethod
    def create(cls, entry: ScheduleEntry) -> "Mutation":
        return cls(MutationKind.CREATE, entry=entry, key=entry.key)

    @classmethod
    def update(cls, entry: ScheduleEntry) -> "Mutation":
        return cls(MutationKind.UPDATE, entry=entry, key=entry.key)

    @classmethod
    def delete(cls, key: str) -> "Mutation":
        return cls(MutationKind.DELETE, key=key)


def _technicians(*entries: Optional[ScheduleEntry]) -> FrozenSet[str]:
    ids = set()
    for entry in entries:
        if entry is not None:
            ids.update(entry.technician_ids)
    return frozenset(ids)


class ScheduleStateStore:
    """
    Holds exactly the schedule entries of the selected day.

    Local mutations apply synchronously (optimistic update). Backend outcomes
    are folded back in through `reconcile`, which keeps a copy of the last
    server-confirmed version of every entry so failed writes can be rolled
    back. Listeners receive the technician ids whose rows changed.
    """

    def __init__(self, min_duration: timedelta = MIN_DURATION, rollback_on_failure: bool = True):
        self.min_duration = min_duration
        self.rollback_on_failure = rollback_on_failure
        self.day: Optional[date] = None
        self.error: Optional[str] = None
        self._error_key: Optional[str] = None
        self._load_generation = 0
        self._entries: Dict[str, ScheduleEntry] = {}
        self._confirmed: Dict[str, ScheduleEntry] = {}
        self._listeners: List[RowListener] = []

    # --- observation -----------------------------------------------------

    def subscribe(self, listener: RowListener) -> Callable[[], None]:
        """Register a row re-render listener; returns an unsubscribe function."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _notify(self, technician_ids: Iterable[str]) -> None:
        affected = frozenset(technician_ids)
        if not affected:
            return
        for listener in list(self._listeners):
            listener(affected)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ScheduleEntry]:
        return iter(self.entries())

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> Optional[ScheduleEntry]:
        return self._entries.get(key)

    def confirmed(self, key: str) -> Optional[ScheduleEntry]:
        return self._confirmed.get(key)

    def find_by_entry_id(self, entry_id: str) -> Optional[ScheduleEntry]:
        for entry in self._entries.values():
            if entry.entry_id == entry_id:
                return entry
        return None

    def entries(self) -> List[ScheduleEntry]:
        return sorted(self._entries.values(), key=lambda e: (e.start, e.key))

    def row(self, technician_id: str) -> List[ScheduleEntry]:
        """Entries rendered in a technician's row, ordered by start."""
        return [e for e in self.entries() if e.assigned_to(technician_id)]

    # --- loading ---------------------------------------------------------

    async def load(self, day: date, backend: ScheduleBackend) -> List[ScheduleEntry]:
        """
        Replace the store with the entries scheduled on `day`.

        A load overtaken by a later `load` or `clear` is discarded: the store
        keeps the newer day and the stale call returns its current entries.

        Raises:
            LoadError: If the backend call fails; the store is left empty
        """
        self._load_generation += 1
        generation = self._load_generation
        start, end = day_bounds(day)
        try:
            fetched = await backend.list_schedule_entries(start, end - timedelta(microseconds=1))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if generation != self._load_generation:
                log.info("Discarding failed load for %s; a newer day was selected", day)
                return self.entries()
            previous = _technicians(*self._entries.values())
            self.day = day
            self._entries.clear()
            self._confirmed.clear()
            self._set_error("Failed to fetch schedule entries")
            self._notify(previous)
            raise LoadError(f"Failed to fetch schedule entries for {day}: {e}") from e

        if generation != self._load_generation:
            log.info("Discarding stale load for %s; a newer day was selected", day)
            return self.entries()
        previous = _technicians(*self._entries.values())

        entries: Dict[str, ScheduleEntry] = {}
        for entry in fetched:
            try:
                check_span(entry.start, entry.end, day, self.min_duration)
            except InvariantRejection as e:
                log.warning("Skipping entry %s outside the day view: %s", entry.key, e)
                continue
            entries[entry.key] = entry

        self.day = day
        self._entries = entries
        self._confirmed = dict(entries)
        self._set_error(None)
        log.debug("Loaded %d entries for %s", len(entries), day)
        self._notify(previous | _technicians(*entries.values()))
        return self.entries()

    def _set_error(self, message: Optional[str], key: Optional[str] = None) -> None:
        self.error = message
        self._error_key = key

    def clear(self) -> None:
        self._load_generation += 1
        previous = _technicians(*self._entries.values())
        self._entries.clear()
        self._confirmed.clear()
        self.day = None
        self._notify(previous)

    # --- optimistic mutation ---------------------------------------------

    def apply_local(self, mutation: Mutation) -> Optional[ScheduleEntry]:
        """
        Apply a create/update/delete immediately, before any network call.

        Returns:
            The entry as now held (create/update) or the removed entry (delete)

        Raises:
            InvariantRejection: If the new span violates an entry invariant
            NotFoundError: If an update/delete targets an unknown key
        """
        if mutation.kind is MutationKind.DELETE:
            removed = self._entries.pop(mutation.key, None)
            if removed is None:
                raise NotFoundError(f"Unable to find schedule entry with key: {mutation.key}")
            self._notify(removed.technician_ids)
            return removed

        entry = mutation.entry
        check_span(entry.start, entry.end, self.day, self.min_duration)
        previous = self._entries.get(entry.key)
        if mutation.kind is MutationKind.CREATE and previous is not None:
            raise ValueError(f"Schedule entry {entry.key} already exists")
        if mutation.kind is MutationKind.UPDATE and previous is None:
            raise NotFoundError(f"Unable to find schedule entry with key: {entry.key}")

        self._entries[entry.key] = entry
        self._notify(_technicians(previous, entry))
        return entry

    # --- reconciliation --------------------------------------------------

    def reconcile(self, key: str, outcome: Outcome, superseded: bool = False) -> None:
        """
        Fold a backend outcome for `key` back into local state.

        Args:
            key: Client-side handle of the entry
            outcome: Confirmed entry, None for a confirmed delete, or the
                PersistenceError of a failed write
            superseded: True when a newer local mutation for the entry exists;
                the local span is then kept and only server-assigned fields
                are adopted
        """
        if isinstance(outcome, PersistenceError):
            self._reconcile_failure(key, outcome, superseded)
            return

        if self._error_key == key:
            self._set_error(None)
        if outcome is None:
            self._confirmed.pop(key, None)
            return

        confirmed = replace(outcome, key=key)
        self._confirmed[key] = confirmed

        current = self._entries.get(key)
        if current is None:
            # Deleted locally while the write was in flight
            return
        if superseded:
            merged = replace(
                current,
                entry_id=confirmed.entry_id,
                created_at=confirmed.created_at,
                updated_at=confirmed.updated_at,
            )
        else:
            merged = confirmed
        if merged != current:
            self._entries[key] = merged
            self._notify(_technicians(current, merged))

    def _reconcile_failure(self, key: str, error: PersistenceError, superseded: bool) -> None:
        self._set_error(str(error), key)
        if superseded:
            log.info("Ignoring failure of superseded write for %s", key)
            return
        if not self.rollback_on_failure:
            return

        snapshot = self._confirmed.get(key)
        current = self._entries.get(key)
        if snapshot is None:
            if current is not None:
                del self._entries[key]
                self._notify(current.technician_ids)
        elif snapshot != current:
            self._entries[key] = snapshot
            self._notify(_technicians(current, snapshot))
        log.info("Rolled back %s to last confirmed state", key)

    def accept_external(self, entry: ScheduleEntry) -> None:
        """
        Take an entry changed outside the grid (e.g. by a detail editor).

        The entry becomes both the local and the confirmed version; if it no
        longer falls on the selected day it leaves the store.
        """
        existing = self.find_by_entry_id(entry.entry_id) if entry.entry_id else self._entries.get(entry.key)
        key = existing.key if existing is not None else entry.key
        entry = replace(entry, key=key)

        try:
            check_span(entry.start, entry.end, self.day, self.min_duration)
        except InvariantRejection as e:
            log.info("External entry %s leaves the day view: %s", key, e)
            if existing is not None:
                del self._entries[key]
                self._confirmed.pop(key, None)
                self._notify(existing.technician_ids)
            return

        self._entries[key] = entry
        self._confirmed[key] = entry
        self._notify(_technicians(existing, entry))
