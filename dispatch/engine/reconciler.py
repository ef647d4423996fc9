"""Debounced persistence of local schedule mutations."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional, Set

from dispatch.domain.backend import ScheduleActionResult, ScheduleBackend
from dispatch.domain.entities import ScheduleEntry
from dispatch.errors import PersistenceError

from .state import ScheduleStateStore

log = logging.getLogger(__name__)


class WriteOp(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass
class PendingWrite:
    op: WriteOp
    key: str
    generation: int
    epoch: int
    entry_id: Optional[str] = None
    entry: Optional[ScheduleEntry] = None
    fields: Dict[str, Any] = field(default_factory=dict)


class PersistenceReconciler:
    """
    Coalesces local mutations into backend writes and folds results back.

    At most one write per entry key is outstanding. Updates are debounced:
    a newer update for the same key cancels the pending timer and replaces
    the payload, so only the latest state is sent. Each write is tagged with
    the key's generation; a result whose generation is no longer the latest
    is treated as superseded. Switching day (`detach`) bumps the epoch so
    callbacks of writes started for the old day can no longer touch the
    store.
    """

    def __init__(
        self,
        backend: ScheduleBackend,
        store: ScheduleStateStore,
        debounce_seconds: float = 0.5,
        on_failure: Optional[Callable[[PersistenceError], None]] = None,
    ):
        self.backend = backend
        self.store = store
        self.debounce_seconds = debounce_seconds
        self.on_failure = on_failure

        self._epoch = 0
        self._generation: Dict[str, int] = defaultdict(int)
        self._timers: Dict[str, asyncio.TimerHandle] = {}
        self._pending: Dict[str, PendingWrite] = {}
        self._inflight: Dict[str, asyncio.Task] = {}
        self._creates: Dict[str, asyncio.Task] = {}
        self._created_ids: Dict[str, str] = {}
        self._detached: Set[asyncio.Task] = set()

    # --- public API ------------------------------------------------------

    def has_pending(self, key: str) -> bool:
        return key in self._timers

    def create(self, entry: ScheduleEntry) -> asyncio.Task:
        """Send a create for an optimistic entry right away."""
        write = PendingWrite(
            op=WriteOp.CREATE,
            key=entry.key,
            generation=self._bump(entry.key),
            epoch=self._epoch,
            entry=entry,
        )
        task = self._start(write)
        self._creates[entry.key] = task
        task.add_done_callback(lambda t, key=entry.key: self._forget(self._creates, key, t))
        return task

    def schedule_update(self, key: str, fields: Dict[str, Any], entry_id: Optional[str] = None) -> None:
        """
        Debounce an update for `key`, superseding any earlier pending or
        in-flight update of the same entry.
        """
        write = PendingWrite(
            op=WriteOp.UPDATE,
            key=key,
            generation=self._bump(key),
            epoch=self._epoch,
            entry_id=entry_id,
            fields=dict(fields),
        )
        self._cancel_timer(key)
        self._cancel_inflight(key)
        self._pending[key] = write
        loop = asyncio.get_running_loop()
        self._timers[key] = loop.call_later(self.debounce_seconds, self._fire, key)

    def delete(self, key: str, entry_id: Optional[str] = None) -> asyncio.Task:
        """Drop pending work for `key` and send a delete."""
        self._cancel_timer(key)
        self._pending.pop(key, None)
        self._cancel_inflight(key)
        write = PendingWrite(
            op=WriteOp.DELETE,
            key=key,
            generation=self._bump(key),
            epoch=self._epoch,
            entry_id=entry_id,
        )
        return self._track(key, self._start(write))

    def flush(self, key: str) -> Optional[asyncio.Task]:
        """Send the pending update for `key` now; returns the write task."""
        if self._cancel_timer(key):
            return self._fire(key)
        return self._inflight.get(key)

    def flush_all(self) -> None:
        for key in list(self._timers):
            self.flush(key)

    def detach(self) -> None:
        """
        Send all pending writes immediately with their store callbacks
        disabled. Used when the grid switches day.
        """
        self.flush_all()
        self._epoch += 1
        for task in list(self._inflight.values()) + list(self._creates.values()):
            self._detached.add(task)
            task.add_done_callback(self._detached.discard)
        self._inflight.clear()
        self._creates.clear()
        self._created_ids.clear()
        self._generation.clear()

    def cancel_all(self) -> None:
        """Drop pending writes and cancel everything in flight."""
        self._epoch += 1
        for key in list(self._timers):
            self._cancel_timer(key)
        self._pending.clear()
        for task in list(self._inflight.values()) + list(self._creates.values()) + list(self._detached):
            task.cancel()
        self._generation.clear()
        self._created_ids.clear()

    async def drain(self) -> None:
        """Wait until no write is pending or in flight."""
        while self._timers or self._inflight or self._creates or self._detached:
            tasks = list(self._inflight.values()) + list(self._creates.values()) + list(self._detached)
            if tasks:
                await asyncio.gather(*tasks, return_exceptions=True)
            else:
                await asyncio.sleep(self.debounce_seconds / 4)
            await asyncio.sleep(0)

    # --- internals -------------------------------------------------------

    def _bump(self, key: str) -> int:
        self._generation[key] += 1
        return self._generation[key]

    def _cancel_timer(self, key: str) -> bool:
        timer = self._timers.pop(key, None)
        if timer is None:
            return False
        timer.cancel()
        return True

    def _cancel_inflight(self, key: str) -> None:
        task = self._inflight.pop(key, None)
        if task is not None and not task.done():
            log.debug("Cancelling superseded write for %s", key)
            task.cancel()

    def _fire(self, key: str) -> Optional[asyncio.Task]:
        self._timers.pop(key, None)
        write = self._pending.pop(key, None)
        if write is None:
            return None
        return self._track(key, self._start(write))

    def _start(self, write: PendingWrite) -> asyncio.Task:
        loop = asyncio.get_running_loop()
        return loop.create_task(self._send(write), name=f"dispatch-{write.op.value}-{write.key}")

    def _track(self, key: str, task: asyncio.Task) -> asyncio.Task:
        self._inflight[key] = task
        task.add_done_callback(lambda t: self._forget(self._inflight, key, t))
        return task

    @staticmethod
    def _forget(registry: Dict[str, asyncio.Task], key: str, task: asyncio.Task) -> None:
        if registry.get(key) is task:
            del registry[key]

    async def _resolve_entry_id(self, write: PendingWrite) -> Optional[str]:
        if write.entry_id:
            return write.entry_id
        create = self._creates.get(write.key)
        if create is not None:
            # Shielded so cancelling this write never cancels the create
            result = await asyncio.shield(create)
            if result.success and result.entry is not None:
                return result.entry.entry_id
            return None
        if write.key in self._created_ids:
            return self._created_ids[write.key]
        entry = self.store.get(write.key)
        return entry.entry_id if entry is not None else None

    async def _call_backend(self, write: PendingWrite) -> ScheduleActionResult:
        if write.op is WriteOp.CREATE:
            return await self.backend.create_schedule_entry(write.entry, write.entry.technician_ids)

        entry_id = await self._resolve_entry_id(write)
        if entry_id is None:
            return ScheduleActionResult(success=False, error="Entry was never persisted")
        if write.op is WriteOp.UPDATE:
            return await self.backend.update_schedule_entry(entry_id, write.fields)
        return await self.backend.delete_schedule_entry(entry_id)

    async def _send(self, write: PendingWrite) -> ScheduleActionResult:
        log.info("Sending %s for %s", write.op.value, write.key)
        try:
            result = await self._call_backend(write)
        except asyncio.CancelledError:
            log.debug("%s for %s cancelled", write.op.value, write.key)
            raise
        except Exception as e:
            log.exception("%s for %s raised", write.op.value, write.key)
            result = ScheduleActionResult(success=False, error=str(e) or e.__class__.__name__)

        if write.epoch != self._epoch:
            if not result.success:
                log.warning("Detached %s for %s failed: %s", write.op.value, write.key, result.error)
            return result

        if result.success and write.op is WriteOp.CREATE and result.entry is not None:
            self._created_ids[write.key] = result.entry.entry_id

        superseded = write.generation != self._generation[write.key]
        if result.success:
            if write.op is WriteOp.DELETE:
                self.store.reconcile(write.key, None, superseded=superseded)
            elif result.entry is not None:
                self.store.reconcile(write.key, result.entry, superseded=superseded)
            return result

        error = PersistenceError(write.op.value, write.key, result.error or "unknown error")
        log.warning("%s", error)
        self.store.reconcile(write.key, error, superseded=superseded)
        if self.on_failure is not None:
            self.on_failure(error)
        return result
