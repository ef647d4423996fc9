"""Base class for the pointer-gesture controllers of the grid."""

from __future__ import annotations

import logging
from abc import ABC
from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from dispatch.services.geometry import TimeGrid

from .hooks import GridHooks
from .reconciler import PersistenceReconciler
from .state import ScheduleStateStore

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Idle:
    """No gesture in progress."""


IDLE = Idle()

S = TypeVar("S")


class GestureController(ABC, Generic[S]):
    """
    Finite-state machine for one kind of pointer gesture.

    The controller owns a single state value: `IDLE` or the gesture state
    captured when the gesture began. It changes only through the public
    event methods of the subclass, each of which goes through `_transition`.
    Events that do not apply to the current state are ignored.
    """

    name: str = "gesture"  # Override in subclasses

    def __init__(
        self,
        store: ScheduleStateStore,
        reconciler: PersistenceReconciler,
        grid: TimeGrid,
        hooks: GridHooks | None = None,
    ):
        self.store = store
        self.reconciler = reconciler
        self.grid = grid
        self.hooks = hooks or GridHooks()
        self._state: Union[Idle, S] = IDLE

    @property
    def state(self) -> Union[Idle, S]:
        return self._state

    @property
    def is_idle(self) -> bool:
        return self._state is IDLE

    def _transition(self, new_state: Union[Idle, S]) -> None:
        log.debug("%s: %s -> %s", self.name, type(self._state).__name__, type(new_state).__name__)
        self._state = new_state

    def reset(self) -> None:
        """Abandon any gesture without touching the store."""
        if not self.is_idle:
            self._transition(IDLE)
