"""Grid engine: state store, gesture controllers and persistence."""

from .base import IDLE, GestureController, Idle
from .dispatcher import DispatchGrid, RenderedBlock, RowView
from .drag import Cell, DragController, DragState, HighlightedSlot, SourceKind
from .hooks import GridHooks, Notification
from .reconciler import PersistenceReconciler
from .resize import Edge, ResizeController, ResizeState
from .state import Mutation, MutationKind, ScheduleStateStore

__all__ = [
    "IDLE",
    "Idle",
    "GestureController",
    "DispatchGrid",
    "RenderedBlock",
    "RowView",
    "Cell",
    "DragController",
    "DragState",
    "HighlightedSlot",
    "SourceKind",
    "GridHooks",
    "Notification",
    "PersistenceReconciler",
    "Edge",
    "ResizeController",
    "ResizeState",
    "Mutation",
    "MutationKind",
    "ScheduleStateStore",
]
