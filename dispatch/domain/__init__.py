"""Domain types, the schedule store contract and its SQL implementation."""

from .backend import ScheduleActionResult, ScheduleBackend, SqlScheduleBackend
from .entities import ScheduleEntry, Technician, WorkItem, WorkItemFilters, WorkItemPage, WorkItemType
from .models import Base
from .repositories import ScheduleEntryRepository, TechnicianRepository, WorkItemRepository

__all__ = [
    "Base",
    "ScheduleEntry",
    "Technician",
    "WorkItem",
    "WorkItemType",
    "WorkItemFilters",
    "WorkItemPage",
    "ScheduleBackend",
    "ScheduleActionResult",
    "SqlScheduleBackend",
    "TechnicianRepository",
    "WorkItemRepository",
    "ScheduleEntryRepository",
]
