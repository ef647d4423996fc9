"""In-memory value types shared by the grid, controllers and collaborators."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Tuple


class WorkItemType(str, Enum):
    TICKET = "ticket"
    PROJECT_TASK = "project_task"
    AD_HOC = "ad_hoc"
    NON_BILLABLE_CATEGORY = "non_billable_category"


SCHEDULED = "scheduled"


@dataclass(frozen=True)
class Technician:
    technician_id: str
    first_name: str
    last_name: str

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class WorkItem:
    """An assignable unit of work, owned by ticketing/project systems."""

    work_item_id: str
    type: WorkItemType
    name: str
    description: str = ""
    is_billable: bool = True


def new_entry_key() -> str:
    """Client-side handle for an entry that has not been persisted yet."""
    return f"new-{uuid.uuid4().hex}"


@dataclass(frozen=True)
class ScheduleEntry:
    """
    A work item assigned to one or more technicians for a concrete time span.

    `key` is the stable client-side handle the grid uses. For entries loaded
    from the backend it equals `entry_id`; optimistic creates carry a
    generated handle and gain an `entry_id` once the create is confirmed.
    """

    key: str
    work_item_id: Optional[str]
    work_item_type: WorkItemType
    technician_ids: Tuple[str, ...]
    start: datetime
    end: datetime
    title: str
    status: str = SCHEDULED
    entry_id: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_backend(cls, entry_id: str, **fields) -> "ScheduleEntry":
        return cls(key=entry_id, entry_id=entry_id, **fields)

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def with_span(self, start: datetime, end: datetime) -> "ScheduleEntry":
        return replace(self, start=start, end=end)

    def assigned_to(self, technician_id: str) -> bool:
        return technician_id in self.technician_ids


@dataclass(frozen=True)
class WorkItemFilters:
    type: Optional[WorkItemType] = None
    sort_by: str = "name"  # name | type
    sort_order: str = "asc"  # asc | desc


@dataclass
class WorkItemPage:
    items: list = field(default_factory=list)
    total: int = 0
