"""Schedule store collaborator contract and its SQLAlchemy implementation."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .entities import (
    SCHEDULED,
    ScheduleEntry,
    Technician,
    WorkItem,
    WorkItemFilters,
    WorkItemPage,
    WorkItemType,
)
from .repositories import (
    ScheduleEntryRepository,
    TechnicianRepository,
    WorkItemRepository,
)

log = logging.getLogger(__name__)

# Fields the grid may send in a partial update
UPDATABLE_FIELDS = {"technician_ids", "start", "end", "status", "title", "notes"}


@dataclass
class ScheduleActionResult:
    success: bool
    entry: Optional[ScheduleEntry] = None
    error: Optional[str] = None


class ScheduleBackend(Protocol):
    """Operations the grid consumes from the durable schedule store."""

    async def list_schedule_entries(self, day_start: datetime, day_end: datetime) -> List[ScheduleEntry]:
        ...

    async def create_schedule_entry(
        self, entry: ScheduleEntry, assigned_technician_ids: Sequence[str]
    ) -> ScheduleActionResult:
        ...

    async def update_schedule_entry(self, entry_id: str, fields: Dict[str, Any]) -> ScheduleActionResult:
        ...

    async def delete_schedule_entry(self, entry_id: str) -> ScheduleActionResult:
        ...

    async def list_technicians(self) -> List[Technician]:
        ...

    async def search_work_items(
        self,
        query: str,
        filters: WorkItemFilters,
        page: int,
        page_size: int,
    ) -> WorkItemPage:
        ...


def technician_from_row(row: models.Technician) -> Technician:
    return Technician(technician_id=row.technician_id, first_name=row.first_name, last_name=row.last_name)


def work_item_from_row(row: models.WorkItem) -> WorkItem:
    return WorkItem(
        work_item_id=row.work_item_id,
        type=WorkItemType(row.type),
        name=row.name,
        description=row.description or "",
        is_billable=bool(row.is_billable),
    )


def entry_from_row(row: models.ScheduleEntry) -> ScheduleEntry:
    return ScheduleEntry.from_backend(
        row.entry_id,
        work_item_id=row.work_item_id,
        work_item_type=WorkItemType(row.work_item_type),
        technician_ids=tuple(a.technician_id for a in row.assignees),
        start=row.scheduled_start,
        end=row.scheduled_end,
        title=row.title,
        status=row.status,
        notes=row.notes,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class SqlScheduleBackend:
    """
    Reference schedule store backed by SQLAlchemy.

    Calls run on the event loop thread against one session; errors are
    rolled back and reported as failed results rather than raised.
    """

    def __init__(self, session: Session):
        self.session = session

    async def list_schedule_entries(self, day_start: datetime, day_end: datetime) -> List[ScheduleEntry]:
        rows = ScheduleEntryRepository.get_in_range(self.session, day_start, day_end)
        return [entry_from_row(row) for row in rows]

    async def list_technicians(self) -> List[Technician]:
        return [technician_from_row(row) for row in TechnicianRepository.get_all(self.session)]

    async def search_work_items(
        self,
        query: str = "",
        filters: WorkItemFilters | None = None,
        page: int = 1,
        page_size: int = 10,
    ) -> WorkItemPage:
        filters = filters or WorkItemFilters()
        rows, total = WorkItemRepository.search(
            self.session,
            term=query,
            item_type=filters.type.value if filters.type else None,
            sort_by=filters.sort_by,
            sort_order=filters.sort_order,
            page=page,
            page_size=page_size,
        )
        return WorkItemPage(items=[work_item_from_row(row) for row in rows], total=total)

    async def create_schedule_entry(
        self, entry: ScheduleEntry, assigned_technician_ids: Sequence[str]
    ) -> ScheduleActionResult:
        if not assigned_technician_ids:
            return ScheduleActionResult(success=False, error="At least one assigned technician is required")

        now = models.utcnow()
        row = models.ScheduleEntry(
            entry_id=str(uuid.uuid4()),
            work_item_id=None if entry.work_item_type == WorkItemType.AD_HOC else entry.work_item_id,
            work_item_type=entry.work_item_type.value,
            title=entry.title,
            notes=entry.notes,
            status=entry.status or SCHEDULED,
            scheduled_start=entry.start,
            scheduled_end=entry.end,
            created_at=now,
            updated_at=now,
        )
        try:
            row = ScheduleEntryRepository.create(self.session, row, list(assigned_technician_ids))
        except SQLAlchemyError as e:
            self.session.rollback()
            log.error("Create failed for %s: %s", entry.key, e)
            return ScheduleActionResult(success=False, error=str(e))
        return ScheduleActionResult(success=True, entry=entry_from_row(row))

    async def update_schedule_entry(self, entry_id: str, fields: Dict[str, Any]) -> ScheduleActionResult:
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            return ScheduleActionResult(success=False, error=f"Unknown fields: {sorted(unknown)}")

        row = ScheduleEntryRepository.get_by_id(self.session, entry_id)
        if row is None:
            return ScheduleActionResult(success=False, error=f"Schedule entry not found: {entry_id}")

        start = fields.get("start", row.scheduled_start)
        end = fields.get("end", row.scheduled_end)
        if end <= start:
            return ScheduleActionResult(success=False, error="Scheduled end must be after start")

        row.scheduled_start = start
        row.scheduled_end = end
        for name in ("status", "title", "notes"):
            if name in fields:
                setattr(row, name, fields[name])
        row.updated_at = models.utcnow()

        technician_ids = fields.get("technician_ids")
        try:
            row = ScheduleEntryRepository.update(self.session, row, technician_ids)
        except SQLAlchemyError as e:
            self.session.rollback()
            log.error("Update failed for %s: %s", entry_id, e)
            return ScheduleActionResult(success=False, error=str(e))
        return ScheduleActionResult(success=True, entry=entry_from_row(row))

    async def delete_schedule_entry(self, entry_id: str) -> ScheduleActionResult:
        row = ScheduleEntryRepository.get_by_id(self.session, entry_id)
        if row is None:
            return ScheduleActionResult(success=False, error=f"Schedule entry not found: {entry_id}")
        try:
            ScheduleEntryRepository.delete(self.session, row)
        except SQLAlchemyError as e:
            self.session.rollback()
            log.error("Delete failed for %s: %s", entry_id, e)
            return ScheduleActionResult(success=False, error=str(e))
        return ScheduleActionResult(success=True)
