"""Repository classes for data access."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from .models import ScheduleEntry, ScheduleEntryAssignee, Technician, WorkItem


class TechnicianRepository:
    """Repository for technician data access."""

    @staticmethod
    def get_all(session: Session) -> List[Technician]:
        """Get all technicians ordered by name."""
        return session.query(Technician).order_by(Technician.first_name, Technician.last_name).all()

    @staticmethod
    def get_by_id(session: Session, technician_id: str) -> Optional[Technician]:
        return session.query(Technician).filter(Technician.technician_id == technician_id).first()

    @staticmethod
    def bulk_create(session: Session, technicians: List[Technician]) -> None:
        """Create multiple technicians."""
        session.add_all(technicians)
        session.commit()


class WorkItemRepository:
    """Repository for work item data access."""

    @staticmethod
    def get_by_id(session: Session, work_item_id: str) -> Optional[WorkItem]:
        return session.query(WorkItem).filter(WorkItem.work_item_id == work_item_id).first()

    @staticmethod
    def search(
        session: Session,
        term: str = "",
        item_type: Optional[str] = None,
        sort_by: str = "name",
        sort_order: str = "asc",
        page: int = 1,
        page_size: int = 10,
    ) -> Tuple[List[WorkItem], int]:
        """
        Search work items by name/description with paging.

        Returns:
            (items on the requested page, total matching count)
        """
        query = session.query(WorkItem)
        if term:
            pattern = f"%{term}%"
            query = query.filter(or_(WorkItem.name.ilike(pattern), WorkItem.description.ilike(pattern)))
        if item_type:
            query = query.filter(WorkItem.type == item_type)

        total = query.count()

        column = WorkItem.type if sort_by == "type" else WorkItem.name
        column = column.desc() if sort_order == "desc" else column.asc()
        items = (
            query.order_by(column, WorkItem.work_item_id)
            .offset((max(page, 1) - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return items, total

    @staticmethod
    def bulk_create(session: Session, work_items: List[WorkItem]) -> None:
        """Create multiple work items."""
        session.add_all(work_items)
        session.commit()


class ScheduleEntryRepository:
    """Repository for schedule entry data access."""

    @staticmethod
    def get_by_id(session: Session, entry_id: str) -> Optional[ScheduleEntry]:
        return session.query(ScheduleEntry).filter(ScheduleEntry.entry_id == entry_id).first()

    @staticmethod
    def get_in_range(session: Session, start: datetime, end: datetime) -> List[ScheduleEntry]:
        """Get entries whose start or end falls within [start, end], ordered by start."""
        return (
            session.query(ScheduleEntry)
            .filter(
                or_(
                    ScheduleEntry.scheduled_start.between(start, end),
                    ScheduleEntry.scheduled_end.between(start, end),
                )
            )
            .order_by(ScheduleEntry.scheduled_start)
            .all()
        )

    @staticmethod
    def create(session: Session, entry: ScheduleEntry, technician_ids: Sequence[str]) -> ScheduleEntry:
        """Create an entry with its assignees in one transaction."""
        entry.assignees = [ScheduleEntryAssignee(technician_id=tid) for tid in technician_ids]
        session.add(entry)
        session.commit()
        session.refresh(entry)
        return entry

    @staticmethod
    def update(session: Session, entry: ScheduleEntry, technician_ids: Optional[Sequence[str]] = None) -> ScheduleEntry:
        """Persist changes to an entry, replacing assignees when given."""
        if technician_ids is not None:
            entry.assignees.clear()
            session.flush()
            entry.assignees.extend(ScheduleEntryAssignee(technician_id=tid) for tid in technician_ids)
        session.commit()
        session.refresh(entry)
        return entry

    @staticmethod
    def delete(session: Session, entry: ScheduleEntry) -> None:
        session.delete(entry)
        session.commit()
