"""SQLAlchemy models for the dispatch schedule store."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import DeclarativeBase, relationship


def utcnow() -> datetime:
    """Naive UTC timestamp, as stored in DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class Technician(Base):
    """Schedulable technician shown as a grid row."""

    __tablename__ = "technicians"

    technician_id = Column(String(36), primary_key=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)

    assignments = relationship("ScheduleEntryAssignee", back_populates="technician")

    def __repr__(self) -> str:
        return f"<Technician(id={self.technician_id}, name='{self.first_name} {self.last_name}')>"


class WorkItem(Base):
    """Ticket, project task, ad-hoc entry or non-billable category."""

    __tablename__ = "work_items"

    work_item_id = Column(String(36), primary_key=True)
    type = Column(String(30), nullable=False)  # ticket, project_task, ad_hoc, non_billable_category
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    is_billable = Column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<WorkItem(id={self.work_item_id}, type='{self.type}', name='{self.name}')>"


class ScheduleEntry(Base):
    """Work item scheduled for a concrete time span."""

    __tablename__ = "schedule_entries"

    entry_id = Column(String(36), primary_key=True)
    work_item_id = Column(String(36), nullable=True)  # NULL for ad-hoc entries
    work_item_type = Column(String(30), nullable=False)
    title = Column(String(255), nullable=False)
    notes = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="scheduled")
    scheduled_start = Column(DateTime, nullable=False)
    scheduled_end = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    assignees = relationship(
        "ScheduleEntryAssignee",
        back_populates="entry",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<ScheduleEntry(id={self.entry_id}, start={self.scheduled_start}, end={self.scheduled_end})>"


class ScheduleEntryAssignee(Base):
    """Technician assigned to a schedule entry."""

    __tablename__ = "schedule_entry_assignees"

    entry_id = Column(String(36), ForeignKey("schedule_entries.entry_id"), primary_key=True)
    technician_id = Column(String(36), ForeignKey("technicians.technician_id"), primary_key=True)

    entry = relationship("ScheduleEntry", back_populates="assignees")
    technician = relationship("Technician", back_populates="assignments")

    def __repr__(self) -> str:
        return f"<ScheduleEntryAssignee(entry={self.entry_id}, technician={self.technician_id})>"
