"""CSV export of a day's schedule."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Iterable

import pandas as pd
from sqlalchemy.orm import Session

from dispatch.domain.backend import entry_from_row
from dispatch.domain.entities import ScheduleEntry
from dispatch.domain.repositories import ScheduleEntryRepository
from dispatch.services.constraints import day_bounds

log = logging.getLogger(__name__)

EXPORT_COLUMNS = [
    "entry_id",
    "technician_id",
    "work_item_id",
    "work_item_type",
    "title",
    "status",
    "scheduled_start",
    "scheduled_end",
]


def to_iso_with_tz(dt: datetime, tz: str) -> str:
    # Represent as ISO8601 with local offset using pandas timezone handling
    s = pd.Timestamp(dt).tz_localize(tz)
    return s.isoformat()


def entries_to_frame(entries: Iterable[ScheduleEntry], tz: str | None = None) -> pd.DataFrame:
    """One row per (entry, assigned technician)."""
    rows = []
    for entry in entries:
        for technician_id in entry.technician_ids or ("",):
            rows.append(
                {
                    "entry_id": entry.entry_id or entry.key,
                    "technician_id": technician_id,
                    "work_item_id": entry.work_item_id,
                    "work_item_type": entry.work_item_type.value,
                    "title": entry.title,
                    "status": entry.status,
                    "scheduled_start": to_iso_with_tz(entry.start, tz) if tz else entry.start,
                    "scheduled_end": to_iso_with_tz(entry.end, tz) if tz else entry.end,
                }
            )
    return pd.DataFrame(rows, columns=EXPORT_COLUMNS)


def export_schedule_csv(session: Session, csv_path: str | Path, day: date, tz: str = "UTC") -> int:
    """
    Export the entries scheduled on `day` to CSV.

    Args:
        session: Database session
        csv_path: Destination path
        day: Day to export
        tz: IANA timezone the stored wall-clock times belong to

    Returns:
        Number of rows written
    """
    start, end = day_bounds(day)
    rows = ScheduleEntryRepository.get_in_range(session, start, end - timedelta(microseconds=1))
    df = entries_to_frame((entry_from_row(row) for row in rows), tz)
    df.to_csv(csv_path, index=False)
    log.info("Exported %d rows to %s", len(df), csv_path)
    return len(df)
