"""CSV import utilities to load technicians and work items into the database."""

from __future__ import annotations

import logging
from pathlib import Path

import pandas as pd
from sqlalchemy.orm import Session

from dispatch.domain.entities import WorkItemType
from dispatch.domain.models import Technician, WorkItem

log = logging.getLogger(__name__)

_TRUE_VALUES = {"TRUE", "T", "1", "YES", "Y"}


def import_technicians_csv(session: Session, csv_path: str | Path) -> int:
    """
    Import technicians from CSV into database.

    Args:
        session: Database session
        csv_path: Path to technicians CSV (technician_id, first_name, last_name)

    Returns:
        Number of technicians imported
    """
    df = pd.read_csv(csv_path, dtype={"technician_id": str})

    # Normalize column names
    df.columns = df.columns.str.lower().str.strip()
    df = df.drop_duplicates(subset=["technician_id"], keep="last")

    technicians = []
    for _, row in df.iterrows():
        technicians.append(
            Technician(
                technician_id=str(row["technician_id"]).strip(),
                first_name=str(row["first_name"]).strip(),
                last_name=str(row["last_name"]).strip() if pd.notna(row.get("last_name")) else "",
            )
        )

    session.add_all(technicians)
    session.commit()

    log.info("Imported %d technicians from %s", len(technicians), csv_path)
    return len(technicians)


def import_work_items_csv(session: Session, csv_path: str | Path, item_type: str | None = None) -> int:
    """
    Import work items from CSV into database.

    Args:
        session: Database session
        csv_path: Path to work items CSV (work_item_id, type, name, description, is_billable)
        item_type: Optional type to filter (e.g., "ticket")

    Returns:
        Number of work items imported

    Raises:
        ValueError: If a row carries an unknown work item type
    """
    df = pd.read_csv(csv_path, dtype={"work_item_id": str})

    # Normalize column names and types
    df.columns = df.columns.str.lower().str.strip()
    df["type"] = df["type"].str.lower().str.strip()

    valid_types = {t.value for t in WorkItemType}
    unknown = set(df["type"].unique()) - valid_types
    if unknown:
        raise ValueError(f"Unknown work item types: {sorted(unknown)}")

    if item_type is not None:
        df = df[df["type"] == item_type].copy()

    work_items = []
    for _, row in df.iterrows():
        billable = row.get("is_billable", True)
        work_items.append(
            WorkItem(
                work_item_id=str(row["work_item_id"]).strip(),
                type=str(row["type"]),
                name=str(row["name"]),
                description=str(row["description"]) if pd.notna(row.get("description")) else None,
                is_billable=True if pd.isna(billable) else str(billable).strip().upper() in _TRUE_VALUES,
            )
        )

    session.add_all(work_items)
    session.commit()

    log.info("Imported %d work items from %s", len(work_items), csv_path)
    return len(work_items)
