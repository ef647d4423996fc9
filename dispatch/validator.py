from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Sequence

import pandas as pd

from dispatch.domain.entities import ScheduleEntry
from dispatch.io.export_csv import entries_to_frame


def _frame(entries: Sequence[ScheduleEntry]) -> pd.DataFrame:
    df = entries_to_frame(entries)
    df["scheduled_start"] = pd.to_datetime(df["scheduled_start"])
    df["scheduled_end"] = pd.to_datetime(df["scheduled_end"])
    df["hours"] = (df["scheduled_end"] - df["scheduled_start"]).dt.total_seconds() / 3600.0
    return df


def validate_entries(
    entries: Sequence[ScheduleEntry],
    day: date | None = None,
    min_duration_minutes: int = 15,
) -> None:
    if not entries:
        return

    # Unique identifiers
    ids = pd.Series([e.entry_id for e in entries if e.entry_id is not None], dtype=object)
    if ids.duplicated().any():
        raise ValueError(f"Duplicate entry ids: {sorted(set(ids[ids.duplicated()]))}")

    df = _frame(entries)

    # Ordering
    unordered = df[df["scheduled_end"] <= df["scheduled_start"]]
    if not unordered.empty:
        raise ValueError(f"Entries end before they start: {sorted(set(unordered['entry_id']))}")

    # Minimum duration
    too_short = df[df["hours"] * 60 < min_duration_minutes - 1e-6]
    if not too_short.empty:
        raise ValueError(
            f"Entries shorter than {min_duration_minutes} minutes: {sorted(set(too_short['entry_id']))}"
        )

    # Same calendar day as the view
    if day is not None:
        lo = datetime.combine(day, time())
        hi = lo + timedelta(days=1)
        outside = df[(df["scheduled_start"] < lo) | (df["scheduled_end"] > hi)]
        if not outside.empty:
            raise ValueError(f"Entries leave {day}: {sorted(set(outside['entry_id']))}")


def overlapping_entries(entries: Sequence[ScheduleEntry]) -> pd.DataFrame:
    """Rows that start before an earlier entry of the same technician ends."""
    if not entries:
        return pd.DataFrame(columns=["technician_id", "entry_id", "overlaps"])
    df = _frame(entries)
    df = df[df["technician_id"] != ""].sort_values(["technician_id", "scheduled_start"])

    found = []
    for technician_id, group in df.groupby("technician_id"):
        prev_end = None
        prev_id = None
        for _, row in group.iterrows():
            if prev_end is not None and row["scheduled_start"] < prev_end:
                found.append({"technician_id": technician_id, "entry_id": row["entry_id"], "overlaps": prev_id})
            if prev_end is None or row["scheduled_end"] > prev_end:
                prev_end = row["scheduled_end"]
                prev_id = row["entry_id"]
    return pd.DataFrame(found, columns=["technician_id", "entry_id", "overlaps"])


def summarize_entries(entries: Sequence[ScheduleEntry]) -> str:
    if not entries:
        return "No entries."
    df = _frame(entries)

    hours = df.groupby("technician_id")["hours"].sum().sort_values(ascending=False)
    by_type = df.drop_duplicates("entry_id").groupby("work_item_type").size()
    overlaps = overlapping_entries(entries)

    lines = ["Hours per technician:"]
    lines.append(hours.to_string())
    lines.append("")
    lines.append("Entries per work item type:")
    lines.append(by_type.to_string())
    lines.append("")
    if overlaps.empty:
        lines.append("No overlapping entries.")
    else:
        lines.append("Overlapping entries (permitted):")
        lines.append(overlaps.to_string(index=False))
    return "\n".join(lines)
