"""Invariant checks for schedule entry spans."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple

from dispatch.errors import InvariantRejection

MIN_DURATION = timedelta(minutes=15)


def day_bounds(day: date) -> Tuple[datetime, datetime]:
    """Midnight to the following midnight."""
    start = datetime.combine(day, time())
    return start, start + timedelta(days=1)


def check_span(
    start: datetime,
    end: datetime,
    day: Optional[date] = None,
    min_duration: timedelta = MIN_DURATION,
) -> None:
    """
    Check a candidate span against the entry invariants.

    Args:
        start: Proposed start
        end: Proposed end
        day: Day view the entry must stay within (skipped if None)
        min_duration: Shortest allowed span

    Raises:
        InvariantRejection: If end <= start, the span is too short,
            or it leaves the day
    """
    # 1. Ordering
    if end <= start:
        raise InvariantRejection(f"End {end} is not after start {start}")

    # 2. Minimum duration
    if end - start < min_duration:
        raise InvariantRejection(
            f"Span of {int((end - start).total_seconds() // 60)} minutes is below the "
            f"{int(min_duration.total_seconds() // 60)} minute minimum"
        )

    # 3. Same calendar day as the grid
    if day is not None:
        lo, hi = day_bounds(day)
        if start < lo or end > hi:
            raise InvariantRejection(f"Span {start} - {end} leaves {day}")


def is_valid_span(
    start: datetime,
    end: datetime,
    day: Optional[date] = None,
    min_duration: timedelta = MIN_DURATION,
) -> bool:
    try:
        check_span(start, end, day, min_duration)
    except InvariantRejection:
        return False
    return True
