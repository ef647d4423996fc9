"""Mapping between wall-clock time and the horizontal axis of the dispatch grid.

The grid is a row of equal-width hour columns spanning `start_hour` to
`end_hour`. Positions are expressed as percentages of the grid width so a
rendered block can be absolutely positioned inside its technician row;
pointer displacement arrives in pixels and is converted back to a time delta
rounded to the nearest quantum.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import List, Tuple

from dispatch.config import GridConfig
from dispatch.errors import InvariantRejection


def round_half_up(value: float) -> int:
    """Round to the nearest integer with ties going up (x.5 -> x+1)."""
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class GridPosition:
    offset: float  # percent of grid width
    width: float  # percent of grid width


@dataclass(frozen=True)
class TimeGrid:
    start_hour: int = 0
    end_hour: int = 24
    column_pixel_width: float = 120.0
    quantum_minutes: int = 15

    @classmethod
    def from_config(cls, cfg: GridConfig) -> "TimeGrid":
        return cls(
            start_hour=cfg.start_hour,
            end_hour=cfg.end_hour,
            column_pixel_width=cfg.column_pixel_width,
            quantum_minutes=cfg.quantum_minutes,
        )

    @property
    def column_count(self) -> int:
        return self.end_hour - self.start_hour

    @property
    def column_width_percent(self) -> float:
        return 100.0 / self.column_count

    @property
    def grid_pixel_width(self) -> float:
        return self.column_count * self.column_pixel_width

    @property
    def quantum(self) -> timedelta:
        return timedelta(minutes=self.quantum_minutes)

    @property
    def quanta_per_hour(self) -> int:
        return 60 // self.quantum_minutes

    def bounds(self, day: date) -> Tuple[datetime, datetime]:
        """First and last visible instants of the grid for `day`."""
        midnight = datetime.combine(day, time())
        return (
            midnight + timedelta(hours=self.start_hour),
            midnight + timedelta(hours=self.end_hour),
        )

    def time_to_position(self, start: datetime, end: datetime) -> GridPosition:
        """
        Horizontal placement of a span.

        offset = (hour - start_hour + minute/60) * column_width_percent
        width  = duration_hours * column_width_percent
        """
        hours_from_grid_start = start.hour - self.start_hour + start.minute / 60 + start.second / 3600
        duration_hours = (end - start).total_seconds() / 3600
        return GridPosition(
            offset=hours_from_grid_start * self.column_width_percent,
            width=duration_hours * self.column_width_percent,
        )

    def quanta_for_pixels(self, pixel_delta: float, column_pixel_width: float | None = None) -> int:
        """Whole number of quanta nearest to a pointer displacement."""
        width = column_pixel_width or self.column_pixel_width
        return round_half_up(pixel_delta / width * self.quanta_per_hour)

    def position_to_time(
        self,
        pixel_delta: float,
        column_pixel_width: float | None = None,
        quantum_minutes: int | None = None,
    ) -> float:
        """
        Convert a pointer displacement in pixels into a delta in hours,
        rounded to the nearest quantum.
        """
        width = column_pixel_width or self.column_pixel_width
        per_hour = 60 // (quantum_minutes or self.quantum_minutes)
        return round_half_up(pixel_delta / width * per_hour) / per_hour

    def delta_for_pixels(self, pixel_delta: float, column_pixel_width: float | None = None) -> timedelta:
        return self.quantum * self.quanta_for_pixels(pixel_delta, column_pixel_width)

    def quantize(self, instant: datetime) -> datetime:
        midnight = datetime.combine(instant.date(), time())
        minutes = (instant - midnight).total_seconds() / 60
        return midnight + self.quantum * round_half_up(minutes / self.quantum_minutes)

    def clamp_instant(self, instant: datetime, day: date) -> datetime:
        lo, hi = self.bounds(day)
        return min(max(instant, lo), hi)

    def clamp_span(self, start: datetime, end: datetime, day: date) -> Tuple[datetime, datetime]:
        """
        Shift a span, preserving its duration, so it lies inside the grid.

        Raises:
            InvariantRejection: If the span is longer than the visible grid
        """
        lo, hi = self.bounds(day)
        duration = end - start
        if duration > hi - lo:
            raise InvariantRejection(f"Span of {duration} does not fit the grid")
        if start < lo:
            start = lo
        if start + duration > hi:
            start = hi - duration
        return start, start + duration

    def time_slots(self) -> List[str]:
        """Labels of every quantum slot in the grid, e.g. '08:00', '08:15'."""
        slots = []
        for hour in range(self.start_hour, self.end_hour):
            for minute in range(0, 60, self.quantum_minutes):
                slots.append(f"{hour:02d}:{minute:02d}")
        return slots

    def slot_time(self, day: date, slot: str) -> datetime:
        hours, minutes = [int(x) for x in slot.split(":")]
        return datetime.combine(day, time()) + timedelta(hours=hours, minutes=minutes)

    @staticmethod
    def slot_label(instant: datetime) -> str:
        return f"{instant.hour:02d}:{instant.minute:02d}"

    def slots_covering(self, start: datetime, end: datetime) -> List[str]:
        """Labels of the slots a span occupies, end exclusive."""
        labels = []
        current = start
        while current < end:
            labels.append(self.slot_label(current))
            current += self.quantum
        return labels
