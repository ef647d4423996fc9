"""Pure services: grid geometry and span invariants."""

from .constraints import MIN_DURATION, check_span, day_bounds, is_valid_span
from .geometry import GridPosition, TimeGrid, round_half_up

__all__ = [
    "MIN_DURATION",
    "check_span",
    "day_bounds",
    "is_valid_span",
    "GridPosition",
    "TimeGrid",
    "round_half_up",
]
