"""I/O utilities for CSV import/export."""

from .export_csv import entries_to_frame, export_schedule_csv, to_iso_with_tz
from .import_csv import import_technicians_csv, import_work_items_csv

__all__ = [
    "import_technicians_csv",
    "import_work_items_csv",
    "export_schedule_csv",
    "entries_to_frame",
    "to_iso_with_tz",
]
