"""Command-line interface for the technician dispatch grid."""

from __future__ import annotations

import argparse
import asyncio
import logging
from datetime import date, datetime, time

from dispatch.config import DispatchConfig, load_config
from dispatch.domain.backend import SqlScheduleBackend, entry_from_row, work_item_from_row
from dispatch.domain.db import get_session, init_database, reset_database
from dispatch.domain.repositories import ScheduleEntryRepository, WorkItemRepository
from dispatch.engine import Cell, DispatchGrid
from dispatch.io.export_csv import export_schedule_csv
from dispatch.io.import_csv import import_technicians_csv, import_work_items_csv
from dispatch.validator import summarize_entries, validate_entries


def _config(args: argparse.Namespace) -> DispatchConfig:
    cfg = load_config(args.config) if args.config else DispatchConfig()
    if args.db:
        cfg.db_url = args.db
    return cfg


def _parse_day(value: str) -> date:
    return date.fromisoformat(value)


def _at(day: date, hhmm: str) -> datetime:
    return datetime.combine(day, time.fromisoformat(hhmm))


def _cmd_init_db(args: argparse.Namespace) -> None:
    """Initialize the database."""
    cfg = _config(args)
    if args.reset:
        reset_database(cfg.db_url)
        print(f"[OK] Database reset: {cfg.db_url}")
        return
    init_database(cfg.db_url)
    print(f"[OK] Database initialized: {cfg.db_url}")


def _cmd_import_csv(args: argparse.Namespace) -> None:
    """Import CSV data into database."""
    cfg = _config(args)
    session = get_session(cfg.db_url)

    try:
        if args.technicians:
            count = import_technicians_csv(session, args.technicians)
            print(f"[OK] Imported {count} technicians")

        if args.work_items:
            count = import_work_items_csv(session, args.work_items, item_type=args.type)
            print(f"[OK] Imported {count} work items")

        print("[OK] CSV import complete")
    except Exception as e:
        session.rollback()
        print(f"[ERROR] Import failed: {e}")
        raise
    finally:
        session.close()


def _cmd_show_day(args: argparse.Namespace) -> None:
    """Print the grid rows for one day."""
    cfg = _config(args)
    session = get_session(cfg.db_url)

    async def run() -> None:
        grid = DispatchGrid(SqlScheduleBackend(session), cfg)
        await grid.select_day(args.day)
        if grid.error:
            raise RuntimeError(grid.error)
        for row in grid.rows():
            print(f"{row.technician.display_name} ({row.technician.technician_id})")
            for block in row.blocks:
                e = block.entry
                print(
                    f"  {e.start:%H:%M}-{e.end:%H:%M}  {e.title}  [{e.entry_id}]"
                    f"  @{block.position.offset:.2f}% w{block.position.width:.2f}%"
                )
        await grid.close()

    try:
        asyncio.run(run())
    except Exception as e:
        print(f"[ERROR] Could not show {args.day}: {e}")
        raise
    finally:
        session.close()


def _cmd_validate(args: argparse.Namespace) -> None:
    """Validate the entries of one day."""
    cfg = _config(args)
    session = get_session(cfg.db_url)

    try:
        start = datetime.combine(args.day, time())
        rows = ScheduleEntryRepository.get_in_range(session, start, datetime.combine(args.day, time.max))
        entries = [entry_from_row(row) for row in rows]
        validate_entries(entries, args.day, cfg.grid.min_duration_minutes)
        print(summarize_entries(entries))
        print(f"[OK] Validation passed for {args.day}")
    except Exception as e:
        print(f"[ERROR] Validation failed: {e}")
        raise
    finally:
        session.close()


def _cmd_export(args: argparse.Namespace) -> None:
    """Export one day's schedule to CSV."""
    cfg = _config(args)
    session = get_session(cfg.db_url)

    try:
        count = export_schedule_csv(session, args.out, args.day, tz=cfg.timezone)
        print(f"[OK] Exported {count} rows to {args.out}")
    except Exception as e:
        print(f"[ERROR] Export failed: {e}")
        raise
    finally:
        session.close()


def _run_on_grid(cfg: DispatchConfig, session, day: date, action):
    """
    Open the grid on `day`, run `action(grid)` and wait for writes to settle.

    Returns:
        Whatever `action` returned
    """

    async def run():
        grid = DispatchGrid(SqlScheduleBackend(session), cfg)
        await grid.select_day(day)
        if grid.error:
            raise RuntimeError(grid.error)
        result = action(grid)
        await grid.wait_idle()
        errors = [n.message for n in grid.notifications if n.level == "error"]
        await grid.close()
        if errors:
            raise RuntimeError("; ".join(errors))
        return result

    return asyncio.run(run())


def _entry_day(session, entry_id: str) -> date:
    row = ScheduleEntryRepository.get_by_id(session, entry_id)
    if row is None:
        raise LookupError(f"Schedule entry not found: {entry_id}")
    return row.scheduled_start.date()


def _cmd_schedule(args: argparse.Namespace) -> None:
    """Drop a work item onto a technician row."""
    cfg = _config(args)
    session = get_session(cfg.db_url)

    def action(grid: DispatchGrid) -> None:
        row = WorkItemRepository.get_by_id(session, args.work_item)
        if row is None:
            raise LookupError(f"Work item not found: {args.work_item}")
        # The panel only holds one page; make sure the dragged item is in it
        grid.work_items[row.work_item_id] = work_item_from_row(row)
        grid.drag.start_work_item(row.work_item_id)
        if grid.drop(Cell(args.technician, _at(args.day, args.at))) is None:
            raise RuntimeError("Drop rejected")

    try:
        _run_on_grid(cfg, session, args.day, action)
        print(f"[OK] Scheduled {args.work_item} for {args.technician} on {args.day} at {args.at}")
    except Exception as e:
        print(f"[ERROR] Scheduling failed: {e}")
        raise
    finally:
        session.close()


def _cmd_move(args: argparse.Namespace) -> None:
    """Move an entry to another technician and/or start time."""
    cfg = _config(args)
    session = get_session(cfg.db_url)

    try:
        day = _entry_day(session, args.entry)

        def action(grid: DispatchGrid):
            grid.drag.start_entry(args.entry)
            moved = grid.drop(Cell(args.technician, _at(day, args.at)))
            if moved is None:
                raise RuntimeError("Drop rejected")
            grid.reconciler.flush(args.entry)
            return moved

        moved = _run_on_grid(cfg, session, day, action)
        print(
            f"[OK] Moved {args.entry} to {', '.join(moved.technician_ids)} "
            f"at {moved.start:%H:%M}-{moved.end:%H:%M}"
        )
    except Exception as e:
        print(f"[ERROR] Move failed: {e}")
        raise
    finally:
        session.close()


def _cmd_resize(args: argparse.Namespace) -> None:
    """Change an entry's start and end times."""
    cfg = _config(args)
    session = get_session(cfg.db_url)

    try:
        day = _entry_day(session, args.entry)

        def action(grid: DispatchGrid):
            resized = grid.resize_entry(args.entry, _at(day, args.start), _at(day, args.end))
            if resized is None:
                raise RuntimeError(grid.notifications[-1].message if grid.notifications else "Resize rejected")
            return resized

        resized = _run_on_grid(cfg, session, day, action)
        applied = f"{resized.start:%H:%M}-{resized.end:%H:%M}"
        requested = f"{_at(day, args.start):%H:%M}-{_at(day, args.end):%H:%M}"
        if applied != requested:
            print(f"[OK] Resized {args.entry} to {applied} (requested {requested}, snapped to the grid)")
        else:
            print(f"[OK] Resized {args.entry} to {applied}")
    except Exception as e:
        print(f"[ERROR] Resize failed: {e}")
        raise
    finally:
        session.close()


def _cmd_delete(args: argparse.Namespace) -> None:
    """Delete an entry."""
    cfg = _config(args)
    session = get_session(cfg.db_url)

    try:
        day = _entry_day(session, args.entry)
        _run_on_grid(cfg, session, day, lambda grid: grid.delete_entry(args.entry))
        print(f"[OK] Deleted {args.entry}")
    except Exception as e:
        print(f"[ERROR] Delete failed: {e}")
        raise
    finally:
        session.close()


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="dispatch",
        description="Technician dispatch scheduling grid",
    )

    # Global options
    parser.add_argument("--db", help="Database URL (default: sqlite:///dispatch.db)")
    parser.add_argument("--config", help="Path to config YAML or JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    # init-db command
    init = sub.add_parser("init-db", help="Initialize database")
    init.add_argument("--reset", action="store_true", help="Drop and recreate all tables (deletes all data)")
    init.set_defaults(func=_cmd_init_db)

    # import-csv command
    imp = sub.add_parser("import-csv", help="Import CSV data into database")
    imp.add_argument("--technicians", help="Path to technicians CSV")
    imp.add_argument("--work-items", help="Path to work items CSV")
    imp.add_argument("--type", help="Only import work items of this type (optional)")
    imp.set_defaults(func=_cmd_import_csv)

    # show-day command
    show = sub.add_parser("show-day", help="Print the grid for a day")
    show.add_argument("--day", required=True, type=_parse_day, help="Day (YYYY-MM-DD)")
    show.set_defaults(func=_cmd_show_day)

    # validate command
    val = sub.add_parser("validate", help="Validate and summarize a day")
    val.add_argument("--day", required=True, type=_parse_day, help="Day (YYYY-MM-DD)")
    val.set_defaults(func=_cmd_validate)

    # export command
    exp = sub.add_parser("export", help="Export a day's schedule to CSV")
    exp.add_argument("--day", required=True, type=_parse_day, help="Day (YYYY-MM-DD)")
    exp.add_argument("--out", required=True, help="Path to output CSV")
    exp.set_defaults(func=_cmd_export)

    # schedule command
    sch = sub.add_parser("schedule", help="Schedule a work item for a technician")
    sch.add_argument("--work-item", required=True, help="Work item ID")
    sch.add_argument("--technician", required=True, help="Technician ID")
    sch.add_argument("--day", required=True, type=_parse_day, help="Day (YYYY-MM-DD)")
    sch.add_argument("--at", required=True, help="Start time (HH:MM)")
    sch.set_defaults(func=_cmd_schedule)

    # move command
    mv = sub.add_parser("move", help="Move an entry to a technician and start time")
    mv.add_argument("--entry", required=True, help="Schedule entry ID")
    mv.add_argument("--technician", required=True, help="Target technician ID")
    mv.add_argument("--at", required=True, help="New start time (HH:MM)")
    mv.set_defaults(func=_cmd_move)

    # resize command
    rs = sub.add_parser("resize", help="Change an entry's start and end")
    rs.add_argument("--entry", required=True, help="Schedule entry ID")
    rs.add_argument("--start", required=True, help="New start time (HH:MM)")
    rs.add_argument("--end", required=True, help="New end time (HH:MM)")
    rs.set_defaults(func=_cmd_resize)

    # delete command
    rm = sub.add_parser("delete", help="Delete an entry")
    rm.add_argument("--entry", required=True, help="Schedule entry ID")
    rm.set_defaults(func=_cmd_delete)

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="[%(levelname)s] %(message)s",
    )
    args.func(args)


if __name__ == "__main__":
    main()
