"""Pytest configuration and shared fixtures."""

import asyncio
from dataclasses import replace
from datetime import date, datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from dispatch.config import DispatchConfig, GridConfig, PersistenceConfig
from dispatch.domain.backend import ScheduleActionResult
from dispatch.domain.entities import ScheduleEntry, Technician, WorkItem, WorkItemPage, WorkItemType
from dispatch.domain.models import Base


def pytest_configure(config):
    """Configure pytest."""
    # Add custom markers
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (deselect with '-m \"not integration\"')"
    )
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


DAY = date(2025, 3, 10)


class FakeBackend:
    """
    In-memory schedule store that records every call.

    Writes succeed unless their operation is listed in `fail_ops`; each
    write sleeps `delay` seconds before answering, and a day listed in
    `list_delays` takes that many seconds to load. Created entries get ids
    E1, E2, ...
    """

    def __init__(self, entries=(), technicians=(), work_items=(), delay=0.0):
        self.entries = {e.entry_id: e for e in entries}
        self.technicians = list(technicians)
        self.work_items = list(work_items)
        self.delay = delay
        self.calls = []
        self.fail_ops = set()
        self.fail_load = False
        self.fail_technicians = False
        self.list_delays = {}
        self._next_id = 0

    def writes(self, op=None):
        return [c for c in self.calls if c[0] in ("create", "update", "delete") and (op is None or c[0] == op)]

    async def _pause(self):
        await asyncio.sleep(self.delay)

    async def list_schedule_entries(self, day_start, day_end):
        self.calls.append(("list", (day_start, day_end)))
        delay = self.list_delays.get(day_start.date())
        if delay:
            await asyncio.sleep(delay)
        if self.fail_load:
            raise RuntimeError("backend unavailable")
        found = [
            e
            for e in self.entries.values()
            if day_start <= e.start <= day_end or day_start <= e.end <= day_end
        ]
        return sorted(found, key=lambda e: e.start)

    async def create_schedule_entry(self, entry, assigned_technician_ids):
        self.calls.append(("create", entry))
        await self._pause()
        if "create" in self.fail_ops:
            return ScheduleActionResult(success=False, error="boom")
        self._next_id += 1
        entry_id = f"E{self._next_id}"
        stored = replace(
            entry, key=entry_id, entry_id=entry_id, technician_ids=tuple(assigned_technician_ids)
        )
        self.entries[entry_id] = stored
        return ScheduleActionResult(success=True, entry=stored)

    async def update_schedule_entry(self, entry_id, fields):
        self.calls.append(("update", (entry_id, dict(fields))))
        await self._pause()
        if "update" in self.fail_ops:
            return ScheduleActionResult(success=False, error="boom")
        current = self.entries.get(entry_id)
        if current is None:
            return ScheduleActionResult(success=False, error=f"Schedule entry not found: {entry_id}")
        changes = {k: v for k, v in fields.items() if k in ("start", "end", "status", "title", "notes")}
        if "technician_ids" in fields:
            changes["technician_ids"] = tuple(fields["technician_ids"])
        updated = replace(current, **changes)
        self.entries[entry_id] = updated
        return ScheduleActionResult(success=True, entry=updated)

    async def delete_schedule_entry(self, entry_id):
        self.calls.append(("delete", entry_id))
        await self._pause()
        if "delete" in self.fail_ops:
            return ScheduleActionResult(success=False, error="boom")
        if self.entries.pop(entry_id, None) is None:
            return ScheduleActionResult(success=False, error=f"Schedule entry not found: {entry_id}")
        return ScheduleActionResult(success=True)

    async def list_technicians(self):
        self.calls.append(("technicians", None))
        if self.fail_technicians:
            raise RuntimeError("backend unavailable")
        return list(self.technicians)

    async def search_work_items(self, query, filters, page, page_size):
        self.calls.append(("search", query))
        items = [w for w in self.work_items if query.lower() in w.name.lower()]
        if filters.type is not None:
            items = [w for w in items if w.type == filters.type]
        start = (page - 1) * page_size
        return WorkItemPage(items=items[start:start + page_size], total=len(items))


@pytest.fixture
def day():
    return DAY


@pytest.fixture
def technicians():
    return [
        Technician("T1", "Alice", "Nguyen"),
        Technician("T2", "Bob", "Smith"),
    ]


@pytest.fixture
def work_items():
    return [
        WorkItem("W1", WorkItemType.TICKET, "Fix printer", "Office printer jams"),
        WorkItem("W2", WorkItemType.PROJECT_TASK, "Install router"),
        WorkItem("W3", WorkItemType.NON_BILLABLE_CATEGORY, "Training", is_billable=False),
    ]


@pytest.fixture
def existing_entry():
    """Persisted entry: T1, 10:00-11:00."""
    return ScheduleEntry.from_backend(
        "E100",
        work_item_id="W2",
        work_item_type=WorkItemType.PROJECT_TASK,
        technician_ids=("T1",),
        start=datetime(2025, 3, 10, 10, 0),
        end=datetime(2025, 3, 10, 11, 0),
        title="Install router",
    )


@pytest.fixture
def backend(existing_entry, technicians, work_items):
    return FakeBackend(entries=[existing_entry], technicians=technicians, work_items=work_items)


@pytest.fixture
def make_backend(existing_entry, technicians, work_items):
    """Factory for a backend whose writes take `delay` seconds."""

    def _make(delay=0.0):
        return FakeBackend(entries=[existing_entry], technicians=technicians, work_items=work_items, delay=delay)

    return _make


@pytest.fixture
def cfg():
    """Defaults with a short debounce window."""
    return DispatchConfig(persistence=PersistenceConfig(debounce_seconds=0.05))


@pytest.fixture
def make_cfg():
    def _make(grid=None, **persistence):
        persistence.setdefault("debounce_seconds", 0.05)
        return DispatchConfig(grid=grid or GridConfig(), persistence=PersistenceConfig(**persistence))

    return _make


@pytest.fixture
def db_session():
    """Create in-memory database session for testing."""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    session = SessionLocal()
    yield session
    session.close()
