"""
Pytest configuration and shared fixtures for SLA Watch tests.

This file contains:
- In-memory fakes of the task registry and notification event store
- Subtask and monitor factories driven by a ManualClock
- A temporary SQLite database for repository and API tests
"""

import asyncio
from dataclasses import replace
from datetime import datetime, time, timedelta, timezone
from typing import List, Optional

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from slawatch.config import SubtaskStatus
from slawatch.core import StoreUnavailableException
from slawatch.infrastructure.database import build_session_maker, create_tables
from slawatch.notifications.domain import NotificationEvent
from slawatch.sla.application import (
    DeadlineEvaluator,
    EventDeduplicator,
    INotificationEventStore,
    ISubtaskRegistry,
    SLAMonitorService,
)
from slawatch.sla.domain import ManualClock, Subtask
from slawatch.sla.infrastructure.models import SubtaskModel, TaskModel


def at(hour: int, minute: int = 0, second: int = 0, day: int = 15) -> datetime:
    """UTC instant on the test day (2024-01-15)."""
    return datetime(2024, 1, day, hour, minute, second, tzinfo=timezone.utc)


class FakeSubtaskRegistry(ISubtaskRegistry):
    """Task registry held in a dict."""

    def __init__(self, units=()):
        self.units = {unit.id: unit for unit in units}
        self.status_updates = []
        self.fail_status_updates = False
        self.unavailable = False

    async def list_active_schedulable_units(self) -> List[Subtask]:
        if self.unavailable:
            raise StoreUnavailableException("list_active_schedulable_units")
        return [unit for unit in self.units.values() if unit.is_monitored]

    async def list_long_running_units(self, started_before: datetime) -> List[Subtask]:
        return [
            unit for unit in self.units.values()
            if unit.status == SubtaskStatus.IN_PROGRESS
            and unit.started_at is not None
            and unit.started_at <= started_before
        ]

    async def update_unit_status(self, unit: Subtask, status: SubtaskStatus) -> None:
        if self.fail_status_updates:
            raise StoreUnavailableException("update_unit_status")
        self.status_updates.append((unit.id, status))
        self.units[unit.id].status = status


class FakeEventStore(INotificationEventStore):
    """Append-only event list with the same insert-if-absent contract as the SQL store."""

    def __init__(self):
        self.events: List[NotificationEvent] = []
        self.archived = set()
        self.failing_subtasks = set()
        self.delay_seconds = 0.0
        self._next_id = 1

    def _check(self, subtask_id: Optional[str]) -> None:
        if subtask_id in self.failing_subtasks:
            raise StoreUnavailableException("append_event_if_absent", {"subtask_id": subtask_id})

    async def append_event(self, event: NotificationEvent) -> NotificationEvent:
        stored = replace(event, id=self._next_id)
        self._next_id += 1
        self.events.append(stored)
        return stored

    async def list_active_events(self, subtask_id, action, since):
        return [
            event for event in self.events
            if event.subtask_id == subtask_id
            and event.action == action
            and event.created_at >= since
            and event.id not in self.archived
        ]

    async def append_event_if_absent(self, event, since):
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        self._check(event.subtask_id)
        if await self.list_active_events(event.subtask_id, event.action, since):
            return None
        return await self.append_event(event)

    def by_action(self, action: str) -> List[NotificationEvent]:
        return [event for event in self.events if event.action == action]


class RecordingDispatcher:
    """Alert dispatcher that only remembers what it was given."""

    def __init__(self):
        self.calls = []

    async def dispatch(self, event, classification, recipients):
        self.calls.append((event, classification, recipients))
        return True


@pytest.fixture
def subtask_factory():
    """Build subtasks scheduled at 16:00 with a 60 minute budget by default."""
    def make(
        id: str = "12",
        task_id: str = "7",
        start: Optional[time] = time(16, 0),
        budget_minutes: Optional[int] = 60,
        status: SubtaskStatus = SubtaskStatus.PENDING,
        **kwargs
    ) -> Subtask:
        return Subtask(
            id=id,
            task_id=task_id,
            name=kwargs.pop("name", f"Subtask {id}"),
            assignee=kwargs.pop("assignee", "asha"),
            status=status,
            sla_budget=timedelta(minutes=budget_minutes) if budget_minutes is not None else None,
            start_time=start,
            **kwargs
        )
    return make


@pytest.fixture
def clock():
    return ManualClock(at(16, 0))


@pytest.fixture
def store():
    return FakeEventStore()


@pytest.fixture
def monitor_factory(clock, store):
    """Monitor over a fake registry with 15 min warning and 60 min dedup windows."""
    def make(units=(), registry=None, **kwargs) -> SLAMonitorService:
        registry = registry or FakeSubtaskRegistry(units)
        return SLAMonitorService(
            registry=registry,
            store=store,
            clock=clock,
            evaluator=DeadlineEvaluator(timedelta(minutes=15), timezone.utc),
            deduplicator=EventDeduplicator(store, timedelta(minutes=60)),
            **kwargs
        )
    return make


@pytest.fixture
async def engine(tmp_path):
    """Temporary SQLite database with every table created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'slawatch.db'}")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return build_session_maker(engine)


@pytest.fixture
async def seeded(session_maker):
    """
    Registry rows:
    task 7 (active): subtask 12 pending 16:00/60 min, 13 completed,
    14 muted, 15 in progress since 13:00 with a 4 h budget;
    task 8 (inactive): subtask 20 pending.
    """
    async with session_maker() as session:
        async with session.begin():
            session.add_all([
                TaskModel(
                    id=7,
                    task_name="Month-end close",
                    assigned_to="asha",
                    reporting_managers=["ravi"],
                    escalation_managers=["meera"],
                    is_active=True,
                ),
                TaskModel(id=8, task_name="Archived client", assigned_to="zoe", is_active=False),
            ])
            await session.flush()
            session.add_all([
                SubtaskModel(id=12, task_id=7, name="Bank reconciliation",
                             sla_minutes=60, start_time=time(16, 0)),
                SubtaskModel(id=13, task_id=7, name="Ledger export", sla_hours=1,
                             start_time=time(9, 0), status=SubtaskStatus.COMPLETED.value),
                SubtaskModel(id=14, task_id=7, name="Muted", sla_minutes=30,
                             start_time=time(16, 0), auto_notify=False),
                SubtaskModel(id=15, task_id=7, name="Vendor payouts", assigned_to="kiran",
                             sla_hours=4, started_at=at(13, 0),
                             status=SubtaskStatus.IN_PROGRESS.value),
                SubtaskModel(id=20, task_id=8, name="Old run", sla_minutes=60,
                             start_time=time(16, 0)),
            ])
