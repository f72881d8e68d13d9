"""
SLA Infrastructure Repositories
=================================

Concrete implementation of the task registry interface using SQLAlchemy.

Each call opens its own session from the factory: evaluations run
concurrently and must never share an AsyncSession.
"""

from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from slawatch.config import ACTIVE_SUBTASK_STATUSES, SubtaskStatus
from slawatch.infrastructure.database import store_errors
from slawatch.sla.application import ISubtaskRegistry
from slawatch.sla.domain import Subtask
from slawatch.sla.infrastructure.models import SubtaskModel, TaskModel


def sla_budget(hours: Optional[int], minutes: Optional[int]) -> Optional[timedelta]:
    """Budget from the split columns; None when neither is set."""
    if hours is None and minutes is None:
        return None
    return timedelta(hours=hours or 0, minutes=minutes or 0)


def to_subtask(subtask: SubtaskModel, task: TaskModel) -> Subtask:
    """Map a subtask row and its task row to the domain entity."""
    return Subtask(
        id=str(subtask.id),
        task_id=str(task.id),
        name=subtask.name,
        assignee=subtask.assigned_to or task.assigned_to or "",
        status=SubtaskStatus(subtask.status),
        sla_budget=sla_budget(subtask.sla_hours, subtask.sla_minutes),
        start_time=subtask.start_time,
        started_at=subtask.started_at,
        auto_notify=subtask.auto_notify,
        task_name=task.task_name,
        reporting_managers=list(task.reporting_managers or []),
        escalation_managers=list(task.escalation_managers or []),
    )


class SQLAlchemySubtaskRegistry(ISubtaskRegistry):
    """
    SQLAlchemy implementation of the task registry.

    Reads subtasks joined with their task; writes only status changes.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    def _monitored(self):
        return (
            select(SubtaskModel, TaskModel)
            .join(TaskModel, SubtaskModel.task_id == TaskModel.id)
            .where(
                TaskModel.is_active.is_(True),
                SubtaskModel.auto_notify.is_(True),
            )
        )

    async def list_active_schedulable_units(self) -> List[Subtask]:
        """List subtasks the evaluator should look at."""
        stmt = (
            self._monitored()
            .where(SubtaskModel.status.in_([s.value for s in ACTIVE_SUBTASK_STATUSES]))
            .order_by(SubtaskModel.id)
        )
        with store_errors("list_active_schedulable_units"):
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return [to_subtask(subtask, task) for subtask, task in result.all()]

    async def list_long_running_units(self, started_before: datetime) -> List[Subtask]:
        """List in-progress subtasks started at or before ``started_before``."""
        stmt = (
            self._monitored()
            .where(
                SubtaskModel.status == SubtaskStatus.IN_PROGRESS.value,
                SubtaskModel.started_at.is_not(None),
                SubtaskModel.started_at <= started_before,
            )
            .order_by(SubtaskModel.started_at)
        )
        with store_errors("list_long_running_units"):
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return [to_subtask(subtask, task) for subtask, task in result.all()]

    async def update_unit_status(self, unit: Subtask, status: SubtaskStatus) -> None:
        """Set the status; writing the same status twice is a no-op."""
        stmt = (
            update(SubtaskModel)
            .where(SubtaskModel.id == int(unit.id), SubtaskModel.status != status.value)
            .values(status=status.value)
        )
        with store_errors("update_unit_status"):
            async with self._session_factory() as session:
                async with session.begin():
                    await session.execute(stmt)
