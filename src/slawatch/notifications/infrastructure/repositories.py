"""
Notification Infrastructure Repositories
=========================================

SQLAlchemy implementations of the notification event store (used by the
evaluator, one session per call) and of the feed repository (used by the
API, bound to the request session).
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from slawatch.infrastructure.database import store_errors
from slawatch.notifications.application import FeedRecord, INotificationRepository
from slawatch.notifications.domain import (
    NotificationEvent,
    NotificationStatus,
    OverdueReason,
    RecipientSet,
)
from slawatch.notifications.infrastructure.models import (
    NotificationEventModel,
    NotificationStatusModel,
    OverdueReasonModel,
    SLAPhaseClaimModel,
)
from slawatch.sla.application import INotificationEventStore
from slawatch.sla.infrastructure.models import SubtaskModel, TaskModel

_UPSERT_INSERTS = {
    "postgresql": postgresql_insert,
    "sqlite": sqlite_insert,
}


def to_model(event: NotificationEvent) -> NotificationEventModel:
    return NotificationEventModel(
        task_id=int(event.task_id),
        subtask_id=int(event.subtask_id) if event.subtask_id is not None else None,
        action=event.action,
        user_name=event.user_name,
        details=event.details,
        countdown_minutes=event.countdown_minutes,
        created_at=event.created_at,
    )


def to_event(model: NotificationEventModel) -> NotificationEvent:
    return NotificationEvent(
        id=model.id,
        task_id=str(model.task_id),
        subtask_id=str(model.subtask_id) if model.subtask_id is not None else None,
        action=model.action,
        details=model.details,
        created_at=model.created_at,
        countdown_minutes=model.countdown_minutes,
        user_name=model.user_name,
    )


def to_status(model: Optional[NotificationStatusModel]) -> Optional[NotificationStatus]:
    if model is None:
        return None
    return NotificationStatus(
        event_id=model.event_id,
        read_at=model.read_at,
        archived_at=model.archived_at,
    )


def active_events_query(subtask_id: int, action: str, since: datetime):
    """Non-archived events of one subtask/action since an instant, newest first."""
    return (
        select(NotificationEventModel)
        .outerjoin(
            NotificationStatusModel,
            NotificationStatusModel.event_id == NotificationEventModel.id
        )
        .where(
            NotificationEventModel.subtask_id == subtask_id,
            NotificationEventModel.action == action,
            NotificationEventModel.created_at >= since,
            NotificationStatusModel.archived_at.is_(None),
        )
        .order_by(NotificationEventModel.created_at.desc())
    )


class SQLAlchemyEventStore(INotificationEventStore):
    """
    Append-only event store with atomic insert-if-absent.

    The dedup decision runs in a single transaction holding the claim row
    of (subtask, action) locked, so concurrent evaluators in different
    processes serialize on it.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def append_event(self, event: NotificationEvent) -> NotificationEvent:
        with store_errors("append_event"):
            async with self._session_factory() as session:
                async with session.begin():
                    model = to_model(event)
                    session.add(model)
                    await session.flush()
                return to_event(model)

    async def list_active_events(
        self,
        subtask_id: str,
        action: str,
        since: datetime
    ) -> List[NotificationEvent]:
        with store_errors("list_active_events"):
            async with self._session_factory() as session:
                result = await session.execute(
                    active_events_query(int(subtask_id), action, since)
                )
                return [to_event(model) for model in result.scalars().all()]

    async def _lock_claim(
        self,
        session: AsyncSession,
        subtask_id: int,
        action: str,
        at: datetime
    ) -> SLAPhaseClaimModel:
        insert = _UPSERT_INSERTS.get(session.bind.dialect.name)
        if insert is not None:
            await session.execute(
                insert(SLAPhaseClaimModel)
                .values(subtask_id=subtask_id, action=action, updated_at=at)
                .on_conflict_do_nothing(index_elements=["subtask_id", "action"])
            )
        elif await session.get(SLAPhaseClaimModel, (subtask_id, action)) is None:
            session.add(SLAPhaseClaimModel(subtask_id=subtask_id, action=action, updated_at=at))
            await session.flush()

        result = await session.execute(
            select(SLAPhaseClaimModel)
            .where(
                SLAPhaseClaimModel.subtask_id == subtask_id,
                SLAPhaseClaimModel.action == action,
            )
            .with_for_update()
        )
        return result.scalar_one()

    async def append_event_if_absent(
        self,
        event: NotificationEvent,
        since: datetime
    ) -> Optional[NotificationEvent]:
        if event.subtask_id is None:
            raise ValueError("append_event_if_absent requires a subtask_id")
        subtask_id = int(event.subtask_id)

        with store_errors("append_event_if_absent"):
            async with self._session_factory() as session:
                async with session.begin():
                    claim = await self._lock_claim(
                        session, subtask_id, event.action, event.created_at
                    )
                    existing = await session.execute(
                        active_events_query(subtask_id, event.action, since).limit(1)
                    )
                    if existing.scalars().first() is not None:
                        return None

                    model = to_model(event)
                    session.add(model)
                    await session.flush()

                    claim.last_event_id = model.id
                    claim.updated_at = event.created_at
                return to_event(model)


class SQLAlchemyNotificationRepository(INotificationRepository):
    """
    SQLAlchemy implementation of the feed repository.

    Works inside the caller's session; the request dependency commits.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def list_active(self, since: datetime) -> List[FeedRecord]:
        stmt = (
            select(NotificationEventModel, NotificationStatusModel, TaskModel, SubtaskModel)
            .outerjoin(
                NotificationStatusModel,
                NotificationStatusModel.event_id == NotificationEventModel.id
            )
            .outerjoin(TaskModel, TaskModel.id == NotificationEventModel.task_id)
            .outerjoin(SubtaskModel, SubtaskModel.id == NotificationEventModel.subtask_id)
            .where(
                NotificationEventModel.created_at >= since,
                NotificationStatusModel.archived_at.is_(None),
            )
            .order_by(NotificationEventModel.created_at.desc(), NotificationEventModel.id.desc())
        )
        with store_errors("list_active"):
            result = await self._session.execute(stmt)
            rows = result.all()

        records = []
        for event, status, task, subtask in rows:
            recipients = RecipientSet()
            if task is not None:
                assignee = (subtask.assigned_to if subtask else None) or task.assigned_to
                recipients = RecipientSet.of(
                    assignee, task.reporting_managers, task.escalation_managers
                )
            records.append(FeedRecord(
                event=to_event(event),
                status=to_status(status),
                task_name=task.task_name if task else None,
                subtask_name=subtask.name if subtask else None,
                recipients=recipients,
            ))
        return records

    async def get_event(self, event_id: int) -> Optional[NotificationEvent]:
        with store_errors("get_event"):
            model = await self._session.get(NotificationEventModel, event_id)
        return to_event(model) if model else None

    async def get_status(self, event_id: int) -> Optional[NotificationStatus]:
        with store_errors("get_status"):
            model = await self._session.get(NotificationStatusModel, event_id)
        return to_status(model)

    async def _status_row(self, event_id: int) -> Optional[NotificationStatusModel]:
        """Existing or new status row; None when the event does not exist."""
        if await self._session.get(NotificationEventModel, event_id) is None:
            return None
        status = await self._session.get(NotificationStatusModel, event_id)
        if status is None:
            status = NotificationStatusModel(event_id=event_id)
            self._session.add(status)
        return status

    async def mark_read(self, event_id: int, at: datetime) -> bool:
        with store_errors("mark_read"):
            status = await self._status_row(event_id)
            if status is None:
                return False
            if status.read_at is None:
                status.read_at = at
            await self._session.flush()
        return True

    async def mark_all_read(self, since: datetime, at: datetime) -> int:
        stmt = (
            select(NotificationEventModel.id, NotificationStatusModel)
            .outerjoin(
                NotificationStatusModel,
                NotificationStatusModel.event_id == NotificationEventModel.id
            )
            .where(
                NotificationEventModel.created_at >= since,
                NotificationStatusModel.archived_at.is_(None),
                NotificationStatusModel.read_at.is_(None),
            )
        )
        with store_errors("mark_all_read"):
            result = await self._session.execute(stmt)
            rows = result.all()
            for event_id, status in rows:
                if status is None:
                    self._session.add(NotificationStatusModel(event_id=event_id, read_at=at))
                else:
                    status.read_at = at
            await self._session.flush()
        return len(rows)

    async def archive(self, event_id: int, at: datetime) -> bool:
        with store_errors("archive"):
            status = await self._status_row(event_id)
            if status is None:
                return False
            if status.archived_at is None:
                status.archived_at = at
            await self._session.flush()
        return True

    async def record_overdue_reason(self, reason: OverdueReason) -> OverdueReason:
        model = OverdueReasonModel(
            event_id=reason.event_id,
            task_name=reason.task_name,
            reason=reason.reason,
            created_at=reason.created_at,
        )
        with store_errors("record_overdue_reason"):
            self._session.add(model)
            await self._session.flush()
        return OverdueReason(
            id=model.id,
            event_id=model.event_id,
            reason=model.reason,
            created_at=model.created_at,
            task_name=model.task_name,
        )
