"""
Notification Application Services
==================================

The read path of the notification feed: active events are classified,
their countdowns recomputed against the clock, recipients resolved, then
filtered and paginated. Plus the small write operations clients perform
(mark read, archive, record an overdue reason).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from slawatch.config import NotificationPriority, NotificationType
from slawatch.core import ResourceNotFoundException, StoreUnavailableException
from slawatch.notifications.application.dto import (
    MarkReadResponse,
    NotificationListResponse,
    NotificationResponse,
    OverdueReasonRequest,
    OverdueReasonResponse,
    PaginationInfo,
    RecipientResponse,
    TypeSummaryItem,
)
from slawatch.notifications.domain import (
    NotificationClassifier,
    NotificationEvent,
    NotificationStatus,
    OverdueReason,
    RecipientSet,
    is_action_required,
    recompute,
    resolve_recipients,
    visible_escalation_managers,
)
from slawatch.shared.infrastructure.logging import get_logger
from slawatch.sla.domain import Clock

logger = get_logger(__name__)

TYPE_TITLES = {
    NotificationType.TASK_DELAYED: "Task Delayed",
    NotificationType.SLA_OVERDUE: "SLA Overdue",
    NotificationType.TASK_COMPLETED: "Task Completed",
    NotificationType.SLA_WARNING: "SLA Warning",
    NotificationType.ESCALATION: "Escalation Required",
    NotificationType.TASK_PENDING: "Task Pending",
    NotificationType.DAILY_REMINDER: "Daily Reminder",
}
HIGH_PRIORITIES = {NotificationPriority.CRITICAL, NotificationPriority.HIGH}


@dataclass
class FeedRecord:
    """An active event with the context needed to render it."""
    event: NotificationEvent
    status: Optional[NotificationStatus] = None
    task_name: Optional[str] = None
    subtask_name: Optional[str] = None
    recipients: RecipientSet = field(default_factory=RecipientSet)


# ========== Repository Interface ==========

class INotificationRepository(ABC):
    """Interface for notification feed data access."""

    @abstractmethod
    async def list_active(self, since: datetime) -> List[FeedRecord]:
        """Non-archived events created at or after ``since``, newest first."""

    @abstractmethod
    async def get_event(self, event_id: int) -> Optional[NotificationEvent]:
        """Get an event by ID."""

    @abstractmethod
    async def get_status(self, event_id: int) -> Optional[NotificationStatus]:
        """Get the read/archive status of an event, if any was recorded."""

    @abstractmethod
    async def mark_read(self, event_id: int, at: datetime) -> bool:
        """Mark one event read. Returns False if the event does not exist."""

    @abstractmethod
    async def mark_all_read(self, since: datetime, at: datetime) -> int:
        """Mark every active unread event read; returns how many changed."""

    @abstractmethod
    async def archive(self, event_id: int, at: datetime) -> bool:
        """Archive one event. Returns False if the event does not exist."""

    @abstractmethod
    async def record_overdue_reason(self, reason: OverdueReason) -> OverdueReason:
        """Store an overdue reason and return it with its ID."""


# ========== Application Service ==========

class NotificationFeedService:
    """
    Service behind the notification API.

    Classification and countdowns are derived on every read; nothing
    derived is ever written back.
    """

    def __init__(
        self,
        repository: INotificationRepository,
        clock: Clock,
        classifier: Optional[NotificationClassifier] = None,
        retention: timedelta = timedelta(days=7),
    ):
        self._repo = repository
        self._clock = clock
        self._classifier = classifier or NotificationClassifier()
        self.retention = retention

    def build_notification(self, record: FeedRecord, now: datetime) -> NotificationResponse:
        """Derive the client view of one stored event at ``now``."""
        event = record.event
        classification = self._classifier.classify_event(event)
        live = recompute(event, classification, now)
        recipients = resolve_recipients(record.recipients, live.type)
        status = record.status

        return NotificationResponse(
            id=event.id,
            type=live.type,
            priority=live.priority,
            title=TYPE_TITLES[live.type],
            details=live.details,
            action=event.action,
            task_id=event.task_id,
            subtask_id=event.subtask_id,
            task_name=record.task_name,
            subtask_name=record.subtask_name,
            user_name=event.user_name,
            created_at=event.created_at,
            is_read=status.is_read if status else False,
            read_at=status.read_at if status else None,
            action_required=is_action_required(live.type, live.details),
            sla_remaining=live.sla_remaining,
            remaining_minutes=live.remaining_minutes,
            overdue_minutes=live.overdue_minutes,
            recipients=[
                RecipientResponse(name=r.name, role=r.role.value) for r in recipients
            ],
            escalation_managers=visible_escalation_managers(record.recipients, live.type),
        )

    async def _active_notifications(self) -> List[NotificationResponse]:
        now = self._clock.now()
        records = await self._repo.list_active(since=now - self.retention)
        return [self.build_notification(record, now) for record in records]

    async def list_notifications(
        self,
        type: Optional[NotificationType] = None,
        priority: Optional[NotificationPriority] = None,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> NotificationListResponse:
        """
        List active notifications.

        Filters apply to the derived type and priority, so a warning whose
        countdown has run out is found under ``sla_overdue``.
        """
        try:
            notifications = await self._active_notifications()
        except StoreUnavailableException as e:
            logger.warning(
                "Notification store unavailable, returning empty feed",
                extra={"error": e.message}
            )
            notifications = []

        unread_count = sum(1 for n in notifications if not n.is_read)

        if type is not None:
            notifications = [n for n in notifications if n.type == type]
        if priority is not None:
            notifications = [n for n in notifications if n.priority == priority]
        if status == "read":
            notifications = [n for n in notifications if n.is_read]
        elif status == "unread":
            notifications = [n for n in notifications if not n.is_read]

        total = len(notifications)
        page = notifications[offset:offset + limit]

        return NotificationListResponse(
            notifications=page,
            pagination=PaginationInfo(
                total=total,
                limit=limit,
                offset=offset,
                has_more=offset + len(page) < total,
            ),
            unread_count=unread_count,
        )

    async def type_summary(self) -> List[TypeSummaryItem]:
        """Counts per derived type, in taxonomy order."""
        try:
            notifications = await self._active_notifications()
        except StoreUnavailableException as e:
            logger.warning(
                "Notification store unavailable, returning empty summary",
                extra={"error": e.message}
            )
            notifications = []

        summary = {t: TypeSummaryItem(type=t) for t in NotificationType}
        for n in notifications:
            item = summary[n.type]
            item.total += 1
            if not n.is_read:
                item.unread += 1
            if n.priority in HIGH_PRIORITIES:
                item.high_priority += 1
        return list(summary.values())

    async def mark_read(self, event_id: int) -> MarkReadResponse:
        now = self._clock.now()
        if not await self._repo.mark_read(event_id, now):
            raise ResourceNotFoundException("Notification", str(event_id))
        return MarkReadResponse(updated=1, read_at=now)

    async def mark_all_read(self) -> MarkReadResponse:
        now = self._clock.now()
        updated = await self._repo.mark_all_read(since=now - self.retention, at=now)
        logger.info("Notifications marked read", extra={"updated": updated})
        return MarkReadResponse(updated=updated, read_at=now)

    async def archive(self, event_id: int) -> None:
        """Archive, never hard-delete: the event keeps counting for audit."""
        if not await self._repo.archive(event_id, self._clock.now()):
            raise ResourceNotFoundException("Notification", str(event_id))
        logger.info("Notification archived", extra={"event_id": event_id})

    async def record_overdue_reason(self, request: OverdueReasonRequest) -> OverdueReasonResponse:
        """
        Attach a reason to an overdue notification and archive it.

        Raises:
            ResourceNotFoundException: If the notification does not exist
        """
        event = await self._repo.get_event(request.notification_id)
        if event is None:
            raise ResourceNotFoundException("Notification", str(request.notification_id))

        now = self._clock.now()
        status = await self._repo.get_status(event.id)
        if status is None or not status.is_archived:
            await self._repo.archive(event.id, now)

        stored = await self._repo.record_overdue_reason(
            OverdueReason(
                id=None,
                event_id=event.id,
                reason=request.reason,
                created_at=now,
                task_name=request.task_name,
            )
        )
        logger.info(
            "Overdue reason recorded",
            extra={"event_id": event.id, "subtask_id": event.subtask_id}
        )
        return OverdueReasonResponse(
            id=stored.id,
            notification_id=stored.event_id,
            reason=stored.reason,
            task_name=stored.task_name,
            created_at=stored.created_at,
        )
