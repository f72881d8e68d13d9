"""
Notification Domain Entities
=============================

Append-only notification events and their per-reader status.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from slawatch.config import ActionTag, NotificationPriority, NotificationType


@dataclass
class NotificationEvent:
    """
    Raw notification record.

    Immutable once written: corrections are new events. ``action`` is kept
    as the stored string so legacy tags outside ActionTag still classify.
    ``countdown_minutes`` is the countdown at creation time (remaining
    minutes for warnings, overdue minutes for overdue events).
    """

    id: Optional[int]
    task_id: str
    subtask_id: Optional[str]
    action: str
    details: str
    created_at: datetime
    countdown_minutes: Optional[int] = None
    user_name: str = "System"

    @property
    def action_tag(self) -> Optional[ActionTag]:
        """Structured tag, or None for legacy free-form actions."""
        try:
            return ActionTag(self.action)
        except ValueError:
            return None


@dataclass
class NotificationStatus:
    """Read/archive flags of one event. Created on first read or archive."""

    event_id: int
    read_at: Optional[datetime] = None
    archived_at: Optional[datetime] = None

    @property
    def is_read(self) -> bool:
        return self.read_at is not None

    @property
    def is_archived(self) -> bool:
        return self.archived_at is not None


@dataclass(frozen=True)
class Classification:
    """Display type and static priority derived from a raw event."""

    type: NotificationType
    priority: NotificationPriority


@dataclass
class OverdueReason:
    """Free-text justification attached to an overdue notification."""

    id: Optional[int]
    event_id: int
    reason: str
    created_at: datetime
    task_name: Optional[str] = None
