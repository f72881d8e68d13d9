"""
Notifications Infrastructure Layer
==================================

SQLAlchemy models and repositories for notification events, read/archive
status, overdue reasons and dedup claim rows.
"""

from slawatch.notifications.infrastructure.models import (
    NotificationEventModel,
    NotificationStatusModel,
    OverdueReasonModel,
    SLAPhaseClaimModel,
)
from slawatch.notifications.infrastructure.repositories import (
    SQLAlchemyEventStore,
    SQLAlchemyNotificationRepository,
)

__all__ = [
    "NotificationEventModel",
    "NotificationStatusModel",
    "OverdueReasonModel",
    "SLAPhaseClaimModel",
    "SQLAlchemyEventStore",
    "SQLAlchemyNotificationRepository",
]
