"""
Notifications Application Layer
===============================

Feed service, repository interface and DTOs for the notification API.
"""

from slawatch.notifications.application.services import (
    FeedRecord,
    INotificationRepository,
    NotificationFeedService,
)
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

__all__ = [
    "FeedRecord",
    "INotificationRepository",
    "NotificationFeedService",
    "MarkReadResponse",
    "NotificationListResponse",
    "NotificationResponse",
    "OverdueReasonRequest",
    "OverdueReasonResponse",
    "PaginationInfo",
    "RecipientResponse",
    "TypeSummaryItem",
]
