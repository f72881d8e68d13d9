"""
Notification Controllers (API Routes)
======================================

FastAPI routes for the notification feed.

Controllers are thin - they delegate to NotificationFeedService.
"""

from datetime import timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from slawatch.config import NotificationPriority, NotificationType, settings
from slawatch.infrastructure.database import get_session
from slawatch.notifications.application import (
    MarkReadResponse,
    NotificationFeedService,
    NotificationListResponse,
    OverdueReasonRequest,
    OverdueReasonResponse,
    TypeSummaryItem,
)
from slawatch.notifications.application.dto import ReadStatusStr
from slawatch.notifications.infrastructure import SQLAlchemyNotificationRepository
from slawatch.shared.infrastructure.logging import get_logger
from slawatch.sla.domain import SystemClock

logger = get_logger(__name__)
router = APIRouter(prefix="/notifications", tags=["Notifications"])


# ========== Example payloads for Swagger ==========

NOTIFICATION_LIST_EXAMPLE = {
    "notifications": [
        {
            "id": 41,
            "type": "sla_warning",
            "priority": "high",
            "title": "SLA Warning",
            "details": "SLA Warning - 10 min remaining",
            "action": "sla_alert",
            "task_id": "7",
            "subtask_id": "12",
            "task_name": "Month-end close",
            "subtask_name": "Bank reconciliation",
            "user_name": "System",
            "created_at": "2024-01-15T16:46:00Z",
            "is_read": False,
            "read_at": None,
            "action_required": True,
            "sla_remaining": "10 min remaining",
            "remaining_minutes": 10,
            "overdue_minutes": None,
            "recipients": [
                {"name": "asha", "role": "assignee"},
                {"name": "ravi", "role": "reporting_manager"}
            ],
            "escalation_managers": []
        }
    ],
    "pagination": {"total": 1, "limit": 50, "offset": 0, "has_more": False},
    "unread_count": 1
}


# ========== Dependencies ==========

async def get_feed_service(
    request: Request,
    session: AsyncSession = Depends(get_session)
) -> NotificationFeedService:
    """Get notification feed service instance."""
    clock = getattr(request.app.state, "clock", None) or SystemClock()
    return NotificationFeedService(
        SQLAlchemyNotificationRepository(session),
        clock,
        retention=timedelta(days=settings.notification_retention_days),
    )


# ========== Route Handlers ==========

@router.get(
    "",
    response_model=NotificationListResponse,
    summary="List notifications",
    description="""
    List active (non-archived) notifications of the retention window, newest first.

    Type, priority and countdown text are derived at read time, so polling
    shows the current remaining/overdue minutes.

    **Query Parameters:**
    - `type`: derived type (sla_warning, sla_overdue, task_delayed, ...)
    - `priority`: derived priority (critical, high, medium, low)
    - `status`: `read` or `unread`
    - `limit`: page size (default: 50, max: 200)
    - `offset`: page offset (default: 0)
    """,
    responses={
        200: {
            "description": "Notification page",
            "content": {
                "application/json": {
                    "example": NOTIFICATION_LIST_EXAMPLE
                }
            }
        }
    }
)
async def list_notifications(
    type: Optional[NotificationType] = Query(None, description="Derived notification type"),
    priority: Optional[NotificationPriority] = Query(None, description="Derived priority"),
    status: Optional[ReadStatusStr] = Query(None, description="read or unread"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    service: NotificationFeedService = Depends(get_feed_service)
):
    return await service.list_notifications(
        type=type,
        priority=priority,
        status=status,
        limit=limit,
        offset=offset,
    )


@router.get(
    "/types/summary",
    response_model=List[TypeSummaryItem],
    summary="Count notifications per type",
    description="Totals, unread and high-or-critical counts per derived type."
)
async def get_type_summary(
    service: NotificationFeedService = Depends(get_feed_service)
):
    return await service.type_summary()


@router.put(
    "/read-all",
    response_model=MarkReadResponse,
    summary="Mark all notifications as read"
)
async def mark_all_read(
    service: NotificationFeedService = Depends(get_feed_service)
):
    return await service.mark_all_read()


@router.put(
    "/{notification_id}/read",
    response_model=MarkReadResponse,
    summary="Mark one notification as read",
    responses={404: {"description": "Notification not found"}}
)
async def mark_read(
    notification_id: int,
    service: NotificationFeedService = Depends(get_feed_service)
):
    return await service.mark_read(notification_id)


@router.delete(
    "/{notification_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Archive a notification",
    description="Archives the notification. Events are append-only and never hard-deleted.",
    responses={404: {"description": "Notification not found"}}
)
async def archive_notification(
    notification_id: int,
    service: NotificationFeedService = Depends(get_feed_service)
):
    await service.archive(notification_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/overdue-reason",
    response_model=OverdueReasonResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record why a subtask ran overdue",
    description="Stores the reason and archives the notification it answers.",
    responses={404: {"description": "Notification not found"}}
)
async def record_overdue_reason(
    body: OverdueReasonRequest,
    service: NotificationFeedService = Depends(get_feed_service)
):
    return await service.record_overdue_reason(body)


# Export router for inclusion in main app
notifications_router = router
