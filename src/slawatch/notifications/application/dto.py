"""
Notification Application DTOs
==============================

Pydantic models for the notification feed API.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from slawatch.config import NotificationPriority, NotificationType

ReadStatusStr = Literal["read", "unread"]


# ========== Request DTOs ==========

class OverdueReasonRequest(BaseModel):
    """Request model for explaining an overdue notification."""
    notification_id: int = Field(..., ge=1, description="Notification event ID")
    reason: str = Field(..., min_length=1, max_length=2000, description="Why the subtask ran late")
    task_name: Optional[str] = Field(None, max_length=255)

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, v: str) -> str:
        """Reject whitespace-only reasons."""
        v = v.strip()
        if not v:
            raise ValueError("reason must not be blank")
        return v


# ========== Response DTOs ==========

class RecipientResponse(BaseModel):
    name: str
    role: str


class NotificationResponse(BaseModel):
    """One derived notification as shown to clients."""
    id: int
    type: NotificationType
    priority: NotificationPriority
    title: str
    details: str
    action: str
    task_id: str
    subtask_id: Optional[str] = None
    task_name: Optional[str] = None
    subtask_name: Optional[str] = None
    user_name: str = "System"
    created_at: datetime
    is_read: bool = False
    read_at: Optional[datetime] = None
    action_required: bool = False

    # Live countdown
    sla_remaining: Optional[str] = None
    remaining_minutes: Optional[int] = None
    overdue_minutes: Optional[int] = None

    recipients: List[RecipientResponse] = Field(default_factory=list)
    escalation_managers: List[str] = Field(default_factory=list)


class PaginationInfo(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class NotificationListResponse(BaseModel):
    """Response model for the notification feed."""
    notifications: List[NotificationResponse]
    pagination: PaginationInfo
    unread_count: int = 0


class MarkReadResponse(BaseModel):
    success: bool = True
    updated: int = Field(..., description="Notifications newly marked as read")
    read_at: datetime


class OverdueReasonResponse(BaseModel):
    id: int
    notification_id: int
    reason: str
    task_name: Optional[str] = None
    created_at: datetime
    archived: bool = True


class TypeSummaryItem(BaseModel):
    """Counts of active notifications of one derived type."""
    type: NotificationType
    total: int = 0
    unread: int = 0
    high_priority: int = 0
