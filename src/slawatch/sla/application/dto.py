"""
SLA Application DTOs
=====================

Data Transfer Objects for the auto-sync API.

These Pydantic models handle serialization/deserialization and validation
for API requests and responses. Following YAGNI - only what's needed.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


# ========== Request DTOs ==========

class EnableAutoSyncRequest(BaseModel):
    """Request model for enabling or rescheduling the evaluator."""
    interval_minutes: int = Field(
        default=1,
        ge=1,
        le=5,
        description="Minutes between evaluator ticks"
    )


# ========== Response DTOs ==========

class CreatedEventResponse(BaseModel):
    """A notification event written during a tick."""
    id: Optional[int]
    task_id: str
    subtask_id: Optional[str]
    action: str
    details: str
    countdown_minutes: Optional[int] = None
    created_at: datetime


class AutoSyncResponse(BaseModel):
    """Response model for one manual evaluator pass."""
    tick_id: str
    started_at: datetime
    evaluated: int = Field(..., description="Subtasks evaluated")
    created: List[CreatedEventResponse] = Field(default_factory=list)
    suppressed: int = Field(default=0, description="Repeat events suppressed by dedup")
    skipped: int = Field(default=0, description="Malformed subtasks skipped")
    failed: int = Field(default=0, description="Subtasks whose evaluation failed")
    errors: List[str] = Field(default_factory=list)


class SchedulerStatusResponse(BaseModel):
    """Response model for evaluator scheduler state."""
    running: bool
    interval_minutes: int
    next_run_time: Optional[datetime] = None
