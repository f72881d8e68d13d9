"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from enum import Enum
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="slawatch", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/slawatch",
        description="Database connection URL (async driver)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== SLA Evaluation ==========
    timezone: str = Field(
        default="UTC",
        description="Timezone used to anchor subtask start-of-day times"
    )
    warning_window_minutes: int = Field(
        default=15,
        description="Minutes before a deadline during which one warning is emitted",
        ge=1
    )
    dedup_lookback_minutes: int = Field(
        default=60,
        description="Window in which a repeat event for the same phase is suppressed",
        ge=1
    )
    tick_interval_minutes: int = Field(
        default=1,
        description="Minutes between evaluator ticks",
        ge=1,
        le=5
    )
    incomplete_subtask_threshold_hours: int = Field(
        default=2,
        description="Hours an in-progress subtask may run before a delay event",
        ge=1
    )
    evaluator_concurrency: int = Field(
        default=8,
        description="Max subtasks evaluated concurrently in one tick",
        ge=1
    )
    evaluator_unit_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for evaluating a single subtask (store calls included)",
        gt=0
    )
    alert_dispatch_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout for handing one stored event to the alert webhook",
        gt=0
    )
    scheduler_enabled: bool = Field(
        default=True,
        description="Start the periodic evaluator with the application"
    )

    # ========== Notifications ==========
    notification_retention_days: int = Field(
        default=7,
        description="How far back the notification feed looks",
        ge=1
    )

    # ========== Alert Webhook ==========
    alert_webhook_url: Optional[str] = Field(
        default=None,
        description="Outbound webhook receiving emitted alerts and their recipients"
    )
    alert_webhook_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for alert webhook calls",
        ge=0.1,
        le=30
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @model_validator(mode="after")
    def validate_dedup_window(self) -> "Settings":
        """The dedup lookback has to outlast several ticks and the warning window."""
        if self.dedup_lookback_minutes <= self.tick_interval_minutes:
            raise ValueError("dedup_lookback_minutes must exceed tick_interval_minutes")
        if self.dedup_lookback_minutes <= self.warning_window_minutes:
            raise ValueError("dedup_lookback_minutes must exceed warning_window_minutes")
        return self


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class SubtaskStatus(str, Enum):
    """Subtask lifecycle statuses."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    OVERDUE = "overdue"


class ActionTag(str, Enum):
    """Structured action tags attached to notification events at write time."""
    SLA_ALERT = "sla_alert"
    OVERDUE_NOTIFICATION_SENT = "overdue_notification_sent"
    STATUS_CHANGED = "status_changed"
    ESCALATION_REQUIRED = "escalation_required"
    DELAY_REPORTED = "delay_reported"
    COMPLETION_NOTIFICATION_SENT = "completion_notification_sent"
    DAILY_EXECUTION = "daily_execution"


class NotificationType(str, Enum):
    """Display taxonomy derived at read time."""
    TASK_DELAYED = "task_delayed"
    SLA_OVERDUE = "sla_overdue"
    TASK_COMPLETED = "task_completed"
    SLA_WARNING = "sla_warning"
    ESCALATION = "escalation"
    TASK_PENDING = "task_pending"
    DAILY_REMINDER = "daily_reminder"


class NotificationPriority(str, Enum):
    """Notification priority levels."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class SLAPhase(str, Enum):
    """SLA lifecycle phase of a subtask as seen by the evaluator."""
    SCHEDULED = "scheduled"
    WARNING = "warning"
    OVERDUE = "overdue"
    RESOLVED = "resolved"


class EvaluationOutcome(str, Enum):
    """Result of evaluating one subtask in a tick."""
    NO_OP = "no_op"
    EMITTED = "emitted"
    SUPPRESSED = "suppressed"
    SKIPPED_MALFORMED = "skipped_malformed"
    FAILED = "failed"


# ========== Lists for validation ==========

ACTIVE_SUBTASK_STATUSES = [SubtaskStatus.PENDING, SubtaskStatus.IN_PROGRESS]

PHASE_ACTIONS = {
    SLAPhase.WARNING: ActionTag.SLA_ALERT,
    SLAPhase.OVERDUE: ActionTag.OVERDUE_NOTIFICATION_SENT,
}
