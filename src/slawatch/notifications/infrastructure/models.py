"""
Notification Infrastructure Models
===================================

SQLAlchemy ORM models for notification events, their read/archive status,
overdue reasons, and the per-phase dedup claim rows.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from slawatch.infrastructure.database import Base, UTCDateTime


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NotificationEventModel(Base):
    """
    Append-only notification event.

    Maps to the 'notification_events' table. Rows are never updated.
    """
    __tablename__ = "notification_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    task_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    subtask_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    action: Mapped[str] = mapped_column(String(64), nullable=False)
    user_name: Mapped[str] = mapped_column(String(255), nullable=False, default="System")
    details: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Countdown at creation: remaining minutes (warning) or overdue minutes
    countdown_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_notification_events_dedup", "subtask_id", "action", "created_at"),
        Index("ix_notification_events_created_at", "created_at"),
    )


class NotificationStatusModel(Base):
    """
    Read/archive flags of one event.

    Maps to the 'notification_status' table; the row appears on first read
    or archive.
    """
    __tablename__ = "notification_status"

    event_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("notification_events.id", ondelete="CASCADE"),
        primary_key=True
    )
    read_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    archived_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)


class OverdueReasonModel(Base):
    """
    Free-text reason given for an overdue notification.

    Maps to the 'notification_overdue_reasons' table.
    """
    __tablename__ = "notification_overdue_reasons"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("notification_events.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    task_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)


class SLAPhaseClaimModel(Base):
    """
    Lock row per (subtask, action).

    Locked with SELECT ... FOR UPDATE while the dedup lookup and insert run,
    so two evaluators cannot both decide an event is absent.
    """
    __tablename__ = "sla_phase_claims"

    subtask_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    action: Mapped[str] = mapped_column(String(64), primary_key=True)
    last_event_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
