"""
SLA Infrastructure Models
==========================

SQLAlchemy ORM models for the task registry tables.

The registry is owned by the operations dashboard; this service reads
tasks/subtasks and only ever writes ``finops_subtasks.status``.
"""

from datetime import datetime, time
from typing import List, Optional

from sqlalchemy import JSON, Boolean, ForeignKey, Integer, String, Time
from sqlalchemy.orm import Mapped, mapped_column

from slawatch.config import SubtaskStatus
from slawatch.infrastructure.database import Base, UTCDateTime


class TaskModel(Base):
    """
    Database model for a parent task.

    Maps to the 'finops_tasks' table.
    """
    __tablename__ = "finops_tasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    task_name: Mapped[str] = mapped_column(String(255), nullable=False)
    client_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # People
    assigned_to: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    reporting_managers: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    escalation_managers: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class SubtaskModel(Base):
    """
    Database model for a schedulable subtask.

    Maps to the 'finops_subtasks' table. The SLA budget is split into
    hours and minutes columns.
    """
    __tablename__ = "finops_subtasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    task_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("finops_tasks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Overrides the task assignee when set
    assigned_to: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # SLA definition
    sla_hours: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    sla_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    start_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    started_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default=SubtaskStatus.PENDING.value, index=True
    )
    auto_notify: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
