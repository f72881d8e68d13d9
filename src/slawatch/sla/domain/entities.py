"""
SLA Domain Entities
====================

Pure Python domain entities for SLA monitoring.

Following Domain-Driven Design principles, these entities contain
business logic and are free of infrastructure concerns.
"""

from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, tzinfo
from typing import List, Optional

from slawatch.config import ACTIVE_SUBTASK_STATUSES, SubtaskStatus
from slawatch.core import MalformedUnitException


@dataclass
class Subtask:
    """
    Schedulable unit tracked against its own SLA budget.

    Owned by the task registry; the evaluator reads it and may only move
    its status from pending/in_progress to overdue.
    """

    id: str
    task_id: str
    name: str
    assignee: str
    status: SubtaskStatus

    # SLA definition
    sla_budget: Optional[timedelta] = None
    start_time: Optional[time] = None
    started_at: Optional[datetime] = None
    auto_notify: bool = True

    # Task-level context
    task_name: str = ""
    reporting_managers: List[str] = field(default_factory=list)
    escalation_managers: List[str] = field(default_factory=list)

    @property
    def is_active(self) -> bool:
        """Check if the subtask is still being worked on."""
        return self.status in ACTIVE_SUBTASK_STATUSES

    @property
    def is_monitored(self) -> bool:
        """Check if the evaluator should look at this subtask."""
        return self.auto_notify and self.is_active

    def scheduled_start(self, now: datetime, tz: tzinfo) -> datetime:
        """
        Instant the SLA clock starts for the evaluation day.

        An explicit start instant wins over the start-of-day time, which is
        anchored to the local date of ``now`` in ``tz``. Before today's
        start, a window opened yesterday that runs past midnight still applies.

        Raises:
            MalformedUnitException: If neither anchor is set
        """
        if self.started_at is not None:
            return self.started_at
        if self.start_time is None:
            raise MalformedUnitException(self.id, "no start time")
        local_day = now.astimezone(tz).date()
        anchor = datetime.combine(local_day, self.start_time, tzinfo=tz)
        if anchor > now and self.sla_budget is not None:
            # yesterday's window still running past midnight
            previous = datetime.combine(local_day - timedelta(days=1), self.start_time, tzinfo=tz)
            if (previous + self.sla_budget).astimezone(tz).date() >= local_day:
                return previous
        return anchor

    def deadline(self, now: datetime, tz: tzinfo) -> datetime:
        """
        Deadline = scheduled start + SLA budget.

        Never stored: recomputed every tick so edits to the budget apply
        immediately.
        """
        if self.sla_budget is None or self.sla_budget <= timedelta(0):
            raise MalformedUnitException(self.id, "missing SLA budget")
        return self.scheduled_start(now, tz) + self.sla_budget

    def mark_overdue(self) -> bool:
        """
        Move to overdue. Returns False when there was nothing to change.
        """
        if self.status == SubtaskStatus.OVERDUE:
            return False
        self.status = SubtaskStatus.OVERDUE
        return True
