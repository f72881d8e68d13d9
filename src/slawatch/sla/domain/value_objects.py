"""
SLA Value Objects
==================

Immutable value objects for SLA domain.

Value objects are defined by their attributes rather than an identity.
They are immutable and can be freely shared.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo
from typing import Optional

from slawatch.config import PHASE_ACTIONS, ActionTag, SLAPhase
from slawatch.notifications.domain.text import overdue_detail, warning_detail
from slawatch.sla.domain.entities import Subtask


class DeadlineCalculator:
    """
    Pure functions for deadline calculations.

    Stateless utility class - all phase logic in one place.
    """

    @staticmethod
    def remaining(deadline: datetime, now: datetime) -> timedelta:
        """Time left until the deadline (negative once it has passed)."""
        return deadline - now

    @staticmethod
    def determine_phase(remaining: timedelta, warning_window: timedelta) -> SLAPhase:
        """
        Classify remaining time.

        Overdue at or past the deadline, Warning inside the window,
        Scheduled before it.
        """
        if remaining <= timedelta(0):
            return SLAPhase.OVERDUE
        if remaining <= warning_window:
            return SLAPhase.WARNING
        return SLAPhase.SCHEDULED

    @staticmethod
    def remaining_minutes(remaining: timedelta) -> int:
        """Whole minutes left, rounded up so 13.5 min reads as 14."""
        return math.ceil(remaining.total_seconds() / 60)

    @staticmethod
    def overdue_minutes(remaining: timedelta) -> int:
        """Whole minutes past the deadline, rounded down."""
        return math.floor(-remaining.total_seconds() / 60)


@dataclass(frozen=True)
class SLADeadline:
    """
    Deadline of one subtask as computed for a single tick.
    """
    subtask_id: str
    deadline: datetime
    evaluated_at: datetime
    phase: SLAPhase

    @property
    def remaining(self) -> timedelta:
        return self.deadline - self.evaluated_at

    @property
    def minutes_until_deadline(self) -> float:
        """Minutes until deadline (negative if past)."""
        return self.remaining.total_seconds() / 60

    @classmethod
    def evaluate(
        cls,
        subtask: Subtask,
        now: datetime,
        tz: tzinfo,
        warning_window: timedelta
    ) -> "SLADeadline":
        deadline = subtask.deadline(now, tz)
        phase = DeadlineCalculator.determine_phase(
            DeadlineCalculator.remaining(deadline, now), warning_window
        )
        return cls(
            subtask_id=subtask.id,
            deadline=deadline,
            evaluated_at=now,
            phase=phase,
        )


@dataclass(frozen=True)
class PhaseTransition:
    """
    A subtask observed in Warning or Overdue during a tick.

    Carries everything needed to write the notification event; the
    countdown value is kept structured next to the rendered detail.
    """
    subtask: Subtask
    sla_deadline: SLADeadline

    @property
    def phase(self) -> SLAPhase:
        return self.sla_deadline.phase

    @property
    def action(self) -> ActionTag:
        return PHASE_ACTIONS[self.phase]

    @property
    def detected_at(self) -> datetime:
        return self.sla_deadline.evaluated_at

    @property
    def countdown_minutes(self) -> int:
        remaining = self.sla_deadline.remaining
        if self.phase == SLAPhase.OVERDUE:
            return DeadlineCalculator.overdue_minutes(remaining)
        return DeadlineCalculator.remaining_minutes(remaining)

    @property
    def details(self) -> str:
        if self.phase == SLAPhase.OVERDUE:
            return overdue_detail(self.countdown_minutes)
        return warning_detail(self.countdown_minutes)

    @classmethod
    def from_deadline(
        cls,
        subtask: Subtask,
        sla_deadline: SLADeadline
    ) -> Optional["PhaseTransition"]:
        """Build a transition, or None when the subtask is merely scheduled."""
        if sla_deadline.phase not in PHASE_ACTIONS:
            return None
        return cls(subtask=subtask, sla_deadline=sla_deadline)
