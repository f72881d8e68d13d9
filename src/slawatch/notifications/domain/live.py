"""
Live Countdown Recomputation
=============================

Derives the countdown a client should see *now* from what was recorded when
the event was written: ``(created_at, original_value, now)``. No store
access, so the result does not depend on whether the subtask changed since.

A warning whose countdown has run out is shown as overdue for this read
only; the stored event is never touched.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from slawatch.config import NotificationPriority, NotificationType
from slawatch.notifications.domain.entities import Classification, NotificationEvent
from slawatch.notifications.domain.text import (
    legacy_overdue_minutes,
    legacy_remaining_minutes,
    overdue_detail,
    overdue_phrase,
    remaining_phrase,
    replace_remaining,
)


@dataclass(frozen=True)
class LiveCountdown:
    """Display state of one event at a given instant."""

    type: NotificationType
    priority: NotificationPriority
    details: str
    sla_remaining: Optional[str] = None
    remaining_minutes: Optional[int] = None
    overdue_minutes: Optional[int] = None
    promoted: bool = False

    @property
    def is_overdue(self) -> bool:
        return self.type == NotificationType.SLA_OVERDUE


def minutes_since(created_at: datetime, now: datetime) -> float:
    """Exact minutes elapsed, never negative (clock skew between writers)."""
    return max(0.0, (now - created_at).total_seconds() / 60)


def recompute_warning(
    created_at: datetime,
    original_remaining: int,
    now: datetime,
    details: str = "",
) -> LiveCountdown:
    """
    Current state of a warning created with ``original_remaining`` minutes left.
    """
    exact_remaining = original_remaining - minutes_since(created_at, now)

    if exact_remaining <= 0:
        overdue = math.floor(abs(exact_remaining))
        return LiveCountdown(
            type=NotificationType.SLA_OVERDUE,
            priority=NotificationPriority.CRITICAL,
            details=overdue_phrase(overdue),
            sla_remaining=overdue_phrase(overdue),
            overdue_minutes=overdue,
            promoted=True,
        )

    current = math.ceil(exact_remaining)
    return LiveCountdown(
        type=NotificationType.SLA_WARNING,
        priority=NotificationPriority.HIGH,
        details=replace_remaining(details, original_remaining, current),
        sla_remaining=remaining_phrase(current),
        remaining_minutes=current,
    )


def recompute_overdue(
    created_at: datetime,
    original_overdue: int,
    now: datetime,
) -> LiveCountdown:
    """
    Current state of an overdue event created ``original_overdue`` minutes late.
    """
    elapsed = math.floor(minutes_since(created_at, now))
    current = original_overdue + elapsed
    return LiveCountdown(
        type=NotificationType.SLA_OVERDUE,
        priority=NotificationPriority.CRITICAL,
        details=overdue_detail(current, elapsed),
        sla_remaining=overdue_phrase(current),
        overdue_minutes=current,
    )


def recompute(
    event: NotificationEvent,
    classification: Classification,
    now: datetime,
) -> LiveCountdown:
    """
    Live view of ``event`` given its static classification.

    Events without a countdown keep their stored text; any event whose live
    state is overdue is reported as critical regardless of the static
    mapping.
    """
    if classification.type == NotificationType.SLA_WARNING:
        original = event.countdown_minutes
        if original is None:
            original = legacy_remaining_minutes(event.details)
        if original is not None:
            live = recompute_warning(event.created_at, original, now, event.details)
            if not live.promoted:
                # Keep the classifier's priority for a still-running warning
                return LiveCountdown(
                    type=live.type,
                    priority=classification.priority,
                    details=live.details,
                    sla_remaining=live.sla_remaining,
                    remaining_minutes=live.remaining_minutes,
                )
            return live

    if classification.type == NotificationType.SLA_OVERDUE:
        original = event.countdown_minutes
        if original is None:
            original = legacy_overdue_minutes(event.details)
        if original is not None:
            return recompute_overdue(event.created_at, original, now)
        return LiveCountdown(
            type=classification.type,
            priority=NotificationPriority.CRITICAL,
            details=event.details,
        )

    return LiveCountdown(
        type=classification.type,
        priority=classification.priority,
        details=event.details,
    )
