"""Tests for live countdown recomputation at read time."""

from datetime import timedelta

from conftest import at
from slawatch.config import NotificationPriority, NotificationType
from slawatch.notifications.domain import (
    Classification,
    NotificationEvent,
    classify,
    recompute,
    recompute_overdue,
    recompute_warning,
)

CREATED = at(16, 45)


def warning_event(countdown=15, details="SLA Warning - 15 min remaining"):
    return NotificationEvent(
        id=1,
        task_id="7",
        subtask_id="12",
        action="sla_alert",
        details=details,
        created_at=CREATED,
        countdown_minutes=countdown,
    )


def test_warning_counts_down():
    live = recompute_warning(CREATED, 15, CREATED + timedelta(minutes=5), "SLA Warning - 15 min remaining")
    assert live.type == NotificationType.SLA_WARNING
    assert live.remaining_minutes == 10
    assert live.details == "SLA Warning - 10 min remaining"
    assert live.sla_remaining == "10 min remaining"


def test_partial_minute_rounds_up():
    live = recompute_warning(CREATED, 15, CREATED + timedelta(minutes=4, seconds=30))
    assert live.remaining_minutes == 11


def test_expired_warning_is_promoted_to_overdue():
    live = recompute_warning(CREATED, 15, CREATED + timedelta(minutes=16))
    assert live.promoted
    assert live.type == NotificationType.SLA_OVERDUE
    assert live.priority == NotificationPriority.CRITICAL
    assert live.overdue_minutes == 1
    assert live.details == "Overdue by 1 min"


def test_warning_expiring_exactly_now_is_overdue_by_zero():
    live = recompute_warning(CREATED, 15, CREATED + timedelta(minutes=15))
    assert live.is_overdue
    assert live.overdue_minutes == 0


def test_overdue_grows_with_elapsed_minutes():
    live = recompute_overdue(CREATED, 5, CREATED + timedelta(minutes=7, seconds=59))
    assert live.overdue_minutes == 12
    assert live.details == "Overdue by 12 min • 7 min ago"
    assert live.priority == NotificationPriority.CRITICAL


def test_clock_skew_never_counts_backwards():
    live = recompute_warning(CREATED, 15, CREATED - timedelta(minutes=3))
    assert live.remaining_minutes == 15


def test_recompute_uses_structured_countdown_over_text():
    event = warning_event(countdown=14, details="Heads up")
    live = recompute(event, classify(event), CREATED + timedelta(minutes=4))
    assert live.remaining_minutes == 10
    assert live.details == "10 min remaining"


def test_recompute_falls_back_to_legacy_text():
    event = warning_event(countdown=None, details="Subtask starts soon - 12 min remaining!")
    live = recompute(event, classify(event), CREATED + timedelta(minutes=2))
    assert live.remaining_minutes == 10
    assert live.details == "Subtask starts soon - 10 min remaining!"


def test_recompute_legacy_overdue_record():
    event = NotificationEvent(
        id=2,
        task_id="7",
        subtask_id="12",
        action="manual_entry",
        details="Task overdue by 3 min",
        created_at=CREATED,
    )
    live = recompute(event, classify(event), CREATED + timedelta(minutes=2))
    assert live.type == NotificationType.SLA_OVERDUE
    assert live.overdue_minutes == 5


def test_overdue_record_without_countdown_keeps_text_and_is_critical():
    event = NotificationEvent(
        id=3,
        task_id="7",
        subtask_id="12",
        action="overdue_notification_sent",
        details="Client escalated",
        created_at=CREATED,
    )
    live = recompute(event, Classification(NotificationType.SLA_OVERDUE, NotificationPriority.HIGH), CREATED)
    assert live.details == "Client escalated"
    assert live.priority == NotificationPriority.CRITICAL


def test_non_countdown_events_pass_through():
    event = NotificationEvent(
        id=4,
        task_id="7",
        subtask_id=None,
        action="completion_notification_sent",
        details="Done",
        created_at=CREATED,
    )
    live = recompute(event, classify(event), CREATED + timedelta(hours=3))
    assert live.type == NotificationType.TASK_COMPLETED
    assert live.details == "Done"
    assert live.sla_remaining is None


def test_recompute_is_pure():
    event = warning_event()
    now = CREATED + timedelta(minutes=5)
    assert recompute(event, classify(event), now) == recompute(event, classify(event), now)
    assert event.details == "SLA Warning - 15 min remaining"
