"""Tests for the notification classifier rule table."""

import pytest

from conftest import at
from slawatch.config import NotificationPriority, NotificationType
from slawatch.core import ClassificationAmbiguousException
from slawatch.notifications.domain import (
    DEFAULT_RULES,
    Classification,
    NotificationClassifier,
    NotificationEvent,
    classify,
    is_action_required,
)


def event(action: str, details: str = "") -> NotificationEvent:
    return NotificationEvent(
        id=1,
        task_id="7",
        subtask_id="12",
        action=action,
        details=details,
        created_at=at(16, 0),
    )


@pytest.mark.parametrize("action, details, expected", [
    ("delay_reported", "overdue by 3 min", (NotificationType.TASK_DELAYED, NotificationPriority.MEDIUM)),
    ("overdue_notification_sent", "x", (NotificationType.SLA_OVERDUE, NotificationPriority.CRITICAL)),
    ("overdue_notification_sent", "SLA Warning - 3 min remaining", (NotificationType.SLA_OVERDUE, NotificationPriority.CRITICAL)),
    ("completion_notification_sent", "done", (NotificationType.TASK_COMPLETED, NotificationPriority.LOW)),
    ("sla_alert", "", (NotificationType.SLA_WARNING, NotificationPriority.HIGH)),
    ("escalation_required", "manager notified", (NotificationType.ESCALATION, NotificationPriority.CRITICAL)),
    ("status_changed", "... pending ... need to start", (NotificationType.TASK_PENDING, NotificationPriority.MEDIUM)),
    ("daily_execution", "Daily run created", (NotificationType.DAILY_REMINDER, NotificationPriority.MEDIUM)),
])
def test_tagged_events(action, details, expected):
    assert classify(event(action, details)) == Classification(*expected)


@pytest.mark.parametrize("details, expected_type", [
    ("Task is OVERDUE", NotificationType.SLA_OVERDUE),
    ("Reconciliation starting in 10 minutes", NotificationType.SLA_WARNING),
    ("sla warning raised manually", NotificationType.SLA_WARNING),
    ("12 MIN REMAINING", NotificationType.SLA_WARNING),
    ("Subtask in pending status", NotificationType.TASK_PENDING),
    ("pending", NotificationType.DAILY_REMINDER),
])
def test_legacy_text_fallback(details, expected_type):
    assert classify(event("manual_entry", details)).type == expected_type


def test_first_match_wins_when_phrases_co_occur():
    # "overdue" is checked before "pending"
    result = classify(event("status_changed", "pending status, now overdue"))
    assert result.type == NotificationType.SLA_OVERDUE


def test_classification_is_deterministic():
    e = event("status_changed", "... pending ... need to start")
    assert {classify(e) for _ in range(10)} == {
        Classification(NotificationType.TASK_PENDING, NotificationPriority.MEDIUM)
    }


def test_table_without_default_is_ambiguous():
    classifier = NotificationClassifier(rule for rule in DEFAULT_RULES if not rule.fallback)
    with pytest.raises(ClassificationAmbiguousException) as exc_info:
        classifier.classify("daily_execution", "nothing to see")
    assert exc_info.value.action == "daily_execution"


def test_default_table_order():
    assert [rule.name for rule in NotificationClassifier().rules] == [
        "delay_reported", "overdue", "completed", "sla_warning",
        "escalation", "pending", "default",
    ]


@pytest.mark.parametrize("notification_type, details, required", [
    (NotificationType.SLA_OVERDUE, "Overdue by 5 min", True),
    (NotificationType.ESCALATION, "", True),
    (NotificationType.SLA_WARNING, "SLA Warning - 4 min remaining", True),
    (NotificationType.SLA_WARNING, "Starts soon, need to start", True),
    (NotificationType.SLA_WARNING, "warning acknowledged", False),
    (NotificationType.TASK_COMPLETED, "14 min remaining", False),
    (NotificationType.DAILY_REMINDER, "", False),
])
def test_action_required(notification_type, details, required):
    assert is_action_required(notification_type, details) is required
