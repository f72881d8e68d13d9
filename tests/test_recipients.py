"""Tests for recipient resolution per notification type."""

import pytest

from slawatch.config import NotificationType
from slawatch.notifications.domain import (
    RecipientRole,
    RecipientSet,
    resolve_recipients,
    visible_escalation_managers,
)


@pytest.fixture
def people():
    return RecipientSet.of("asha", ["zoe", "ravi"], ["meera", "arjun"])


def names(recipients):
    return [r.name for r in recipients]


@pytest.mark.parametrize("notification_type, expected", [
    (NotificationType.SLA_WARNING, ["asha", "zoe", "ravi"]),
    (NotificationType.TASK_PENDING, ["asha", "zoe", "ravi"]),
    (NotificationType.SLA_OVERDUE, ["asha", "zoe", "ravi", "meera", "arjun"]),
    (NotificationType.ESCALATION, ["asha", "zoe", "ravi", "meera", "arjun"]),
    (NotificationType.TASK_COMPLETED, ["asha"]),
    (NotificationType.TASK_DELAYED, ["asha"]),
    (NotificationType.DAILY_REMINDER, ["asha"]),
])
def test_recipients_by_type_keep_configured_order(people, notification_type, expected):
    assert names(resolve_recipients(people, notification_type)) == expected


def test_roles_are_tagged(people):
    roles = [r.role for r in resolve_recipients(people, NotificationType.SLA_OVERDUE)]
    assert roles == [
        RecipientRole.ASSIGNEE,
        RecipientRole.REPORTING_MANAGER,
        RecipientRole.REPORTING_MANAGER,
        RecipientRole.ESCALATION_MANAGER,
        RecipientRole.ESCALATION_MANAGER,
    ]


def test_person_in_two_lists_notified_once():
    recipients = RecipientSet.of("asha", ["ravi", "asha"], ["ravi"])
    assert names(resolve_recipients(recipients, NotificationType.ESCALATION)) == ["asha", "ravi"]


def test_missing_assignee_is_skipped():
    recipients = RecipientSet.of(None, ["ravi"])
    assert names(resolve_recipients(recipients, NotificationType.SLA_WARNING)) == ["ravi"]


def test_escalation_managers_hidden_for_warnings(people):
    assert visible_escalation_managers(people, NotificationType.SLA_WARNING) == []
    assert visible_escalation_managers(people, NotificationType.SLA_OVERDUE) == ["meera", "arjun"]
