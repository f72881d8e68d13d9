"""
Recipient Resolution
====================

Who hears about a notification, by derived type. Order follows the
configured lists; it is never sorted.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from slawatch.config import NotificationType

REPORTING_TYPES = frozenset({
    NotificationType.SLA_WARNING,
    NotificationType.SLA_OVERDUE,
    NotificationType.ESCALATION,
    NotificationType.TASK_PENDING,
})
ESCALATION_TYPES = frozenset({
    NotificationType.SLA_OVERDUE,
    NotificationType.ESCALATION,
})


class RecipientRole(str, Enum):
    ASSIGNEE = "assignee"
    REPORTING_MANAGER = "reporting_manager"
    ESCALATION_MANAGER = "escalation_manager"


@dataclass(frozen=True)
class Recipient:
    name: str
    role: RecipientRole


@dataclass(frozen=True)
class RecipientSet:
    """People attached to a subtask."""

    assignee: Optional[str] = None
    reporting_managers: Tuple[str, ...] = field(default_factory=tuple)
    escalation_managers: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def of(
        cls,
        assignee: Optional[str],
        reporting_managers: Optional[Iterable[str]] = None,
        escalation_managers: Optional[Iterable[str]] = None,
    ) -> "RecipientSet":
        return cls(
            assignee=assignee or None,
            reporting_managers=tuple(reporting_managers or ()),
            escalation_managers=tuple(escalation_managers or ()),
        )


def visible_escalation_managers(
    recipients: RecipientSet,
    notification_type: NotificationType
) -> List[str]:
    """Escalation managers are only surfaced for overdue and escalation types."""
    if notification_type in ESCALATION_TYPES:
        return list(recipients.escalation_managers)
    return []


def resolve_recipients(
    recipients: RecipientSet,
    notification_type: NotificationType
) -> List[Recipient]:
    """
    Assignee always, reporting managers for warning/overdue/escalation/pending,
    escalation managers for overdue/escalation. A name listed twice is
    notified once, in its first position.
    """
    resolved: List[Recipient] = []
    seen = set()

    def add(name: str, role: RecipientRole) -> None:
        if name and name not in seen:
            seen.add(name)
            resolved.append(Recipient(name=name, role=role))

    if recipients.assignee:
        add(recipients.assignee, RecipientRole.ASSIGNEE)
    if notification_type in REPORTING_TYPES:
        for name in recipients.reporting_managers:
            add(name, RecipientRole.REPORTING_MANAGER)
    for name in visible_escalation_managers(recipients, notification_type):
        add(name, RecipientRole.ESCALATION_MANAGER)

    return resolved
