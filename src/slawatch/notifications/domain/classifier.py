"""
Notification Classifier
========================

Maps a raw event (action tag + detail text) to a display type and priority
through an ordered rule table. First match wins, because several phrases
can co-occur in one detail ("pending ... overdue").

New events are matched on their structured tag. Substring rules only exist
for legacy and manually entered rows that carry no clean tag.
"""

from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional, Sequence, Tuple

from slawatch.config import ActionTag, NotificationPriority, NotificationType
from slawatch.core import ClassificationAmbiguousException
from slawatch.notifications.domain.entities import Classification, NotificationEvent


@dataclass(frozen=True)
class ClassificationRule:
    """
    One row of the rule table.

    A rule matches when the action is one of ``actions``, or when the
    lower-cased detail contains every phrase in ``detail_all`` and at least
    one phrase in ``detail_any`` (each list is ignored when empty, but at
    least one of them must be configured for the text branch to apply).
    """

    name: str
    type: NotificationType
    priority: NotificationPriority
    actions: FrozenSet[str] = field(default_factory=frozenset)
    detail_any: Tuple[str, ...] = ()
    detail_all: Tuple[str, ...] = ()
    fallback: bool = False

    def matches(self, action: Optional[str], details: str) -> bool:
        if self.fallback:
            return True
        if action in self.actions:
            return True
        if not (self.detail_any or self.detail_all):
            return False
        if not all(phrase in details for phrase in self.detail_all):
            return False
        return not self.detail_any or any(phrase in details for phrase in self.detail_any)


def _tags(*tags: ActionTag) -> FrozenSet[str]:
    return frozenset(tag.value for tag in tags)


DEFAULT_RULES: Tuple[ClassificationRule, ...] = (
    ClassificationRule(
        name="delay_reported",
        type=NotificationType.TASK_DELAYED,
        priority=NotificationPriority.MEDIUM,
        actions=_tags(ActionTag.DELAY_REPORTED),
    ),
    ClassificationRule(
        name="overdue",
        type=NotificationType.SLA_OVERDUE,
        priority=NotificationPriority.CRITICAL,
        actions=_tags(ActionTag.OVERDUE_NOTIFICATION_SENT),
        detail_any=("overdue",),
    ),
    ClassificationRule(
        name="completed",
        type=NotificationType.TASK_COMPLETED,
        priority=NotificationPriority.LOW,
        actions=_tags(ActionTag.COMPLETION_NOTIFICATION_SENT),
    ),
    ClassificationRule(
        name="sla_warning",
        type=NotificationType.SLA_WARNING,
        priority=NotificationPriority.HIGH,
        actions=_tags(ActionTag.SLA_ALERT),
        detail_any=("starting in", "sla warning", "min remaining"),
    ),
    ClassificationRule(
        name="escalation",
        type=NotificationType.ESCALATION,
        priority=NotificationPriority.CRITICAL,
        actions=_tags(ActionTag.ESCALATION_REQUIRED),
    ),
    ClassificationRule(
        name="pending",
        type=NotificationType.TASK_PENDING,
        priority=NotificationPriority.MEDIUM,
        detail_all=("pending",),
        detail_any=("need to start", "pending status"),
    ),
    ClassificationRule(
        name="default",
        type=NotificationType.DAILY_REMINDER,
        priority=NotificationPriority.MEDIUM,
        fallback=True,
    ),
)

ACTION_REQUIRED_TYPES = {NotificationType.SLA_OVERDUE, NotificationType.ESCALATION}
ACTIVE_COUNTDOWN_PHRASES = ("min remaining", "need to start")


class NotificationClassifier:
    """Stateless classifier over an ordered rule table."""

    def __init__(self, rules: Iterable[ClassificationRule] = DEFAULT_RULES):
        self._rules: Sequence[ClassificationRule] = tuple(rules)

    @property
    def rules(self) -> Sequence[ClassificationRule]:
        return self._rules

    def classify(self, action: Optional[str], details: Optional[str]) -> Classification:
        """
        Return the classification of the first matching rule.

        Raises:
            ClassificationAmbiguousException: If the table has no matching rule
        """
        text = (details or "").lower()
        for rule in self._rules:
            if rule.matches(action, text):
                return Classification(type=rule.type, priority=rule.priority)
        raise ClassificationAmbiguousException(action)

    def classify_event(self, event: NotificationEvent) -> Classification:
        return self.classify(event.action, event.details)


def is_action_required(notification_type: NotificationType, details: Optional[str]) -> bool:
    """
    Overdue and escalation always need action; a warning only while its
    detail carries an active countdown.
    """
    if notification_type in ACTION_REQUIRED_TYPES:
        return True
    if notification_type == NotificationType.SLA_WARNING:
        text = (details or "").lower()
        return any(phrase in text for phrase in ACTIVE_COUNTDOWN_PHRASES)
    return False


_default_classifier = NotificationClassifier()


def classify(event: NotificationEvent) -> Classification:
    """Classify with the default rule table."""
    return _default_classifier.classify_event(event)
