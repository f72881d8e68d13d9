"""
Notifications Domain Layer
==========================

Pure notification logic shared by the read path and the evaluator:
- Entities: NotificationEvent, NotificationStatus, OverdueReason
- Classifier: ordered rule table (action tag first, text fallback)
- Live recomputation: current countdown from recorded values
- Recipient resolution

No infrastructure dependencies; everything here is safe to call
concurrently.
"""

from slawatch.notifications.domain.entities import (
    Classification,
    NotificationEvent,
    NotificationStatus,
    OverdueReason,
)
from slawatch.notifications.domain.classifier import (
    DEFAULT_RULES,
    ClassificationRule,
    NotificationClassifier,
    classify,
    is_action_required,
)
from slawatch.notifications.domain.live import (
    LiveCountdown,
    recompute,
    recompute_overdue,
    recompute_warning,
)
from slawatch.notifications.domain.recipients import (
    Recipient,
    RecipientRole,
    RecipientSet,
    resolve_recipients,
    visible_escalation_managers,
)

__all__ = [
    "Classification",
    "NotificationEvent",
    "NotificationStatus",
    "OverdueReason",
    "DEFAULT_RULES",
    "ClassificationRule",
    "NotificationClassifier",
    "classify",
    "is_action_required",
    "LiveCountdown",
    "recompute",
    "recompute_overdue",
    "recompute_warning",
    "Recipient",
    "RecipientRole",
    "RecipientSet",
    "resolve_recipients",
    "visible_escalation_managers",
]
