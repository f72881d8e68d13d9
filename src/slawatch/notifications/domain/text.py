"""
Detail Text
===========

Human-readable countdown phrases written into event details and rebuilt by
live recomputation. Both sides use the same wording so the legacy parser
keeps matching what the evaluator writes.
"""

import re
from typing import Optional

WARNING_PREFIX = "SLA Warning - "

_REMAINING_RE = re.compile(r"(\d+) min remaining", re.IGNORECASE)
_OVERDUE_RE = re.compile(r"overdue by (\d+) min", re.IGNORECASE)


def remaining_phrase(minutes: int) -> str:
    return f"{minutes} min remaining"


def overdue_phrase(minutes: int) -> str:
    return f"Overdue by {minutes} min"


def warning_detail(minutes: int) -> str:
    """Detail written for a fresh warning event."""
    return f"{WARNING_PREFIX}{remaining_phrase(minutes)}"


def overdue_detail(overdue_minutes: int, minutes_ago: int = 0) -> str:
    """Detail written for an overdue event, and its live rendering."""
    return f"{overdue_phrase(overdue_minutes)} • {minutes_ago} min ago"


def delay_detail(threshold_hours: int) -> str:
    return f"In progress for over {threshold_hours} h • status update needed"


def status_changed_detail(status: str) -> str:
    """Audit text written when the evaluator moves a subtask itself."""
    return f"Status automatically changed to {status} due to SLA breach"


def legacy_remaining_minutes(details: Optional[str]) -> Optional[int]:
    """Countdown embedded in legacy warning text, when no structured value exists."""
    match = _REMAINING_RE.search(details or "")
    return int(match.group(1)) if match else None


def legacy_overdue_minutes(details: Optional[str]) -> Optional[int]:
    """Overdue minutes embedded in legacy overdue text."""
    match = _OVERDUE_RE.search(details or "")
    return int(match.group(1)) if match else None


def replace_remaining(details: str, original_minutes: int, current_minutes: int) -> str:
    """
    Swap the stored countdown for the current one, keeping the text around it.

    Falls back to the bare phrase when the stored detail does not carry the
    original countdown.
    """
    head, found, tail = details.partition(remaining_phrase(original_minutes))
    if not found:
        return remaining_phrase(current_minutes)
    return f"{head}{remaining_phrase(current_minutes)}{tail}"
