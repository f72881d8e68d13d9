"""
SLA Domain Layer
================

Domain layer for SLA monitoring module.

Contains:
- Entities: Core business objects with identity (Subtask)
- Value Objects: Immutable objects defined by attributes (SLADeadline, PhaseTransition)
- Domain Services: Stateless business logic (DeadlineCalculator)
- Clock: Injectable source of "now"

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from slawatch.sla.domain.clock import Clock, SystemClock, ManualClock
from slawatch.sla.domain.entities import Subtask
from slawatch.sla.domain.value_objects import (
    DeadlineCalculator,
    SLADeadline,
    PhaseTransition,
)

__all__ = [
    # Clock
    "Clock",
    "SystemClock",
    "ManualClock",
    # Entities
    "Subtask",
    # Value Objects & Services
    "DeadlineCalculator",
    "SLADeadline",
    "PhaseTransition",
]
