"""
SLA Infrastructure Layer
========================

Concrete implementations for the SLA context:
- Task registry repository (SQLAlchemy)
- Alert webhook client and circuit breaker
- Evaluator scheduler handle
"""

from slawatch.sla.infrastructure.models import SubtaskModel, TaskModel
from slawatch.sla.infrastructure.repositories import SQLAlchemySubtaskRegistry
from slawatch.sla.infrastructure.external import (
    AlertDispatcher,
    CircuitBreaker,
    CircuitState,
    SLAScheduler,
)

__all__ = [
    "SubtaskModel",
    "TaskModel",
    "SQLAlchemySubtaskRegistry",
    "AlertDispatcher",
    "CircuitBreaker",
    "CircuitState",
    "SLAScheduler",
]
