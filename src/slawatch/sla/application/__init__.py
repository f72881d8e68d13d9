"""
SLA Application Layer
=====================

Application services and DTOs for SLA monitoring.

Contains:
- Services: evaluator tick orchestration (SLAMonitorService)
- Repository interfaces: ISubtaskRegistry, INotificationEventStore
- DTOs: Request/response models for the auto-sync API
"""

from slawatch.sla.application.services import (
    DeadlineEvaluator,
    EventDeduplicator,
    IAlertDispatcher,
    INotificationEventStore,
    ISubtaskRegistry,
    SLAMonitorService,
    TickReport,
)
from slawatch.sla.application.dto import (
    AutoSyncResponse,
    CreatedEventResponse,
    EnableAutoSyncRequest,
    SchedulerStatusResponse,
)

__all__ = [
    # Services
    "DeadlineEvaluator",
    "EventDeduplicator",
    "SLAMonitorService",
    "TickReport",
    # Interfaces
    "IAlertDispatcher",
    "INotificationEventStore",
    "ISubtaskRegistry",
    # DTOs
    "AutoSyncResponse",
    "CreatedEventResponse",
    "EnableAutoSyncRequest",
    "SchedulerStatusResponse",
]
