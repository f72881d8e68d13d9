"""
SLA Controllers (API Routes)
=============================

FastAPI routes for running and controlling the SLA evaluator.

Controllers are thin - they delegate to the monitor service and the
scheduler handle kept on the application state.
"""

from fastapi import APIRouter, HTTPException, Request, status

from slawatch.sla.application import (
    AutoSyncResponse,
    CreatedEventResponse,
    EnableAutoSyncRequest,
    SchedulerStatusResponse,
    SLAMonitorService,
)
from slawatch.sla.infrastructure.external import SLAScheduler
from slawatch.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/auto-sync", tags=["SLA Monitoring"])


# ========== Example payloads for Swagger ==========

AUTO_SYNC_RESPONSE_EXAMPLE = {
    "tick_id": "5f0c1d2e3a4b",
    "started_at": "2024-01-15T16:46:00Z",
    "evaluated": 3,
    "created": [
        {
            "id": 41,
            "task_id": "7",
            "subtask_id": "12",
            "action": "sla_alert",
            "details": "SLA Warning - 14 min remaining",
            "countdown_minutes": 14,
            "created_at": "2024-01-15T16:46:00Z"
        }
    ],
    "suppressed": 1,
    "skipped": 0,
    "failed": 0,
    "errors": []
}

SCHEDULER_STATUS_EXAMPLE = {
    "running": True,
    "interval_minutes": 1,
    "next_run_time": "2024-01-15T16:47:00Z"
}


# ========== Dependencies ==========

def get_monitor(request: Request) -> SLAMonitorService:
    monitor = getattr(request.app.state, "monitor", None)
    if monitor is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="SLA monitor not initialized"
        )
    return monitor


def get_scheduler(request: Request) -> SLAScheduler:
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="SLA scheduler not initialized"
        )
    return scheduler


def scheduler_status(scheduler: SLAScheduler) -> SchedulerStatusResponse:
    return SchedulerStatusResponse(
        running=scheduler.is_running,
        interval_minutes=scheduler.interval_minutes,
        next_run_time=scheduler.next_run_time,
    )


# ========== Route Handlers ==========

@router.post(
    "",
    response_model=AutoSyncResponse,
    summary="Run one SLA evaluation pass",
    description="""
    Evaluate every monitored subtask now and return the events created.

    Safe to call while the scheduler is running: repeat events for the same
    subtask and phase are suppressed within the dedup lookback window.
    """,
    responses={
        200: {
            "description": "Evaluation pass finished",
            "content": {
                "application/json": {
                    "example": AUTO_SYNC_RESPONSE_EXAMPLE
                }
            }
        },
        503: {
            "description": "Monitor not initialized"
        }
    }
)
async def run_auto_sync(request: Request):
    monitor = get_monitor(request)
    report = await monitor.run_tick()

    return AutoSyncResponse(
        tick_id=report.tick_id,
        started_at=report.started_at,
        evaluated=report.evaluated,
        created=[
            CreatedEventResponse(
                id=event.id,
                task_id=event.task_id,
                subtask_id=event.subtask_id,
                action=event.action,
                details=event.details,
                countdown_minutes=event.countdown_minutes,
                created_at=event.created_at,
            )
            for event in report.emitted
        ],
        suppressed=report.suppressed,
        skipped=report.skipped,
        failed=report.failed,
        errors=report.errors,
    )


@router.post(
    "/enable",
    response_model=SchedulerStatusResponse,
    summary="Enable periodic SLA evaluation",
    description="""
    Start the evaluator scheduler, or change its interval if already running.

    **interval_minutes**: 1 to 5 (default 1)
    """,
    responses={
        200: {
            "description": "Scheduler running",
            "content": {
                "application/json": {
                    "example": SCHEDULER_STATUS_EXAMPLE
                }
            }
        }
    }
)
async def enable_auto_sync(request: Request, body: EnableAutoSyncRequest):
    scheduler = get_scheduler(request)
    scheduler.reschedule(body.interval_minutes)
    if not scheduler.is_running:
        await scheduler.start()

    logger.info(
        "Auto-sync enabled",
        extra={"interval_minutes": scheduler.interval_minutes}
    )
    return scheduler_status(scheduler)


@router.post(
    "/disable",
    response_model=SchedulerStatusResponse,
    summary="Disable periodic SLA evaluation",
    description="Stop the evaluator scheduler after the in-flight tick finishes."
)
async def disable_auto_sync(request: Request):
    scheduler = get_scheduler(request)
    await scheduler.stop()

    logger.info("Auto-sync disabled")
    return scheduler_status(scheduler)


@router.get(
    "/status",
    response_model=SchedulerStatusResponse,
    summary="Get SLA scheduler status",
    responses={
        200: {
            "description": "Scheduler state",
            "content": {
                "application/json": {
                    "example": SCHEDULER_STATUS_EXAMPLE
                }
            }
        }
    }
)
async def get_auto_sync_status(request: Request):
    return scheduler_status(get_scheduler(request))


# Export router for inclusion in main app
sla_router = router
