"""
SLA Watch - Main Application
=============================

SLA deadline monitor and notification engine for scheduled operations
subtasks.

Modules:
- SLA Monitoring: evaluate subtask deadlines on a recurring tick, emit one
  warning and one overdue event per phase
- Notifications: classify events and recompute countdowns at read time

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities, value objects, classifier
- Infrastructure: Database, webhook, scheduler
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

# Configuration and Core
from slawatch.config import settings
from slawatch.core import ApplicationException

# Infrastructure
from slawatch.infrastructure.database import (
    close_database,
    create_tables,
    get_session_maker,
    init_database,
)

# SLA Module
from slawatch.sla.application import SLAMonitorService
from slawatch.sla.domain import SystemClock
from slawatch.sla.infrastructure import (
    AlertDispatcher,
    SLAScheduler,
    SQLAlchemySubtaskRegistry,
)
from slawatch.notifications.infrastructure import SQLAlchemyEventStore

# Module Routers
from slawatch.sla.interfaces import sla_router
from slawatch.notifications.interfaces import notifications_router

# Shared
from slawatch.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler,
)
from slawatch.shared.infrastructure.logging import get_logger, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database
    3. Create database tables
    4. Wire the SLA monitor
    5. Start the evaluator scheduler

    SHUTDOWN:
    1. Stop the scheduler (waits for the in-flight tick)
    2. Close the webhook client
    3. Close database connections
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting SLA Watch", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    logger.info("Initializing database")
    init_database()

    # Note: if the database is not available the server still starts;
    # ticks and feed reads degrade until it comes back
    logger.info("Creating database tables")
    try:
        await create_tables()
    except Exception as e:
        logger.warning(f"Database not available - running in degraded mode: {e}")

    clock = SystemClock()
    session_maker = get_session_maker()
    dispatcher = AlertDispatcher(
        webhook_url=settings.alert_webhook_url,
        timeout_seconds=settings.alert_webhook_timeout_seconds,
    )
    monitor = SLAMonitorService.from_settings(
        settings,
        registry=SQLAlchemySubtaskRegistry(session_maker),
        store=SQLAlchemyEventStore(session_maker),
        clock=clock,
        dispatcher=dispatcher,
    )
    scheduler = SLAScheduler(monitor, interval_minutes=settings.tick_interval_minutes)

    if settings.scheduler_enabled:
        await scheduler.start()
    else:
        logger.info("SLA scheduler disabled by configuration")

    # Store services in app state for the controllers
    app.state.settings = settings
    app.state.clock = clock
    app.state.monitor = monitor
    app.state.scheduler = scheduler

    logger.info("SLA Watch started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down SLA Watch")

    await scheduler.stop()
    await dispatcher.close()
    await close_database()

    logger.info("SLA Watch shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="SLA Watch API",
    description="""
    ## SLA Deadline Monitor & Notification Engine

    Watches scheduled operations subtasks against their SLA budgets and turns
    raw activity events into a live notification feed.

    ---

    ### SLA Monitoring

    **Endpoints:**
    - `POST /auto-sync` - Run one evaluation pass now
    - `POST /auto-sync/enable` - Start or reschedule the evaluator (1-5 min)
    - `POST /auto-sync/disable` - Stop the evaluator
    - `GET /auto-sync/status` - Scheduler state

    **Behaviour:**
    - Deadline = start anchor + SLA budget
    - One warning inside the last 15 minutes, one overdue event after the deadline
    - Overdue subtasks are moved to status `overdue`

    ---

    ### Notifications

    **Endpoints:**
    - `GET /notifications` - Active notifications with live countdowns
    - `GET /notifications/types/summary` - Counts per type
    - `PUT /notifications/{id}/read` / `PUT /notifications/read-all`
    - `DELETE /notifications/{id}` - Archive
    - `POST /notifications/overdue-reason` - Explain an overdue subtask

    ---
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# === Custom Middleware (from shared) ===
app.add_middleware(LoggingMiddleware)
app.add_middleware(CorrelationIDMiddleware)
app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# === Include Module Routers ===
app.include_router(sla_router)
app.include_router(notifications_router)


# === Health Check Endpoint ===

@app.get("/health", tags=["Health"], responses={
    200: {
        "description": "Service is healthy",
        "content": {
            "application/json": {
                "example": {
                    "status": "healthy",
                    "version": "1.0.0",
                    "environment": "development",
                    "checks": {
                        "sla_scheduler": "running",
                        "alert_webhook": "configured"
                    }
                }
            }
        }
    }
})
async def health_check(request: Request):
    """
    Health check endpoint for load balancers and orchestrators.

    Returns service health status including scheduler state and whether
    the alert webhook is configured.
    """
    scheduler = getattr(request.app.state, "scheduler", None)
    checks = {
        "sla_scheduler": "running" if scheduler and scheduler.is_running else "stopped",
        "alert_webhook": "configured" if settings.alert_webhook_url else "not_configured",
    }

    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": "SLA Watch",
        "version": settings.app_version,
        "architecture": "Clean Architecture / Modular Monolith",
        "docs": "/docs",
        "health": "/health",
        "modules": {
            "sla": {
                "prefix": "/auto-sync",
                "endpoints": [
                    "POST /auto-sync - Run one evaluation pass",
                    "POST /auto-sync/enable - Enable periodic evaluation",
                    "POST /auto-sync/disable - Disable periodic evaluation",
                    "GET /auto-sync/status - Scheduler status"
                ]
            },
            "notifications": {
                "prefix": "/notifications",
                "endpoints": [
                    "GET /notifications - List notifications",
                    "GET /notifications/types/summary - Counts per type",
                    "PUT /notifications/{id}/read - Mark read",
                    "PUT /notifications/read-all - Mark all read",
                    "DELETE /notifications/{id} - Archive",
                    "POST /notifications/overdue-reason - Record overdue reason"
                ]
            }
        }
    }


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "slawatch.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
