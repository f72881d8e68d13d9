"""
SLA External Service Integrations
==================================

External services for SLA monitoring:
- Alert webhook client (emitted events plus their recipients)
- APScheduler handle for the background evaluator
"""

import asyncio
import time
from typing import Any, Dict, List, Optional

import httpx
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from slawatch.core import ValidationException
from slawatch.notifications.domain import Classification, NotificationEvent, Recipient
from slawatch.shared.infrastructure.logging import get_logger
from slawatch.sla.application import IAlertDispatcher, SLAMonitorService

logger = get_logger(__name__)


class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Circuit breaker for the alert webhook.

    States:
    - CLOSED: Normal operation, requests pass through
    - OPEN: After N failures, reject all requests for M seconds
    - HALF_OPEN: After timeout, allow one test request
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at: Optional[float] = None

    @property
    def state(self) -> str:
        """Get current circuit state."""
        if self._state == CircuitState.OPEN and self._opened_at is not None:
            if time.monotonic() - self._opened_at >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        return self.state in (CircuitState.CLOSED, CircuitState.HALF_OPEN)

    def record_success(self) -> None:
        self._failure_count = 0
        self._state = CircuitState.CLOSED
        self._opened_at = None

    def record_failure(self) -> None:
        self._failure_count += 1
        if self._failure_count >= self.failure_threshold or self._state == CircuitState.HALF_OPEN:
            self._state = CircuitState.OPEN
            self._opened_at = time.monotonic()
            logger.warning(
                "Circuit breaker opened",
                extra={
                    "failure_count": self._failure_count,
                    "recovery_timeout": self.recovery_timeout
                }
            )


class AlertDispatcher(IAlertDispatcher):
    """
    Webhook client with circuit breaker and retry logic.

    Posts one JSON document per emitted event. Delivery is best effort:
    failures are logged and reported as False, never raised into the tick.
    """

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        timeout_seconds: float = 5.0,
        max_retries: int = 3,
        backoff_seconds: float = 1.0,
        circuit_breaker: Optional[CircuitBreaker] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.webhook_url = webhook_url
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self._circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=5,
            recovery_timeout=60
        )
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self.timeout_seconds,
                transport=self._transport,
            )
        return self._http_client

    @staticmethod
    def build_payload(
        event: NotificationEvent,
        classification: Classification,
        recipients: List[Recipient]
    ) -> Dict[str, Any]:
        return {
            "event_id": event.id,
            "task_id": event.task_id,
            "subtask_id": event.subtask_id,
            "action": event.action,
            "type": classification.type.value,
            "priority": classification.priority.value,
            "details": event.details,
            "countdown_minutes": event.countdown_minutes,
            "created_at": event.created_at.isoformat(),
            "recipients": [
                {"name": recipient.name, "role": recipient.role.value}
                for recipient in recipients
            ],
        }

    async def dispatch(
        self,
        event: NotificationEvent,
        classification: Classification,
        recipients: List[Recipient]
    ) -> bool:
        """
        Send one alert to the webhook.

        Returns:
            True if delivered, False otherwise
        """
        if not self.enabled:
            logger.debug("Alert webhook URL not configured, skipping dispatch")
            return False

        if not self._circuit_breaker.allow_request():
            logger.warning(
                "Circuit breaker open, skipping alert dispatch",
                extra={"event_id": event.id}
            )
            return False

        payload = self.build_payload(event, classification, recipients)

        for attempt in range(self.max_retries):
            try:
                response = await self._get_client().post(self.webhook_url, json=payload)
                if response.is_success:
                    self._circuit_breaker.record_success()
                    logger.info(
                        "Alert dispatched",
                        extra={
                            "event_id": event.id,
                            "type": classification.type.value,
                            "recipients": len(recipients),
                        }
                    )
                    return True

                logger.warning(
                    "Alert webhook returned non-2xx",
                    extra={"status_code": response.status_code, "attempt": attempt + 1}
                )
            except httpx.HTTPError as e:
                logger.error(
                    "Alert dispatch failed",
                    extra={"error": str(e), "attempt": attempt + 1, "event_id": event.id}
                )

            if attempt < self.max_retries - 1:
                await asyncio.sleep(self.backoff_seconds * 2 ** attempt)

        self._circuit_breaker.record_failure()
        return False

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None


class SLAScheduler:
    """
    Handle over the APScheduler job that drives evaluator ticks.

    Owned by the application lifespan; the auto-sync endpoints start, stop
    and reschedule it at runtime.
    """

    JOB_ID = "sla_evaluation"

    def __init__(self, monitor: SLAMonitorService, interval_minutes: int = 1):
        self._monitor = monitor
        self.interval_minutes = interval_minutes
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    async def _run_tick(self) -> None:
        try:
            await self._monitor.run_tick()
        except Exception as e:
            # The job must survive to the next interval
            logger.error("SLA tick crashed", extra={"error": str(e)}, exc_info=True)

    async def start(self) -> None:
        """Start the evaluator job."""
        if self._running:
            logger.warning("SLA scheduler already running")
            return

        self._monitor.reset_stop()
        self._scheduler = AsyncIOScheduler(timezone="UTC")
        self._scheduler.add_job(
            self._run_tick,
            "interval",
            minutes=self.interval_minutes,
            id=self.JOB_ID,
            name="SLA Evaluation Job",
            misfire_grace_time=60,
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )
        self._scheduler.start()
        self._running = True

        logger.info(
            "SLA scheduler started",
            extra={"interval_minutes": self.interval_minutes}
        )

    async def stop(self) -> None:
        """
        Stop gracefully: no new subtask evaluations start, the in-flight
        tick is awaited, then the scheduler shuts down.
        """
        if not self._running:
            return

        self._monitor.request_stop()
        await self._monitor.wait_idle()

        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None

        self._running = False
        # manual ticks keep working after a disable
        self._monitor.reset_stop()
        logger.info("SLA scheduler stopped")

    def reschedule(self, interval_minutes: int) -> None:
        """Change the tick interval; applies immediately when running."""
        if not 1 <= interval_minutes <= 5:
            raise ValidationException(
                "interval_minutes must be between 1 and 5",
                {"interval_minutes": interval_minutes}
            )
        self.interval_minutes = interval_minutes
        if self._running and self._scheduler:
            self._scheduler.reschedule_job(
                self.JOB_ID, trigger="interval", minutes=interval_minutes
            )
            logger.info(
                "SLA scheduler rescheduled",
                extra={"interval_minutes": interval_minutes}
            )

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def next_run_time(self):
        if not self._running or self._scheduler is None:
            return None
        job = self._scheduler.get_job(self.JOB_ID)
        return job.next_run_time if job else None
