"""Tests for the alert webhook client and its circuit breaker."""

import json

import httpx
import pytest

from conftest import at
from slawatch.config import NotificationPriority, NotificationType
from slawatch.notifications.domain import (
    Classification,
    NotificationEvent,
    Recipient,
    RecipientRole,
)
from slawatch.sla.infrastructure import AlertDispatcher, CircuitBreaker
from slawatch.sla.infrastructure.external import CircuitState

WEBHOOK = "https://alerts.example.com/hook"
WARNING = Classification(NotificationType.SLA_WARNING, NotificationPriority.HIGH)
RECIPIENTS = [
    Recipient("asha", RecipientRole.ASSIGNEE),
    Recipient("ravi", RecipientRole.REPORTING_MANAGER),
]


@pytest.fixture
def event():
    return NotificationEvent(
        id=41,
        task_id="7",
        subtask_id="12",
        action="sla_alert",
        details="SLA Warning - 14 min remaining",
        created_at=at(16, 46),
        countdown_minutes=14,
    )


def make_dispatcher(handler, **kwargs):
    kwargs.setdefault("backoff_seconds", 0)
    return AlertDispatcher(
        webhook_url=kwargs.pop("webhook_url", WEBHOOK),
        transport=httpx.MockTransport(handler),
        **kwargs
    )


async def test_posts_event_with_recipients(event):
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200)

    dispatcher = make_dispatcher(handler)
    assert await dispatcher.dispatch(event, WARNING, RECIPIENTS) is True
    await dispatcher.close()

    [request] = requests
    assert str(request.url) == WEBHOOK
    payload = json.loads(request.content)
    assert payload["event_id"] == 41
    assert payload["type"] == "sla_warning"
    assert payload["priority"] == "high"
    assert payload["countdown_minutes"] == 14
    assert payload["recipients"] == [
        {"name": "asha", "role": "assignee"},
        {"name": "ravi", "role": "reporting_manager"},
    ]


async def test_retries_then_gives_up(event):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(503)

    dispatcher = make_dispatcher(handler, max_retries=3)
    assert await dispatcher.dispatch(event, WARNING, RECIPIENTS) is False
    assert len(calls) == 3


async def test_recovers_on_retry(event):
    responses = iter([httpx.Response(500), httpx.Response(202)])

    dispatcher = make_dispatcher(lambda request: next(responses))
    assert await dispatcher.dispatch(event, WARNING, RECIPIENTS) is True


async def test_transport_errors_are_not_raised(event):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    dispatcher = make_dispatcher(handler, max_retries=2)
    assert await dispatcher.dispatch(event, WARNING, RECIPIENTS) is False


async def test_without_url_nothing_is_sent(event):
    calls = []
    dispatcher = make_dispatcher(lambda request: calls.append(request), webhook_url=None)

    assert dispatcher.enabled is False
    assert await dispatcher.dispatch(event, WARNING, RECIPIENTS) is False
    assert calls == []


async def test_open_circuit_skips_dispatch(event):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500)

    breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=60)
    dispatcher = make_dispatcher(handler, max_retries=1, circuit_breaker=breaker)

    assert await dispatcher.dispatch(event, WARNING, RECIPIENTS) is False
    assert breaker.state == CircuitState.OPEN
    assert await dispatcher.dispatch(event, WARNING, RECIPIENTS) is False
    assert len(calls) == 1


class TestCircuitBreaker:

    def test_opens_after_threshold(self):
        breaker = CircuitBreaker(failure_threshold=3, recovery_timeout=60)
        breaker.record_failure()
        breaker.record_failure()
        assert breaker.allow_request()
        breaker.record_failure()
        assert not breaker.allow_request()

    def test_half_open_after_timeout(self):
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=0)
        breaker.record_failure()
        assert breaker.state == CircuitState.HALF_OPEN
        assert breaker.allow_request()

    def test_success_closes(self):
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=0)
        breaker.record_failure()
        breaker.record_success()
        assert breaker.state == CircuitState.CLOSED
