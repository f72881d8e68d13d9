"""
End-to-end API tests: FastAPI app over a seeded SQLite database.

The app lifespan is not run; the fixture wires the same services onto
app.state and swaps the request session for one bound to the test engine.
"""

import httpx
import pytest

from conftest import at
from slawatch.config import settings
from slawatch.infrastructure.database import get_session
from slawatch.main import app
from slawatch.notifications.infrastructure import SQLAlchemyEventStore
from slawatch.sla.application import SLAMonitorService
from slawatch.sla.infrastructure import SLAScheduler, SQLAlchemySubtaskRegistry


@pytest.fixture
async def client(session_maker, seeded, clock):
    async def override_session():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    monitor = SLAMonitorService.from_settings(
        settings,
        registry=SQLAlchemySubtaskRegistry(session_maker),
        store=SQLAlchemyEventStore(session_maker),
        clock=clock,
    )
    app.dependency_overrides[get_session] = override_session
    app.state.settings = settings
    app.state.clock = clock
    app.state.monitor = monitor
    app.state.scheduler = SLAScheduler(monitor, interval_minutes=1)

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
async def synced(client, clock):
    """Run one evaluation pass at 16:46: both subtasks due at 17:00 get a warning."""
    clock.set(at(16, 46))
    response = await client.post("/auto-sync")
    assert response.status_code == 200
    return response.json()


def by_subtask(notifications, subtask_id, type=None):
    return [
        n for n in notifications
        if n["subtask_id"] == subtask_id and (type is None or n["type"] == type)
    ]


class TestAutoSync:

    async def test_tick_creates_warning_events(self, synced):
        warnings = [e for e in synced["created"] if e["action"] == "sla_alert"]
        assert {e["subtask_id"] for e in warnings} == {"12", "15"}
        assert all(e["details"] == "SLA Warning - 14 min remaining" for e in warnings)
        assert all(e["countdown_minutes"] == 14 for e in warnings)
        assert synced["evaluated"] == 2
        assert synced["errors"] == []

    async def test_long_running_subtask_gets_delay_event(self, synced):
        delays = [e for e in synced["created"] if e["action"] == "delay_reported"]
        assert [e["subtask_id"] for e in delays] == ["15"]

    async def test_repeat_pass_is_suppressed(self, client, clock, synced):
        clock.set(at(16, 47))
        response = await client.post("/auto-sync")
        body = response.json()
        assert body["created"] == []
        assert body["suppressed"] == 2

    async def test_status_when_stopped(self, client):
        response = await client.get("/auto-sync/status")
        assert response.status_code == 200
        assert response.json() == {"running": False, "interval_minutes": 1, "next_run_time": None}

    async def test_manual_pass_after_disable(self, client, clock):
        assert (await client.post("/auto-sync/enable", json={"interval_minutes": 1})).json()["running"]
        assert not (await client.post("/auto-sync/disable")).json()["running"]

        clock.set(at(16, 46))
        response = await client.post("/auto-sync")
        body = response.json()
        warnings = [e for e in body["created"] if e["action"] == "sla_alert"]
        assert {e["subtask_id"] for e in warnings} == {"12", "15"}
        assert body["evaluated"] == 2

    async def test_enable_rejects_out_of_range_interval(self, client):
        response = await client.post("/auto-sync/enable", json={"interval_minutes": 9})
        assert response.status_code == 422


class TestNotificationFeed:

    async def test_countdown_is_live(self, client, clock, synced):
        clock.set(at(16, 50))
        response = await client.get("/notifications")
        assert response.status_code == 200
        body = response.json()

        [warning] = by_subtask(body["notifications"], "12", "sla_warning")
        assert warning["details"] == "SLA Warning - 10 min remaining"
        assert warning["remaining_minutes"] == 10
        assert warning["priority"] == "high"
        assert warning["action_required"] is True
        assert warning["task_name"] == "Month-end close"
        assert [r["name"] for r in warning["recipients"]] == ["asha", "ravi"]
        assert warning["escalation_managers"] == []
        assert body["unread_count"] == 3
        assert body["pagination"]["total"] == 3

    async def test_expired_warning_is_listed_as_overdue(self, client, clock, synced):
        clock.set(at(17, 3))
        response = await client.get("/notifications", params={"type": "sla_overdue"})
        body = response.json()

        assert {n["subtask_id"] for n in body["notifications"]} == {"12", "15"}
        overdue = by_subtask(body["notifications"], "12")[0]
        assert overdue["priority"] == "critical"
        assert overdue["overdue_minutes"] == 3
        assert overdue["details"] == "Overdue by 3 min"
        assert overdue["escalation_managers"] == ["meera"]
        assert [r["name"] for r in overdue["recipients"]] == ["asha", "ravi", "meera"]

    async def test_pagination(self, client, synced):
        response = await client.get("/notifications", params={"limit": 2, "offset": 0})
        body = response.json()
        assert len(body["notifications"]) == 2
        assert body["pagination"]["has_more"] is True

    async def test_mark_one_read(self, client, synced):
        event_id = by_subtask(synced["created"], "12")[0]["id"]

        response = await client.put(f"/notifications/{event_id}/read")
        assert response.status_code == 200
        assert response.json()["updated"] == 1

        body = (await client.get("/notifications", params={"status": "unread"})).json()
        assert event_id not in [n["id"] for n in body["notifications"]]
        assert body["unread_count"] == 2

    async def test_mark_all_read(self, client, synced):
        response = await client.put("/notifications/read-all")
        assert response.json()["updated"] == 3

        body = (await client.get("/notifications")).json()
        assert body["unread_count"] == 0
        assert all(n["is_read"] for n in body["notifications"])

    async def test_archive(self, client, synced):
        event_id = synced["created"][0]["id"]

        response = await client.delete(f"/notifications/{event_id}")
        assert response.status_code == 204

        body = (await client.get("/notifications")).json()
        assert event_id not in [n["id"] for n in body["notifications"]]

    async def test_unknown_notification_is_404(self, client):
        assert (await client.delete("/notifications/999")).status_code == 404
        assert (await client.put("/notifications/999/read")).status_code == 404

    async def test_type_summary(self, client, clock, synced):
        clock.set(at(16, 50))
        response = await client.get("/notifications/types/summary")
        summary = {item["type"]: item for item in response.json()}

        assert summary["sla_warning"] == {
            "type": "sla_warning", "total": 2, "unread": 2, "high_priority": 2
        }
        assert summary["task_delayed"]["total"] == 1
        assert summary["task_delayed"]["high_priority"] == 0
        assert summary["escalation"]["total"] == 0


class TestOverdueReason:

    async def test_reason_archives_notification(self, client, clock, synced):
        event_id = by_subtask(synced["created"], "12")[0]["id"]
        clock.set(at(17, 20))

        response = await client.post("/notifications/overdue-reason", json={
            "notification_id": event_id,
            "reason": "  Bank portal was down  ",
            "task_name": "Month-end close",
        })
        assert response.status_code == 201
        body = response.json()
        assert body["notification_id"] == event_id
        assert body["reason"] == "Bank portal was down"
        assert body["archived"] is True

        feed = (await client.get("/notifications")).json()
        assert event_id not in [n["id"] for n in feed["notifications"]]

    async def test_blank_reason_is_rejected(self, client, synced):
        response = await client.post("/notifications/overdue-reason", json={
            "notification_id": synced["created"][0]["id"],
            "reason": "   ",
        })
        assert response.status_code == 422

    async def test_unknown_notification(self, client):
        response = await client.post("/notifications/overdue-reason", json={
            "notification_id": 404,
            "reason": "late",
        })
        assert response.status_code == 404


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["checks"]["sla_scheduler"] == "stopped"
