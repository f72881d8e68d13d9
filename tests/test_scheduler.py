"""Tests for the APScheduler handle that drives evaluator ticks."""

import asyncio

import pytest

from conftest import FakeSubtaskRegistry, at
from slawatch.core import ValidationException
from slawatch.sla.infrastructure import SLAScheduler


class ExplodingRegistry(FakeSubtaskRegistry):
    async def list_active_schedulable_units(self):
        raise RuntimeError("registry bug")


@pytest.fixture
async def scheduler(monitor_factory):
    scheduler = SLAScheduler(monitor_factory(), interval_minutes=1)
    yield scheduler
    await scheduler.stop()


async def test_start_and_stop(scheduler):
    assert not scheduler.is_running
    assert scheduler.next_run_time is None

    await scheduler.start()
    assert scheduler.is_running
    assert scheduler.next_run_time is not None

    await scheduler.stop()
    assert not scheduler.is_running
    assert scheduler.next_run_time is None


async def test_start_twice_keeps_one_job(scheduler):
    await scheduler.start()
    await scheduler.start()
    assert len(scheduler._scheduler.get_jobs()) == 1


@pytest.mark.parametrize("interval", [0, 6])
def test_reschedule_rejects_out_of_range(interval):
    scheduler = SLAScheduler(monitor=None)
    with pytest.raises(ValidationException):
        scheduler.reschedule(interval)
    assert scheduler.interval_minutes == 1


async def test_reschedule_while_running(scheduler):
    await scheduler.start()
    scheduler.reschedule(3)

    assert scheduler.interval_minutes == 3
    job = scheduler._scheduler.get_job(SLAScheduler.JOB_ID)
    assert job.trigger.interval.total_seconds() == 180


async def test_stop_waits_for_in_flight_tick(subtask_factory, monitor_factory, clock, store):
    store.delay_seconds = 0.2
    clock.set(at(16, 50))
    monitor = monitor_factory(units=[subtask_factory()])
    scheduler = SLAScheduler(monitor)

    await scheduler.start()
    tick = asyncio.create_task(monitor.run_tick())
    await asyncio.sleep(0.05)

    await scheduler.stop()

    assert tick.done()
    assert len(tick.result().emitted) == 1
    assert not monitor.is_stopping
    assert (await monitor.run_tick()).evaluated == 1


async def test_crashing_tick_is_contained(monitor_factory):
    scheduler = SLAScheduler(monitor_factory(registry=ExplodingRegistry()))
    await scheduler._run_tick()
