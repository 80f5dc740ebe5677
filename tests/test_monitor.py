import asyncio

import pytest

from poll_dispatcher.dispatcher import Dispatcher
from poll_dispatcher.models import TaskAssignment
from poll_dispatcher.monitor import LivenessMonitor
from poll_dispatcher.store import EntityStore


@pytest.fixture()
def clocked(manual_clock, settings):
    store = EntityStore(prompts=["p1", "p2", "p3"], clock=manual_clock)
    return Dispatcher(store=store, settings=settings, clock=manual_clock)


def test_no_tasks_without_workers(clocked):
    monitor = LivenessMonitor(clocked)

    assert monitor.tick() is None
    assert clocked.store.queue_length == 0
    assert clocked.store.prompts_remaining == 3


def test_registered_but_never_polled_worker_is_not_alive(clocked):
    clocked.create_worker()

    assert LivenessMonitor(clocked).tick() is None
    assert clocked.store.queue_length == 0


def test_live_worker_gets_tasks_up_to_capacity(clocked):
    worker_id = clocked.create_worker().worker_id
    clocked.store.touch_worker(worker_id)
    monitor = LivenessMonitor(clocked)

    first = monitor.tick()
    second = monitor.tick()
    third = monitor.tick()

    assert first is not None and second is not None
    assert third is None
    assert clocked.store.queued_task_ids() == [first.id, second.id]
    assert clocked.store.get_task(first.id)["status"] == "pending"


def test_stale_worker_stops_production(clocked, settings):
    worker_id = clocked.create_worker().worker_id
    clocked.store.touch_worker(worker_id)
    monitor = LivenessMonitor(clocked)

    clocked.clock.advance(settings.liveness_window + 0.01)

    assert monitor.tick() is None
    assert clocked.store.queue_length == 0


def test_worker_inside_grace_window_is_alive(clocked, settings):
    worker_id = clocked.create_worker().worker_id
    clocked.store.touch_worker(worker_id)

    clocked.clock.advance(settings.timeout + settings.grace / 2)

    assert LivenessMonitor(clocked).tick() is not None


def test_exhausted_pool_is_silent(clocked, settings):
    settings.configure(queue_capacity=10)
    worker_id = clocked.create_worker().worker_id
    clocked.store.touch_worker(worker_id)
    monitor = LivenessMonitor(clocked)

    produced = [monitor.tick() for _ in range(5)]

    assert len([t for t in produced if t is not None]) == 3
    assert produced[3] is None and produced[4] is None
    assert clocked.store.prompts_remaining == 0


@pytest.mark.asyncio
async def test_tick_wakes_waiting_poller(clocked):
    worker_id = clocked.create_worker().worker_id
    monitor = LivenessMonitor(clocked)

    poller = asyncio.create_task(clocked.poll(worker_id))
    await asyncio.sleep(0.01)
    task = monitor.tick()
    result = await poller

    assert isinstance(result, TaskAssignment)
    assert result.task_id == task.id


@pytest.mark.asyncio
async def test_run_loop_produces_and_stops(dispatcher):
    worker_id = dispatcher.create_worker().worker_id
    dispatcher.store.touch_worker(worker_id)
    monitor = LivenessMonitor(dispatcher, interval=0.01)

    monitor.start()
    assert monitor.running
    await asyncio.sleep(0.1)
    await monitor.stop()

    assert not monitor.running
    # Capacity is 2 in the test settings
    assert dispatcher.store.queue_length == 2


@pytest.mark.asyncio
async def test_run_loop_survives_a_failing_tick(dispatcher, monkeypatch):
    calls = []

    def broken_tick():
        calls.append(1)
        raise RuntimeError("boom")

    monitor = LivenessMonitor(dispatcher, interval=0.01)
    monkeypatch.setattr(monitor, "tick", broken_tick)

    monitor.start()
    await asyncio.sleep(0.05)
    assert monitor.running
    await monitor.stop()

    assert len(calls) > 1
