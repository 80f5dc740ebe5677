from datetime import datetime, timedelta, timezone
import random

import pytest

from poll_dispatcher.clock import Clock
from poll_dispatcher.dispatcher import Dispatcher
from poll_dispatcher.info import Info
from poll_dispatcher.store import EntityStore


class ManualClock(Clock):
    """Clock whose wall time only moves when a test advances it.

    Deadlines and sleeps still use real time, so polls keep working.
    """

    def __init__(self, start=None):
        self._now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def now(self):
        return self._now

    def advance(self, seconds):
        self._now += timedelta(seconds=seconds)


@pytest.fixture()
def settings():
    """Short timings so waits finish in a fraction of a second"""
    s = Info()
    s.configure(
        timeout=0.3,
        poll_interval=0.05,
        grace=0.1,
        queue_capacity=2,
        monitor_interval=0.05,
        mode="worker",
    )
    return s


@pytest.fixture()
def manual_clock():
    return ManualClock()


@pytest.fixture()
def store():
    return EntityStore(prompts=["p1", "p2", "p3", "p4"], rng=random.Random(7))


@pytest.fixture()
def dispatcher(store, settings):
    return Dispatcher(store=store, settings=settings)
