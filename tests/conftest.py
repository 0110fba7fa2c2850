"""Shared fixtures: a manual scheduler with a virtual clock, and a bridge bound to it."""
import heapq
import itertools

import pytest

from metrics import MetricsCollector
from realtime.bridge import RealtimeBridge


class FakeHandle:
    def __init__(self, when, fn, args):
        self.when = when
        self.fn = fn
        self.args = args
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Implements `call_later` like an event loop, but time only moves on `advance()`."""

    def __init__(self):
        self.now = 0.0
        self._queue = []
        self._seq = itertools.count()

    def call_later(self, delay, fn, *args):
        handle = FakeHandle(self.now + delay, fn, args)
        heapq.heappush(self._queue, (handle.when, next(self._seq), handle))
        return handle

    def advance(self, seconds):
        target = self.now + seconds
        while self._queue and self._queue[0][0] <= target + 1e-9:
            when, _, handle = heapq.heappop(self._queue)
            self.now = when
            if not handle.cancelled:
                handle.fn(*handle.args)
        self.now = target

    def pending(self):
        return sum(1 for _, _, h in self._queue if not h.cancelled)


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def bridge(scheduler, metrics):
    b = RealtimeBridge(scheduler=scheduler, poll_interval_ms=1000, metrics=metrics)
    yield b
    b.close()
