# metrics.py – Production metrics
from __future__ import annotations
import time
from collections import defaultdict
from contextlib import contextmanager
from typing import Dict, Any

class MetricsCollector:
    def __init__(self):
        self.counters: Dict[str, int] = defaultdict(int)
        self.timers: Dict[str, list] = defaultdict(list)
        self.gauges: Dict[str, float] = {}

    def increment(self, name: str, value: int = 1):
        self.counters[name] += value

    def timing(self, name: str, duration_ms: float):
        self.timers[name].append(duration_ms)

    def gauge(self, name: str, value: float):
        self.gauges[name] = value

    @contextmanager
    def timed(self, name: str):
        start = time.perf_counter()
        try:
            yield
        finally:
            self.timing(name, (time.perf_counter() - start) * 1000)

    def reset(self):
        self.counters.clear()
        self.timers.clear()
        self.gauges.clear()

# Global metrics instance
METRICS = MetricsCollector()

class RealtimeMetrics:
    """Realtime bridge specific metrics wrapper"""

    def __init__(self, collector: MetricsCollector = None):
        self.collector = collector or METRICS

    def record_subscription(self, channel: str):
        self.collector.increment("realtime.subscriptions")
        self.collector.increment(f"realtime.subscriptions.{channel}")

    def record_tick(self, channel: str, callback_count: int, duration_ms: float):
        self.collector.increment("realtime.ticks")
        self.collector.increment(f"realtime.ticks.{channel}")
        self.collector.increment("realtime.callbacks_invoked", callback_count)
        self.collector.timing("realtime.tick_duration", duration_ms)

    def record_callback_failure(self, channel: str):
        self.collector.increment("realtime.callback_failures")
        self.collector.increment(f"realtime.callback_failures.{channel}")

    def set_active_channels(self, count: int):
        self.collector.gauge("realtime.active_channels", count)

    def summary(self) -> Dict[str, Any]:
        counters = self.collector.counters
        return {
            "subscriptions": counters.get("realtime.subscriptions", 0),
            "ticks": counters.get("realtime.ticks", 0),
            "callbacks_invoked": counters.get("realtime.callbacks_invoked", 0),
            "callback_failures": counters.get("realtime.callback_failures", 0),
        }
