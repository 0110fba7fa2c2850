"""Polling bridge: subscribe to an event channel and get called on every tick.

Usage:
    bridge = RealtimeBridge()
    sub = bridge.subscribe("alerts", refetch_alerts)
    ...
    sub.release()          # or bridge.unsubscribe("alerts", refetch_alerts)

Subscribing the same callback twice to a channel is idempotent: it stays a
single registration and one release removes it. A handle only ever removes
the registration it was issued for, so releasing it again, or releasing it
after the callback was unsubscribed and subscribed anew, does nothing.

The bridge stands in for a push transport. Push code can call
`notify(channel)` to run a channel's callbacks immediately, and the
subscribe/release contract stays the same either way.
"""

from __future__ import annotations
from typing import Any, Callable, Dict, List, Optional

from config import CONFIG
from logging_config import get_logger
from metrics import MetricsCollector, RealtimeMetrics
from realtime.channels import ChannelLike, EventType, normalize_channel
from realtime.registry import Callback, ChannelRegistry
from realtime.timer_driver import Scheduler, TimerDriver

logger = get_logger(__name__)


class Subscription:
    """Single-use release capability returned by `RealtimeBridge.subscribe`."""

    __slots__ = ("_bridge", "channel", "callback", "token", "_released")

    def __init__(self, bridge: "RealtimeBridge", channel: EventType, callback: Callback, token: int):
        self._bridge = bridge
        self.channel = channel
        self.callback = callback
        self.token = token
        self._released = False

    def release(self) -> bool:
        """Remove this registration. Returns True only on the call that removed it."""
        if self._released:
            return False
        self._released = True
        return self._bridge._release(self.channel, self.callback, self.token)

    __call__ = release

    @property
    def active(self) -> bool:
        return not self._released and self._bridge._is_current(self.channel, self.callback, self.token)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"<Subscription channel={self.channel.value} token={self.token} active={self.active}>"


class RealtimeBridge:
    """Session-scoped channel registry plus the timers that poll it."""

    def __init__(
        self,
        scheduler: Optional[Scheduler] = None,
        poll_interval_ms: Optional[int] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.poll_interval_ms = _validate_interval(
            poll_interval_ms if poll_interval_ms is not None else CONFIG.realtime.poll_interval_ms
        )
        self.metrics = RealtimeMetrics(metrics)
        self._registry = ChannelRegistry()
        self._driver = TimerDriver(self._registry, scheduler=scheduler, metrics=self.metrics)
        self._closed = False

    # -------- Public API --------

    def subscribe(self, channel: ChannelLike, callback: Callback, interval: Optional[int] = None) -> Subscription:
        """Register `callback` on `channel`; `interval` overrides the poll period in ms."""
        if self._closed:
            raise RuntimeError("RealtimeBridge is closed")
        if not callable(callback):
            raise TypeError(f"callback must be callable, got {type(callback).__name__}")
        event_type = normalize_channel(channel)
        interval_ms = _validate_interval(interval) if interval is not None else self.poll_interval_ms

        registration = self._registry.register(event_type, callback)
        if registration.is_new_channel:
            try:
                self._driver.ensure_running(event_type, interval_ms / 1000.0)
            except Exception:
                # keep "no timer implies no callbacks"
                self._registry.deregister(event_type, callback)
                raise
        elif interval is not None and self._driver.interval(event_type) != interval_ms / 1000.0:
            logger.debug(
                "realtime_interval_override_ignored",
                channel=event_type.value,
                requested_ms=interval_ms,
                active_s=self._driver.interval(event_type),
            )

        self.metrics.record_subscription(event_type.value)
        self.metrics.set_active_channels(len(self._registry))
        return Subscription(self, event_type, callback, registration.token)

    def unsubscribe(self, channel: ChannelLike, callback: Callback) -> bool:
        """Remove `callback` from `channel`. Unknown channels and callbacks are ignored."""
        try:
            event_type = normalize_channel(channel)
        except ValueError:
            return False
        return self._release(event_type, callback, None)

    def notify(self, channel: ChannelLike) -> int:
        """Fan out to a channel's callbacks now, outside its timer cadence."""
        event_type = normalize_channel(channel)
        if not self._registry.size(event_type):
            return 0
        return self._driver.fan_out(event_type)

    def watch(self, channel: ChannelLike, interval: Optional[int] = None) -> Callable[[Callback], Callback]:
        """Decorator form of `subscribe`; the handle is stored on `fn.subscription`."""
        def decorator(fn: Callback) -> Callback:
            fn.subscription = self.subscribe(channel, fn, interval)
            return fn
        return decorator

    def size(self, channel: ChannelLike) -> int:
        return self._registry.size(normalize_channel(channel))

    def active_channels(self) -> List[EventType]:
        return self._registry.channels()

    def active_timers(self) -> int:
        return self._driver.active_count()

    def is_running(self, channel: ChannelLike) -> bool:
        return self._driver.is_running(normalize_channel(channel))

    @property
    def closed(self) -> bool:
        return self._closed

    def stats(self) -> Dict[str, Any]:
        return {
            "closed": self._closed,
            "poll_interval_ms": self.poll_interval_ms,
            "active_channels": len(self._registry),
            "active_timers": self._driver.active_count(),
            "pending_callbacks": self._driver.pending_count(),
            "channels": {c.value: self._registry.size(c) for c in self._registry.channels()},
            **self.metrics.summary(),
        }

    def close(self) -> None:
        """Cancel every timer and drop every registration."""
        if self._closed:
            return
        stopped = self._driver.stop_all()
        self._registry.clear()
        self._closed = True
        self.metrics.set_active_channels(0)
        logger.info("realtime_bridge_closed", timers_stopped=stopped)

    def __enter__(self) -> "RealtimeBridge":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # -------- Internal --------

    def _release(self, channel: EventType, callback: Callback, token: Optional[int]) -> bool:
        removed = self._registry.deregister(channel, callback, token)
        if removed and not self._registry.size(channel):
            self._driver.stop(channel)
        if removed:
            self.metrics.set_active_channels(len(self._registry))
        return removed

    def _is_current(self, channel: EventType, callback: Callback, token: int) -> bool:
        return self._registry.token(channel, callback) == token


def _validate_interval(interval_ms) -> int:
    if isinstance(interval_ms, bool) or not isinstance(interval_ms, (int, float)):
        raise ValueError(f"Poll interval must be a number of milliseconds, got {interval_ms!r}")
    if interval_ms <= 0:
        raise ValueError(f"Poll interval must be positive, got {interval_ms}")
    return interval_ms


# ---------------- Global Instance Helper -----------------
_realtime_bridge: Optional[RealtimeBridge] = None

def get_realtime_bridge() -> RealtimeBridge:
    global _realtime_bridge
    if _realtime_bridge is None or _realtime_bridge.closed:
        _realtime_bridge = RealtimeBridge()
    return _realtime_bridge


def reset_realtime_bridge() -> None:
    """Close the process-wide bridge; the next `get_realtime_bridge()` builds a fresh one."""
    global _realtime_bridge
    if _realtime_bridge is not None:
        _realtime_bridge.close()
    _realtime_bridge = None
