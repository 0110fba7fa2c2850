# timer_driver.py – one recurring timer per active channel, with isolated fan-out
from __future__ import annotations
import asyncio
import inspect
import time
from typing import Any, Callable, Dict, Optional, Protocol, Set

from logging_config import get_logger, log_context
from metrics import RealtimeMetrics
from realtime.channels import EventType
from realtime.registry import Callback, ChannelRegistry

logger = get_logger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Anything with asyncio's `call_later` shape. An event loop qualifies."""

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle: ...


def _callback_name(callback: Callback) -> str:
    return getattr(callback, "__qualname__", None) or repr(callback)


class _ChannelTimer:
    __slots__ = ("interval", "handle", "ticks", "started_at")

    def __init__(self, interval: float):
        self.interval = interval
        self.handle: Optional[TimerHandle] = None
        self.ticks = 0
        self.started_at = time.time()


class TimerDriver:
    """Runs a recurring tick for every channel that has subscribers.

    Each tick re-arms the next tick first and then invokes the callbacks that
    were registered when the tick began. A callback removed by an earlier
    callback in the same tick is skipped. Failures are logged per callback and
    never stop the remaining callbacks or later ticks.
    """

    def __init__(
        self,
        registry: ChannelRegistry,
        scheduler: Optional[Scheduler] = None,
        metrics: Optional[RealtimeMetrics] = None,
    ):
        self._registry = registry
        self._scheduler = scheduler
        # Only a lazily bound loop is ours to drop again
        self._owns_scheduler = scheduler is None
        self._metrics = metrics or RealtimeMetrics()
        self._timers: Dict[EventType, _ChannelTimer] = {}
        self._tasks: Set[asyncio.Future] = set()

    # -------- Timer lifecycle --------

    def ensure_running(self, channel: EventType, interval: float) -> bool:
        """Start the channel's timer unless one exists. Returns True if started."""
        if channel in self._timers:
            return False
        scheduler = self._get_scheduler()
        timer = _ChannelTimer(interval)
        timer.handle = scheduler.call_later(interval, self._tick, channel, timer)
        self._timers[channel] = timer
        logger.info("realtime_channel_started", channel=channel.value, interval_s=interval)
        return True

    def stop(self, channel: EventType) -> bool:
        timer = self._timers.pop(channel, None)
        if timer is None:
            return False
        if timer.handle is not None:
            timer.handle.cancel()
        logger.info("realtime_channel_stopped", channel=channel.value, ticks=timer.ticks)
        if not self._timers and self._owns_scheduler:
            self._scheduler = None
        return True

    def stop_all(self) -> int:
        """Stop every timer and cancel async callbacks still in flight."""
        channels = list(self._timers)
        for channel in channels:
            self.stop(channel)
        self.cancel_pending()
        return len(channels)

    def cancel_pending(self) -> int:
        pending = [task for task in self._tasks if not task.done()]
        for task in pending:
            task.cancel()
        self._tasks.clear()
        if pending:
            logger.info("realtime_callbacks_cancelled", count=len(pending))
        return len(pending)

    def pending_count(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    def is_running(self, channel: EventType) -> bool:
        return channel in self._timers

    def interval(self, channel: EventType) -> Optional[float]:
        timer = self._timers.get(channel)
        return timer.interval if timer else None

    def active_count(self) -> int:
        return len(self._timers)

    # -------- Fan-out --------

    def fan_out(self, channel: EventType) -> int:
        """Invoke every callback registered for `channel`. Returns how many ran."""
        start = time.perf_counter()
        invoked = 0
        # Tasks spawned here copy the context, so async callbacks log the channel too
        with log_context(channel=channel.value):
            for callback in self._registry.callbacks(channel):
                if not self._registry.contains(channel, callback):
                    continue
                invoked += 1
                try:
                    result = callback()
                    if inspect.isawaitable(result):
                        self._spawn(channel, callback, result)
                except Exception:
                    self._metrics.record_callback_failure(channel.value)
                    logger.exception("realtime_callback_failed", callback=_callback_name(callback))
        self._metrics.record_tick(channel.value, invoked, (time.perf_counter() - start) * 1000)
        return invoked

    def _tick(self, channel: EventType, timer: _ChannelTimer) -> None:
        if self._timers.get(channel) is not timer:
            return
        timer.ticks += 1
        timer.handle = self._get_scheduler().call_later(timer.interval, self._tick, channel, timer)
        logger.debug("realtime_tick", channel=channel.value, tick=timer.ticks)
        self.fan_out(channel)

    def _spawn(self, channel: EventType, callback: Callback, awaitable) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            raise
        task = asyncio.ensure_future(awaitable, loop=loop)
        self._tasks.add(task)

        def _done(fut: asyncio.Future) -> None:
            self._tasks.discard(fut)
            if fut.cancelled():
                return
            exc = fut.exception()
            if exc is not None:
                self._metrics.record_callback_failure(channel.value)
                logger.error(
                    "realtime_callback_failed",
                    channel=channel.value,
                    callback=_callback_name(callback),
                    error=str(exc),
                    exc_info=exc,
                )

        task.add_done_callback(_done)

    def _get_scheduler(self) -> Scheduler:
        if self._scheduler is None:
            # Bound lazily so a bridge can be built before the loop starts
            self._scheduler = asyncio.get_running_loop()
        elif self._owns_scheduler and self._scheduler.is_closed():
            # Handles armed on a finished loop never fire; move them over
            self._scheduler = asyncio.get_running_loop()
            for channel, timer in self._timers.items():
                timer.handle = self._scheduler.call_later(timer.interval, self._tick, channel, timer)
            logger.info("realtime_scheduler_rebound", channels=len(self._timers))
        return self._scheduler
