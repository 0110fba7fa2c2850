# eclipse.py – routing of pushed Eclipse updates onto handlers and poll channels
"""
The notification socket pushes messages shaped like

    {"type": "eclipse_update", "eventType": "eclipse.alert.created",
     "resourceType": "alert", "resourceId": "...", "data": {...},
     "metadata": {...}, "timestamp": "2025-01-01T00:00:00Z"}

`EclipseRealtimeRouter` is transport-agnostic: feed it raw frames with
`handle_message()` and keep the socket loop elsewhere. When a bridge is
attached, updates for mapped resources also trigger an immediate fan-out on
the matching poll channel, so polling consumers refresh without waiting for
their next tick.
"""

from __future__ import annotations
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Union

from config import CONFIG
from logging_config import bind_session, get_logger, log_context
from realtime.channels import EventType

logger = get_logger(__name__)

MESSAGE_TYPE = "eclipse_update"


class EclipseEventType(str, Enum):
    BRAND_CREATED = "eclipse.brand.created"
    BRAND_UPDATED = "eclipse.brand.updated"
    BRAND_DELETED = "eclipse.brand.deleted"
    MONITOR_CREATED = "eclipse.monitor.created"
    MONITOR_UPDATED = "eclipse.monitor.updated"
    MONITOR_STATUS_CHANGED = "eclipse.monitor.status_changed"
    MONITOR_TEST_COMPLETED = "eclipse.monitor.test_completed"
    ALERT_CREATED = "eclipse.alert.created"
    ALERT_ESCALATED = "eclipse.alert.escalated"
    ALERT_DISMISSED = "eclipse.alert.dismissed"
    ALERT_BULK_ACTION = "eclipse.alert.bulk_action"
    INFRINGEMENT_CREATED = "eclipse.infringement.created"
    INFRINGEMENT_UPDATED = "eclipse.infringement.updated"
    INFRINGEMENT_STATUS_CHANGED = "eclipse.infringement.status_changed"
    ACTION_CREATED = "eclipse.action.created"
    ACTION_UPDATED = "eclipse.action.updated"
    ACTION_STATUS_CHANGED = "eclipse.action.status_changed"
    ACTION_ASSIGNED = "eclipse.action.assigned"


DEFAULT_CHANNEL_MAP: Dict[str, EventType] = {
    "alert": EventType.ALERTS,
}

Handler = Callable[[Any], Any]
AnyUpdateHandler = Callable[[str, Any], Any]


def resource_of(event_type: str) -> Optional[str]:
    """'eclipse.brand.created' -> 'brand'."""
    parts = (event_type or "").split(".")
    return parts[1] if len(parts) >= 3 else None


@dataclass
class EclipseUpdate:
    event_type: str
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    data: Any = None
    metadata: Optional[Dict[str, Any]] = None
    timestamp: Optional[str] = None

    @property
    def resource(self) -> Optional[str]:
        return resource_of(self.event_type) or self.resource_type

    @classmethod
    def from_message(cls, message: Mapping[str, Any]) -> "EclipseUpdate":
        return cls(
            event_type=str(message.get("eventType") or ""),
            resource_type=message.get("resourceType"),
            resource_id=message.get("resourceId"),
            data=message.get("data"),
            metadata=message.get("metadata"),
            timestamp=message.get("timestamp") or datetime.now(timezone.utc).isoformat(),
        )


@dataclass
class ConnectionState:
    is_connected: bool = False
    last_update: Optional[EclipseUpdate] = None
    connection_error: Optional[str] = None


class ReconnectBackoff:
    """Exponential reconnect delay: base * 2**attempts, capped at max."""

    def __init__(self, base_ms: Optional[int] = None, max_ms: Optional[int] = None):
        self.base_ms = base_ms if base_ms is not None else CONFIG.realtime.reconnect_base_ms
        self.max_ms = max_ms if max_ms is not None else CONFIG.realtime.reconnect_max_ms
        if self.base_ms <= 0 or self.base_ms > self.max_ms:
            raise ValueError("Reconnect backoff requires 0 < base_ms <= max_ms")
        self.attempts = 0

    def next_delay(self) -> float:
        """Delay in seconds before the next reconnect; advances the attempt count."""
        delay_ms = min(self.base_ms * (2 ** self.attempts), self.max_ms)
        self.attempts += 1
        return delay_ms / 1000.0

    def reset(self) -> None:
        self.attempts = 0


def auth_message(user_id: str, workspace_id: str) -> str:
    """First frame sent after the socket opens."""
    return json.dumps({"type": "auth", "payload": {"userId": user_id, "workspaceId": workspace_id}})


def auto_refresh(refetch: Callable[[], Any], resource_types: Optional[Iterable[str]] = None) -> AnyUpdateHandler:
    """Build an `on_any_update` handler calling `refetch()` for matching resources."""
    wanted = frozenset(resource_types or ())

    def _on_any_update(event_type: str, data: Any) -> None:
        if wanted and resource_of(event_type) not in wanted:
            return
        refetch()

    return _on_any_update


class EclipseRealtimeRouter:
    """Dispatches pushed Eclipse updates to per-event handlers."""

    def __init__(
        self,
        handlers: Optional[Mapping[Union[EclipseEventType, str], Handler]] = None,
        on_any_update: Optional[AnyUpdateHandler] = None,
        bridge=None,
        channel_map: Optional[Mapping[str, EventType]] = None,
        backoff: Optional[ReconnectBackoff] = None,
    ):
        self._handlers: Dict[str, Handler] = {}
        for event_type, handler in (handlers or {}).items():
            self.on(event_type, handler)
        self.on_any_update = on_any_update
        self.bridge = bridge
        self.channel_map = dict(DEFAULT_CHANNEL_MAP if channel_map is None else channel_map)
        self.backoff = backoff or ReconnectBackoff()
        self.state = ConnectionState()

    def on(self, event_type: Union[EclipseEventType, str], handler: Optional[Handler] = None):
        """Register `handler` for `event_type`; without a handler, acts as a decorator."""
        key = event_type.value if isinstance(event_type, EclipseEventType) else str(event_type)

        def register(fn: Handler) -> Handler:
            self._handlers[key] = fn
            return fn

        return register(handler) if handler is not None else register

    # -------- Connection bookkeeping --------

    def authenticate(self, user_id: str, workspace_id: str) -> str:
        """Bind the session to this task's logs and return the auth frame to send."""
        bind_session(user_id=user_id, workspace_id=workspace_id)
        return auth_message(user_id, workspace_id)

    def mark_connected(self) -> None:
        self.state.is_connected = True
        self.state.connection_error = None
        self.backoff.reset()
        logger.info("eclipse_realtime_connected")

    def mark_disconnected(self, error: Optional[str] = None) -> float:
        """Record a dropped connection; returns seconds to wait before reconnecting."""
        self.state.is_connected = False
        if error:
            self.state.connection_error = error
        delay = self.backoff.next_delay()
        logger.warning(
            "eclipse_realtime_disconnected",
            error=error,
            attempt=self.backoff.attempts,
            reconnect_in_s=delay,
        )
        return delay

    # -------- Dispatch --------

    def handle_message(self, raw: Union[str, bytes, Mapping[str, Any]]) -> Optional[EclipseUpdate]:
        """Route one frame. Returns the parsed update, or None if it was ignored."""
        if isinstance(raw, Mapping):
            message = raw
        else:
            try:
                message = json.loads(raw)
            except (TypeError, ValueError) as e:
                logger.error("eclipse_message_parse_failed", error=str(e))
                return None
        if not isinstance(message, Mapping) or message.get("type") != MESSAGE_TYPE:
            return None

        update = EclipseUpdate.from_message(message)
        self.state.last_update = update

        handler = self._handlers.get(update.event_type)
        with log_context(event_type=update.event_type):
            if handler is not None:
                self._call(handler, update.data)
            if self.on_any_update is not None:
                self._call(self.on_any_update, update.event_type, update.data)

            channel = self.channel_map.get(update.resource)
            if self.bridge is not None and channel is not None:
                self.bridge.notify(channel)

        logger.debug(
            "eclipse_update_routed",
            event_type=update.event_type,
            resource_id=update.resource_id,
            handled=handler is not None,
        )
        return update

    @staticmethod
    def _call(fn: Callable[..., Any], *args: Any) -> None:
        try:
            fn(*args)
        except Exception:
            logger.exception("eclipse_handler_failed")
