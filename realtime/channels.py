"""Event channels that consumers can poll for updates."""
from __future__ import annotations
from enum import Enum
from typing import Union


class EventType(str, Enum):
    ALERTS = "alerts"
    INCIDENTS = "incidents"
    CASES = "cases"
    DETECTIONS = "detections"
    OBSERVABLES = "observables"
    TASKS = "tasks"


ChannelLike = Union[EventType, str]


def normalize_channel(channel: ChannelLike) -> EventType:
    """Return the EventType for `channel`, accepting member values as strings.

    Raises ValueError for anything outside the closed channel set.
    """
    if isinstance(channel, EventType):
        return channel
    try:
        return EventType(str(channel).strip().lower())
    except ValueError:
        allowed = ", ".join(e.value for e in EventType)
        raise ValueError(f"Unknown realtime channel {channel!r} (expected one of: {allowed})")
