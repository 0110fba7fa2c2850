"""Realtime updates package initialization."""
from .channels import EventType, normalize_channel
from .registry import ChannelRegistry
from .timer_driver import TimerDriver
from .bridge import RealtimeBridge, Subscription, get_realtime_bridge, reset_realtime_bridge
from .eclipse import EclipseEventType, EclipseRealtimeRouter, EclipseUpdate, ReconnectBackoff, auto_refresh

__all__ = [
    'EventType', 'normalize_channel', 'ChannelRegistry', 'TimerDriver',
    'RealtimeBridge', 'Subscription', 'get_realtime_bridge', 'reset_realtime_bridge',
    'EclipseEventType', 'EclipseRealtimeRouter', 'EclipseUpdate', 'ReconnectBackoff', 'auto_refresh',
]
