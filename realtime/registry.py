# registry.py – channel -> callbacks bookkeeping for the polling bridge
from __future__ import annotations
import itertools
from typing import Callable, Dict, List, NamedTuple, Optional, Tuple

from realtime.channels import EventType

Callback = Callable[[], object]


class Registration(NamedTuple):
    token: int
    is_new_channel: bool


class ChannelRegistry:
    """Maps each active channel to its registered callbacks.

    Callback sets have set semantics: registering the same callable twice keeps
    a single entry and returns the token of the existing registration. Tokens
    let a subscription handle remove only the registration it created.
    All operations are total; nothing here raises.
    """

    def __init__(self):
        # dict keeps insertion order, so fan-out order is stable per channel
        self._channels: Dict[EventType, Dict[Callback, int]] = {}
        self._tokens = itertools.count(1)

    def register(self, channel: EventType, callback: Callback) -> Registration:
        callbacks = self._channels.get(channel)
        is_new_channel = callbacks is None
        if is_new_channel:
            callbacks = self._channels[channel] = {}
        token = callbacks.get(callback)
        if token is None:
            token = callbacks[callback] = next(self._tokens)
        return Registration(token, is_new_channel)

    def deregister(self, channel: EventType, callback: Callback, token: Optional[int] = None) -> bool:
        """Remove `callback` from `channel`. Returns True if something was removed.

        With `token`, the callback is removed only while it is still the same
        registration.
        """
        callbacks = self._channels.get(channel)
        if callbacks is None or callback not in callbacks:
            return False
        if token is not None and callbacks[callback] != token:
            return False
        del callbacks[callback]
        if not callbacks:
            del self._channels[channel]
        return True

    def contains(self, channel: EventType, callback: Callback) -> bool:
        return callback in self._channels.get(channel, ())

    def token(self, channel: EventType, callback: Callback) -> Optional[int]:
        return self._channels.get(channel, {}).get(callback)

    def size(self, channel: EventType) -> int:
        return len(self._channels.get(channel, ()))

    def callbacks(self, channel: EventType) -> Tuple[Callback, ...]:
        """Snapshot of the callbacks registered for `channel`."""
        return tuple(self._channels.get(channel, ()))

    def channels(self) -> List[EventType]:
        return list(self._channels)

    def clear(self) -> None:
        self._channels.clear()

    def __len__(self) -> int:
        return len(self._channels)
