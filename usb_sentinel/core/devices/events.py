"""
Device Events - connect/disconnect notifications delivered to listeners.

The monitor emits exactly one DeviceConnectedEvent per arrival and one
DeviceDisconnectedEvent per departure, regardless of how many providers
reported the device.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Protocol, runtime_checkable

from .types import DeviceRecord


@dataclass(frozen=True)
class DeviceConnectedEvent:
    """Emitted when an identity appears in the canonical mapping."""
    device: DeviceRecord

    @property
    def identity(self) -> str:
        return self.device.identity


@dataclass(frozen=True)
class DeviceDisconnectedEvent:
    """Emitted when an identity disappears from the canonical mapping.

    ``device`` is the record from the last snapshot that still contained it.
    """
    device: DeviceRecord

    @property
    def identity(self) -> str:
        return self.device.identity


# Type alias for device events
DeviceEvent = DeviceConnectedEvent | DeviceDisconnectedEvent


@runtime_checkable
class DeviceEventListener(Protocol):
    """
    Protocol for anything interested in device arrivals and departures.

    Callbacks run on the monitor's callback context, never on the poll
    thread. Listeners should not raise; the dispatcher logs and swallows
    anything that escapes so one faulty listener cannot affect another.
    """

    def on_connected(self, device: DeviceRecord) -> None:
        ...

    def on_disconnected(self, device: DeviceRecord) -> None:
        ...


DeviceCallback = Callable[[DeviceRecord], None]


class CallbackListener:
    """
    Adapts a pair of plain callables to DeviceEventListener.

    Usage:
        listener = CallbackListener(
            on_connected=lambda d: print("+", d.display_string()),
            on_disconnected=lambda d: print("-", d.display_string()),
        )
        monitor.subscribe(listener)
    """

    def __init__(
        self,
        on_connected: Optional[DeviceCallback] = None,
        on_disconnected: Optional[DeviceCallback] = None,
    ):
        self._on_connected = on_connected
        self._on_disconnected = on_disconnected

    def on_connected(self, device: DeviceRecord) -> None:
        if self._on_connected:
            self._on_connected(device)

    def on_disconnected(self, device: DeviceRecord) -> None:
        if self._on_disconnected:
            self._on_disconnected(device)


def deliver(listener: DeviceEventListener, event: DeviceEvent) -> None:
    """Invoke the listener method matching ``event``."""
    if isinstance(event, DeviceConnectedEvent):
        listener.on_connected(event.device)
    elif isinstance(event, DeviceDisconnectedEvent):
        listener.on_disconnected(event.device)
    else:
        raise TypeError(f"Unsupported device event: {event!r}")


__all__ = [
    "DeviceConnectedEvent",
    "DeviceDisconnectedEvent",
    "DeviceEvent",
    "DeviceEventListener",
    "DeviceCallback",
    "CallbackListener",
    "deliver",
]
