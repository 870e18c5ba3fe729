"""Data models for atvcontrol."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class DeviceDescriptor:
    """A resolved Android TV remote service.

    Two descriptors are equal when they share an address; name and port are informational.
    """

    name: str = field(compare=False)
    address: str
    port: int = field(compare=False)

    def __str__(self) -> str:
        return f"{self.name} ({self.address}:{self.port})"


class DeviceList:
    """Devices found so far, one entry per address, in order of first sighting."""

    def __init__(self) -> None:
        self._devices: dict[str, DeviceDescriptor] = {}

    def add(self, device: DeviceDescriptor) -> bool:
        """Add or refresh a device.

        A repeated address replaces the stored descriptor in place, so the most
        recently seen name and port win.

        :return: True if the address wasn't known before.
        """
        is_new = device.address not in self._devices
        self._devices[device.address] = device
        return is_new

    def get(self, address: str) -> DeviceDescriptor | None:
        return self._devices.get(address)

    def clear(self) -> None:
        self._devices.clear()

    def __contains__(self, item: object) -> bool:
        if isinstance(item, DeviceDescriptor):
            item = item.address
        return item in self._devices

    def __iter__(self) -> Iterator[DeviceDescriptor]:
        return iter(list(self._devices.values()))

    def __len__(self) -> int:
        return len(self._devices)


class ConnectionState(Enum):
    """State of the single remote session."""

    IDLE = "idle"
    CONNECTING = "connecting"
    AWAITING_SECRET = "awaiting_secret"
    PAIRING = "pairing"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    FAILED = "failed"


class LifecycleEvent(Enum):
    """Events reported by a RemoteClient during one connection attempt."""

    SESSION_CREATED = "session_created"
    SECRET_REQUESTED = "secret_requested"
    PAIRED = "paired"
    CONNECTING_TO_REMOTE = "connecting_to_remote"
    CONNECTED = "connected"
    DISCONNECT = "disconnect"
    ERROR = "error"


class RemoteKey(str, Enum):
    """Key codes from the RemoteKeyCode enum in remotemessage.proto."""

    DPAD_UP = "KEYCODE_DPAD_UP"
    DPAD_DOWN = "KEYCODE_DPAD_DOWN"
    DPAD_LEFT = "KEYCODE_DPAD_LEFT"
    DPAD_RIGHT = "KEYCODE_DPAD_RIGHT"
    DPAD_CENTER = "KEYCODE_DPAD_CENTER"
    BACK = "KEYCODE_BACK"
    HOME = "KEYCODE_HOME"
    MENU = "KEYCODE_MENU"
    POWER = "KEYCODE_POWER"
    MUTE = "KEYCODE_MUTE"
    VOLUME_UP = "KEYCODE_VOLUME_UP"
    VOLUME_DOWN = "KEYCODE_VOLUME_DOWN"
    MEDIA_PLAY_PAUSE = "KEYCODE_MEDIA_PLAY_PAUSE"
    MEDIA_STOP = "KEYCODE_MEDIA_STOP"
    MEDIA_NEXT = "KEYCODE_MEDIA_NEXT"
    MEDIA_PREVIOUS = "KEYCODE_MEDIA_PREVIOUS"
    MEDIA_REWIND = "KEYCODE_MEDIA_REWIND"
    MEDIA_FAST_FORWARD = "KEYCODE_MEDIA_FAST_FORWARD"
    CHANNEL_UP = "KEYCODE_CHANNEL_UP"
    CHANNEL_DOWN = "KEYCODE_CHANNEL_DOWN"
    SEARCH = "KEYCODE_SEARCH"


class PressKind(Enum):
    """How long a key is held."""

    SHORT = "short"
    LONG = "long"


@dataclass(frozen=True)
class KeyCommand:
    """A single key press to send to the connected device."""

    key: RemoteKey
    press: PressKind = PressKind.SHORT
