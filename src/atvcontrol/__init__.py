"""Discover Android TVs on the local network, pair with them and send remote key presses."""

from .client import RemoteClient, RemoteListener
from .config import RemoteConfig
from .discovery import DiscoveryService
from .model import (
    ConnectionState,
    DeviceDescriptor,
    DeviceList,
    KeyCommand,
    LifecycleEvent,
    PressKind,
    RemoteKey,
)
from .multicast import MulticastLock
from .session import SessionController

__all__ = [
    "ConnectionState",
    "DeviceDescriptor",
    "DeviceList",
    "DiscoveryService",
    "KeyCommand",
    "LifecycleEvent",
    "MulticastLock",
    "PressKind",
    "RemoteClient",
    "RemoteConfig",
    "RemoteKey",
    "RemoteListener",
    "SessionController",
]
