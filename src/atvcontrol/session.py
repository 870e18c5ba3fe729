"""Single remote session: pairing, connection state and key sending."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
import threading

from .client import RemoteClient, RemoteListener
from .config import RemoteConfig
from .const import LOGGER
from .model import ConnectionState, DeviceDescriptor, KeyCommand, LifecycleEvent

_TRANSITIONS: dict[LifecycleEvent, dict[ConnectionState, ConnectionState]] = {
    LifecycleEvent.SESSION_CREATED: {
        ConnectionState.CONNECTING: ConnectionState.CONNECTING,
    },
    LifecycleEvent.SECRET_REQUESTED: {
        ConnectionState.CONNECTING: ConnectionState.AWAITING_SECRET,
        # wrong pairing code, asked again
        ConnectionState.PAIRING: ConnectionState.AWAITING_SECRET,
    },
    LifecycleEvent.PAIRED: {
        ConnectionState.CONNECTING: ConnectionState.PAIRING,
        ConnectionState.PAIRING: ConnectionState.PAIRING,
    },
    LifecycleEvent.CONNECTING_TO_REMOTE: {
        ConnectionState.PAIRING: ConnectionState.PAIRING,
    },
    LifecycleEvent.CONNECTED: {
        ConnectionState.CONNECTING: ConnectionState.CONNECTED,
        ConnectionState.PAIRING: ConnectionState.CONNECTED,
    },
    LifecycleEvent.DISCONNECT: {
        ConnectionState.CONNECTING: ConnectionState.DISCONNECTED,
        ConnectionState.AWAITING_SECRET: ConnectionState.DISCONNECTED,
        ConnectionState.PAIRING: ConnectionState.DISCONNECTED,
        ConnectionState.CONNECTED: ConnectionState.DISCONNECTED,
    },
}


class _AttemptListener(RemoteListener):
    """Forward client callbacks to the controller, tagged with the attempt they belong to."""

    def __init__(self, controller: SessionController, attempt: int) -> None:
        self._controller = controller
        self._attempt = attempt

    def on_session_created(self) -> None:
        self._controller._apply(self._attempt, LifecycleEvent.SESSION_CREATED)

    def on_secret_requested(self) -> None:
        self._controller._apply(self._attempt, LifecycleEvent.SECRET_REQUESTED)

    def on_paired(self) -> None:
        self._controller._apply(self._attempt, LifecycleEvent.PAIRED)

    def on_connecting_to_remote(self) -> None:
        self._controller._apply(self._attempt, LifecycleEvent.CONNECTING_TO_REMOTE)

    def on_connected(self) -> None:
        self._controller._apply(self._attempt, LifecycleEvent.CONNECTED)

    def on_disconnect(self) -> None:
        self._controller._apply(self._attempt, LifecycleEvent.DISCONNECT)

    def on_error(self, message: str) -> None:
        self._controller._apply(self._attempt, LifecycleEvent.ERROR, message)


class SessionController:
    """Own the one connection to an Android TV and expose its state.

    connect, submit_secret, send_key and disconnect never block and never raise; the outcome
    is observed through state, last_error and the registered callbacks. Calls that are not
    valid in the current state are ignored.

    Every connect starts a new attempt. Client callbacks of older attempts are ignored, so
    the state always belongs to the most recent connect.
    """

    def __init__(
        self,
        client: RemoteClient | None = None,
        config: RemoteConfig | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        """Initialize.

        :param client: pairing and remote client. Created from config if omitted.
        :param config: used to create the client.
        :param loop: event loop. Used for connection tasks and key sends.
        """
        self._loop = loop or asyncio.get_running_loop()
        self._client = client or RemoteClient(config, self._loop)
        self._lock = threading.RLock()
        self._state = ConnectionState.IDLE
        self._last_error: str | None = None
        self._device: DeviceDescriptor | None = None
        self._pending_secret: str | None = None
        self._attempt = 0
        self._task: asyncio.Task[None] | None = None
        self._state_updated_callbacks: list[Callable[[ConnectionState], None]] = []
        self._secret_requested_callbacks: list[Callable[[], None]] = []

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def last_error(self) -> str | None:
        """Message of the last failure. Kept until the next connect."""
        return self._last_error

    @property
    def device(self) -> DeviceDescriptor | None:
        """Target of the most recent connect."""
        return self._device

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def pending_secret(self) -> str | None:
        return self._pending_secret

    def add_state_updated_callback(self, callback: Callable[[ConnectionState], None]) -> None:
        """Add a callback for when the connection state changes."""
        self._state_updated_callbacks.append(callback)

    def remove_state_updated_callback(self, callback: Callable[[ConnectionState], None]) -> None:
        """Remove a callback previously added via add_state_updated_callback.

        :raises ValueError: if callback not previously added.
        """
        self._state_updated_callbacks.remove(callback)

    def add_secret_requested_callback(self, callback: Callable[[], None]) -> None:
        """Add a callback for when the Android TV asks for the pairing code shown on screen."""
        self._secret_requested_callbacks.append(callback)

    def remove_secret_requested_callback(self, callback: Callable[[], None]) -> None:
        """Remove a callback previously added via add_secret_requested_callback.

        :raises ValueError: if callback not previously added.
        """
        self._secret_requested_callbacks.remove(callback)

    def connect(self, device: DeviceDescriptor) -> None:
        """Start connecting to a device, abandoning any attempt in progress.

        Valid in every state, including FAILED, to retry.
        """
        with self._lock:
            self._attempt += 1
            attempt = self._attempt
            self._device = device
            self._last_error = None
            self._pending_secret = None
            LOGGER.debug("Connecting to %s (attempt %s)", device, attempt)
            self._set_state(ConnectionState.CONNECTING)
        self._loop.call_soon_threadsafe(self._start_attempt, attempt, device)

    def submit_secret(self, pin: str) -> None:
        """Send the pairing code shown on the Android TV. Ignored unless AWAITING_SECRET."""
        with self._lock:
            if self._state is not ConnectionState.AWAITING_SECRET:
                LOGGER.debug("Ignoring pairing code in state %s", self._state.name)
                return
            self._pending_secret = pin.strip()
            self._set_state(ConnectionState.PAIRING)
            secret, self._pending_secret = self._pending_secret, None
        self._loop.call_soon_threadsafe(self._client.send_secret, secret)

    def send_key(self, command: KeyCommand) -> None:
        """Send a key press. Ignored unless CONNECTED."""
        with self._lock:
            if self._state is not ConnectionState.CONNECTED:
                LOGGER.debug("Ignoring %s in state %s", command.key.name, self._state.name)
                return
        self._loop.call_soon_threadsafe(self._client.send_command, command.key, command.press)

    def disconnect(self) -> None:
        """Close the connection or abandon the attempt in progress. Valid in every state."""
        with self._lock:
            self._attempt += 1
            self._pending_secret = None
            LOGGER.debug("Disconnecting from %s", self._device)
            self._set_state(ConnectionState.DISCONNECTED)
        self._loop.call_soon_threadsafe(self._abandon_task)

    def _start_attempt(self, attempt: int, device: DeviceDescriptor) -> None:
        with self._lock:
            if attempt != self._attempt:
                LOGGER.debug("Attempt %s superseded before it started", attempt)
                return
            self._abandon_task()
            self._task = self._loop.create_task(
                self._client.async_connect(device.address, _AttemptListener(self, attempt))
            )

    def _abandon_task(self) -> None:
        with self._lock:
            if self._task is not None and not self._task.done():
                self._task.cancel()
            self._task = None
            self._client.disconnect()

    def _apply(self, attempt: int, event: LifecycleEvent, message: str | None = None) -> None:
        """Apply a client event. The only place client callbacks change the state."""
        with self._lock:
            if attempt != self._attempt:
                LOGGER.debug("Ignoring %s from stale attempt %s", event.name, attempt)
                return
            if event is LifecycleEvent.ERROR:
                LOGGER.debug("Connection to %s failed: %s", self._device, message)
                self._last_error = message
                self._pending_secret = None
                self._set_state(ConnectionState.FAILED)
                return
            new_state = _TRANSITIONS[event].get(self._state)
            if new_state is None:
                LOGGER.debug("Ignoring %s in state %s", event.name, self._state.name)
                return
            if new_state is not self._state:
                self._set_state(new_state)
            if event is LifecycleEvent.SECRET_REQUESTED:
                for secret_callback in list(self._secret_requested_callbacks):
                    self._notify(secret_callback)

    def _set_state(self, state: ConnectionState) -> None:
        LOGGER.debug("State: %s -> %s", self._state.name, state.name)
        self._state = state
        for callback in list(self._state_updated_callbacks):
            self._notify(callback, state)

    def _notify(self, callback: Callable[..., None], *args: object) -> None:
        try:
            callback(*args)
        except Exception:  # noqa: BLE001
            LOGGER.exception("Error in callback %s", callback)
