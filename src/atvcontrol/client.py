"""Callback based pairing and remote client on top of androidtvremote2."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from androidtvremote2 import AndroidTVRemote, CannotConnect, ConnectionClosed, InvalidAuth

from .certificate_generator import async_generate_cert_if_missing
from .config import RemoteConfig
from .const import LOGGER
from .model import PressKind, RemoteKey


class RemoteListener:
    """Lifecycle callbacks of one connection attempt.

    Each callback is invoked at most once per logical event, in the order below.
    """

    def on_session_created(self) -> None:
        """Client credentials are ready and the attempt has started."""

    def on_secret_requested(self) -> None:
        """The Android TV shows a pairing code; answer with RemoteClient.send_secret."""

    def on_paired(self) -> None:
        """Pairing finished, or wasn't needed."""

    def on_connecting_to_remote(self) -> None:
        """Connecting to the remote port after pairing."""

    def on_connected(self) -> None:
        """Ready to receive key commands."""

    def on_disconnect(self) -> None:
        """An established connection was lost."""

    def on_error(self, message: str) -> None:
        """The attempt failed. No further callbacks follow."""


def _error_message(exc: Exception, host: str) -> str:
    if str(exc):
        return str(exc)
    if isinstance(exc, CannotConnect):
        return f"Couldn't connect to {host}"
    if isinstance(exc, InvalidAuth):
        return "Pairing failed"
    if isinstance(exc, ConnectionClosed):
        return "Connection closed"
    return type(exc).__name__


class RemoteClient:
    """Pair with and connect to one Android TV at a time, reporting progress to a RemoteListener."""

    def __init__(
        self,
        config: RemoteConfig | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
        remote_factory: Callable[..., AndroidTVRemote] = AndroidTVRemote,
    ) -> None:
        """Initialize.

        :param config: client name, credentials, ports and pairing settings.
        :param loop: event loop. Used for connections and futures.
        :param remote_factory: creates the protocol client for a host.
        """
        self._config = config or RemoteConfig()
        self._loop = loop or asyncio.get_running_loop()
        self._remote_factory = remote_factory
        self._remote: AndroidTVRemote | None = None
        self._secret_future: asyncio.Future[str] | None = None

    @property
    def host(self) -> str | None:
        """Host of the current connection attempt."""
        if not self._remote:
            return None
        return self._remote.host

    @property
    def is_awaiting_secret(self) -> bool:
        return self._secret_future is not None and not self._secret_future.done()

    async def async_connect(self, host: str, listener: RemoteListener) -> None:
        """Connect to an Android TV, pairing first if needed.

        Never raises for connection or pairing failures; they are reported via
        listener.on_error. Cancelling the call closes the connection.
        """
        remote: AndroidTVRemote | None = None
        try:
            if await async_generate_cert_if_missing(
                self._config.client_name, self._config.certfile, self._config.keyfile
            ):
                LOGGER.info("Generated new client certificate")
            remote = self._create_remote(host)
            listener.on_session_created()
            if await self._async_connect_if_paired(remote):
                listener.on_paired()
            else:
                await self._async_pair(remote, listener)
                listener.on_paired()
                listener.on_connecting_to_remote()
                await remote.async_connect()
            self._watch_availability(remote, listener)
            LOGGER.debug("Connected to %s", host)
            listener.on_connected()
        except asyncio.CancelledError:
            LOGGER.debug("Connecting to %s was cancelled", host)
            self._close(remote)
            raise
        except (CannotConnect, ConnectionClosed, InvalidAuth, OSError) as exc:
            LOGGER.debug("Couldn't connect to %s. Error: %r", host, exc)
            self._close(remote)
            listener.on_error(_error_message(exc, host))
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("Unexpected error while connecting to %s", host)
            self._close(remote)
            listener.on_error(_error_message(exc, host))

    def send_secret(self, pin: str) -> None:
        """Answer a pending pairing code request. Ignored if none is pending."""
        future = self._secret_future
        if future is None or future.done():
            LOGGER.debug("Called send_secret while no pairing code was requested")
            return
        future.set_result(pin)

    def send_command(self, key: RemoteKey, press: PressKind = PressKind.SHORT) -> None:
        """Send a key press.

        This does not block. A long press sends START_LONG now and END_LONG after
        long_press_seconds. Commands for a closed connection are dropped.
        """
        remote = self._remote
        if remote is None:
            LOGGER.debug("Called send_command after disconnect")
            return
        if press is PressKind.SHORT:
            self._send_key(remote, key, "SHORT")
            return
        self._send_key(remote, key, "START_LONG")
        self._loop.call_later(self._config.long_press_seconds, self._send_key, remote, key, "END_LONG")

    def disconnect(self) -> None:
        """Abort pairing and close any open connection."""
        if self._secret_future and not self._secret_future.done():
            self._secret_future.cancel()
        self._close(self._remote)

    def _create_remote(self, host: str) -> AndroidTVRemote:
        self._close(self._remote)
        remote = self._remote_factory(
            self._config.client_name,
            self._config.certfile,
            self._config.keyfile,
            host,
            api_port=self._config.api_port,
            pair_port=self._config.pair_port,
            loop=self._loop,
            enable_ime=self._config.enable_ime,
        )
        self._remote = remote
        return remote

    async def _async_connect_if_paired(self, remote: AndroidTVRemote) -> bool:
        try:
            await remote.async_connect()
        except InvalidAuth as exc:
            LOGGER.debug("Need to pair with %s. Error: %s", remote.host, exc)
            return False
        return True

    async def _async_pair(self, remote: AndroidTVRemote, listener: RemoteListener) -> None:
        await remote.async_start_pairing()
        attempts = 0
        while True:
            listener.on_secret_requested()
            pin = await self._async_wait_for_secret()
            attempts += 1
            try:
                await remote.async_finish_pairing(pin)
                return
            except InvalidAuth as exc:
                if attempts >= self._config.max_secret_attempts:
                    raise
                LOGGER.debug("Invalid pairing code (%s). Asking again", exc)

    async def _async_wait_for_secret(self) -> str:
        future: asyncio.Future[str] = self._loop.create_future()
        self._secret_future = future
        try:
            return await future
        finally:
            if self._secret_future is future:
                self._secret_future = None

    def _watch_availability(self, remote: AndroidTVRemote, listener: RemoteListener) -> None:
        # keep_reconnecting is only used to learn about a lost connection; the first
        # unavailable notification closes the connection instead of reconnecting.
        def is_available_updated(is_available: bool) -> None:
            if is_available:
                return
            LOGGER.debug("Lost connection to %s", remote.host)
            self._close(remote)
            listener.on_disconnect()

        remote.add_is_available_updated_callback(is_available_updated)
        remote.keep_reconnecting()

    def _send_key(self, remote: AndroidTVRemote, key: RemoteKey, direction: str) -> None:
        try:
            remote.send_key_command(key.value, direction)
        except ConnectionClosed:
            LOGGER.debug("Dropped %s %s, connection is closed", key.name, direction)

    def _close(self, remote: AndroidTVRemote | None) -> None:
        if remote is None or remote is not self._remote:
            return
        remote.disconnect()
        self._remote = None
