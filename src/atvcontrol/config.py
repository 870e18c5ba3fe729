"""Runtime configuration for discovery and remote sessions."""

from __future__ import annotations

from dataclasses import dataclass, field
import os

from .const import (
    CONFIG_DIR,
    DEFAULT_API_PORT,
    DEFAULT_CLIENT_NAME,
    DEFAULT_PAIR_PORT,
    LONG_PRESS_SECONDS,
    MAX_SECRET_ATTEMPTS,
    RESOLVE_TIMEOUT_SECONDS,
    SCAN_TIMEOUT_SECONDS,
    SERVICE_TYPE,
)


@dataclass
class RemoteConfig:
    """Settings shared by DiscoveryService, RemoteClient and SessionController.

    :param client_name: client name. Shown on the Android TV during pairing and used as the
                        common name of the client certificate.
    :param certfile: filename that contains the client certificate in PEM format.
    :param keyfile: filename that contains the private key in PEM format.
    :param api_port: port for connecting and sending commands.
    :param pair_port: port for pairing.
    :param enable_ime: Needed for getting current_app.
           Disable for devices that show 'Use keyboard on mobile device screen'.
    :param service_type: DNS-SD service type browsed during discovery.
    :param scan_timeout: length of a discovery window in seconds.
    :param resolve_timeout: timeout in seconds for resolving one service record.
    :param long_press_seconds: hold time of a long key press.
    :param max_secret_attempts: wrong pairing codes accepted before giving up.
    """

    client_name: str = DEFAULT_CLIENT_NAME
    certfile: str = field(default_factory=lambda: os.path.join(CONFIG_DIR, "cert.pem"))
    keyfile: str = field(default_factory=lambda: os.path.join(CONFIG_DIR, "key.pem"))
    api_port: int = DEFAULT_API_PORT
    pair_port: int = DEFAULT_PAIR_PORT
    enable_ime: bool = True
    service_type: str = SERVICE_TYPE
    scan_timeout: float = SCAN_TIMEOUT_SECONDS
    resolve_timeout: float = RESOLVE_TIMEOUT_SECONDS
    long_press_seconds: float = LONG_PRESS_SECONDS
    max_secret_attempts: int = MAX_SECRET_ATTEMPTS

    def __post_init__(self) -> None:
        """Validate values.

        :raises ValueError: if a port, timeout or attempt count is out of range.
        """
        if not self.client_name:
            raise ValueError("client_name cannot be empty")
        for name in ("api_port", "pair_port"):
            port = getattr(self, name)
            if not 0 < port < 65536:
                raise ValueError(f"{name} out of range: {port}")
        for name in ("scan_timeout", "resolve_timeout", "long_press_seconds"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} should be positive")
        if self.max_secret_attempts < 1:
            raise ValueError("max_secret_attempts should be at least 1")
        if not self.service_type.endswith(".local."):
            raise ValueError(f"Unexpected service type: {self.service_type}")

    @property
    def resolve_timeout_ms(self) -> int:
        """Resolution timeout in milliseconds, as zeroconf expects it."""
        return int(self.resolve_timeout * 1000)
