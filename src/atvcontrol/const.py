"""Constants for atvcontrol."""

import logging
import os

LOGGER = logging.getLogger(__package__)

CONFIG_DIR = os.path.expanduser("~/.atvcontrol")

DEFAULT_CLIENT_NAME = "atvcontrol"
DEFAULT_API_PORT = 6466
DEFAULT_PAIR_PORT = 6467

SERVICE_TYPE = "_androidtvremote._tcp.local."
SCAN_TIMEOUT_SECONDS = 5.0
RESOLVE_TIMEOUT_SECONDS = 3.0

# Hold time between START_LONG and END_LONG for a long key press.
LONG_PRESS_SECONDS = 0.5
MAX_SECRET_ATTEMPTS = 3
