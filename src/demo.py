# ruff: noqa: T201
"""Demo usage of DiscoveryService and SessionController."""

import argparse
import asyncio
import logging

from pynput import keyboard

from atvcontrol import (
    ConnectionState,
    DeviceDescriptor,
    DiscoveryService,
    KeyCommand,
    PressKind,
    RemoteConfig,
    RemoteKey,
    SessionController,
)
from atvcontrol.const import DEFAULT_API_PORT

_LOGGER = logging.getLogger(__name__)


async def _bind_keyboard(controller: SessionController) -> None:
    print(
        "\n\nYou can control the connected Android TV with:"
        "\n- arrow keys: move selected item"
        "\n- enter: run selected item"
        "\n- 'o': long press on the selected item"
        "\n- space: play/pause"
        "\n- home: go to the home screen"
        "\n- backspace or esc: go back"
        "\n- delete: power off/on"
        "\n- +/-: volume up/down"
        "\n- 'm': mute"
        "\n- '>'/'<': next/previous track"
        "\n- 'q': quit\n\n"
    )
    key_mappings = {
        keyboard.Key.up: RemoteKey.DPAD_UP,
        keyboard.Key.down: RemoteKey.DPAD_DOWN,
        keyboard.Key.left: RemoteKey.DPAD_LEFT,
        keyboard.Key.right: RemoteKey.DPAD_RIGHT,
        keyboard.Key.enter: RemoteKey.DPAD_CENTER,
        keyboard.Key.space: RemoteKey.MEDIA_PLAY_PAUSE,
        keyboard.Key.home: RemoteKey.HOME,
        keyboard.Key.backspace: RemoteKey.BACK,
        keyboard.Key.esc: RemoteKey.BACK,
        keyboard.Key.delete: RemoteKey.POWER,
    }
    char_mappings = {
        "+": RemoteKey.VOLUME_UP,
        "-": RemoteKey.VOLUME_DOWN,
        "m": RemoteKey.MUTE,
        ">": RemoteKey.MEDIA_NEXT,
        "<": RemoteKey.MEDIA_PREVIOUS,
    }

    def transmit_keys() -> asyncio.Queue[keyboard.Key | keyboard.KeyCode | None]:
        queue: asyncio.Queue[keyboard.Key | keyboard.KeyCode | None] = asyncio.Queue()
        loop = asyncio.get_running_loop()

        def on_press(key: keyboard.Key | keyboard.KeyCode | None) -> None:
            loop.call_soon_threadsafe(queue.put_nowait, key)

        keyboard.Listener(on_press=on_press).start()
        return queue

    key_queue = transmit_keys()
    while True:
        key = await key_queue.get()
        if key is None:
            continue
        if isinstance(key, keyboard.Key) and key in key_mappings:
            controller.send_key(KeyCommand(key_mappings[key]))
        if not isinstance(key, keyboard.KeyCode):
            continue
        if key.char == "q":
            controller.disconnect()
            return
        if key.char == "o":
            controller.send_key(KeyCommand(RemoteKey.DPAD_CENTER, PressKind.LONG))
        elif key.char in char_mappings:
            controller.send_key(KeyCommand(char_mappings[key.char]))


async def _choose_device(config: RemoteConfig) -> DeviceDescriptor | None:
    print(f"\nBrowsing {config.service_type} for {config.scan_timeout} seconds...\n")
    devices = await DiscoveryService(config).async_scan()
    for index, device in enumerate(devices):
        print(f"  {index}: {device}")
    if not devices:
        print("  No devices found")
    answer = input("Enter number or IP address of Android TV to connect to: ").strip()
    if answer.isdigit() and int(answer) < len(devices):
        return devices[int(answer)]
    if not answer:
        return None
    host = answer.split(":")[0]
    return DeviceDescriptor(name=host, address=host, port=DEFAULT_API_PORT)


async def _connect(controller: SessionController, device: DeviceDescriptor) -> bool:
    loop = asyncio.get_running_loop()
    settled = asyncio.Event()

    def state_updated(state: ConnectionState) -> None:
        _LOGGER.info("Notified that state: %s", state.name)
        if state in (ConnectionState.CONNECTED, ConnectionState.FAILED, ConnectionState.DISCONNECTED):
            settled.set()

    async def ask_for_secret() -> None:
        pin = await loop.run_in_executor(None, input, "Enter pairing code shown on the Android TV: ")
        controller.submit_secret(pin)

    def secret_requested() -> None:
        _ = loop.create_task(ask_for_secret())  # noqa: RUF006

    controller.add_state_updated_callback(state_updated)
    controller.add_secret_requested_callback(secret_requested)
    controller.connect(device)
    await settled.wait()
    if controller.state is ConnectionState.FAILED:
        _LOGGER.error("Couldn't connect to %s: %s", device, controller.last_error)
    return controller.is_connected


async def _main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--host", help="IP address of Android TV to connect to")
    parser.add_argument(
        "--certfile",
        help="filename that contains the client certificate in PEM format",
    )
    parser.add_argument(
        "--keyfile",
        help="filename that contains the private key in PEM format",
    )
    parser.add_argument(
        "--client_name",
        help="shown on the Android TV during pairing",
        default="atvcontrol demo",
    )
    parser.add_argument(
        "--scan_timeout",
        type=float,
        help="zeroconf scan timeout in seconds",
        default=5,
    )
    parser.add_argument("--service_type", help="DNS-SD service type to browse for")
    parser.add_argument("-v", "--verbose", help="enable verbose logging", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    overrides = {
        name: value
        for name in ("certfile", "keyfile", "service_type")
        if (value := getattr(args, name)) is not None
    }
    config = RemoteConfig(client_name=args.client_name, scan_timeout=args.scan_timeout, **overrides)

    if args.host:
        device = DeviceDescriptor(name=args.host, address=args.host, port=config.api_port)
    else:
        device = await _choose_device(config)
    if device is None:
        return

    controller = SessionController(config=config)
    if await _connect(controller, device):
        await _bind_keyboard(controller)


asyncio.run(_main())
