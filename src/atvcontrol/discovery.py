"""Time-boxed mDNS discovery of Android TV remote services."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from zeroconf import IPVersion, ServiceStateChange, Zeroconf
from zeroconf.asyncio import AsyncServiceBrowser, AsyncServiceInfo, AsyncZeroconf

from .config import RemoteConfig
from .const import LOGGER
from .model import DeviceDescriptor, DeviceList
from .multicast import MulticastLock


def _display_name(name: str, service_type: str) -> str:
    """Strip the service type from an instance name, e.g. 'Living Room TV._androidtvremote._tcp.local.'."""
    suffix = f".{service_type}"
    if name.endswith(suffix):
        return name[: -len(suffix)]
    return name


def _descriptor_from_info(info: AsyncServiceInfo, name: str, service_type: str) -> DeviceDescriptor | None:
    """Build a descriptor from a resolved record, preferring IPv4 over IPv6."""
    addresses = info.parsed_addresses(IPVersion.V4Only) or info.parsed_addresses(IPVersion.V6Only)
    if not addresses or not info.port:
        return None
    return DeviceDescriptor(name=_display_name(name, service_type), address=addresses[0], port=info.port)


class DiscoveryService:
    """Browse for Android TV remote services during a fixed window.

    Devices are reported as they resolve. The same address may be reported more than once;
    callers dedup by address, e.g. with DeviceList.
    """

    def __init__(
        self,
        config: RemoteConfig | None = None,
        multicast_lock: MulticastLock | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
        zeroconf_factory: Callable[[], AsyncZeroconf] = AsyncZeroconf,
        browser_factory: Callable[..., AsyncServiceBrowser] = AsyncServiceBrowser,
        info_factory: Callable[[str, str], AsyncServiceInfo] = AsyncServiceInfo,
    ) -> None:
        """Initialize.

        :param config: discovery settings (service type, scan and resolve timeouts).
        :param multicast_lock: held for the whole discovery window.
        :param loop: event loop. Used for the discovery and resolution tasks.
        """
        self._config = config or RemoteConfig()
        self.multicast_lock = multicast_lock or MulticastLock()
        self._loop = loop or asyncio.get_running_loop()
        self._zeroconf_factory = zeroconf_factory
        self._browser_factory = browser_factory
        self._info_factory = info_factory
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        """Whether a discovery window is open."""
        return self._task is not None and not self._task.done()

    def start(
        self,
        on_found: Callable[[DeviceDescriptor], object],
        on_done: Callable[[], object],
    ) -> bool:
        """Start a discovery window in the background.

        This does not block. on_found is called for every resolved service and on_done is
        called exactly once when the window closes, after the multicast lock is released,
        whether or not discovery succeeded.

        :return: False if a discovery is already running; the request is ignored.
        """
        if self.is_running:
            LOGGER.debug("Discovery already running, ignoring start")
            return False
        self._task = self._loop.create_task(self._async_discover(on_found, on_done))
        return True

    async def async_scan(self) -> list[DeviceDescriptor]:
        """Run a full discovery window and return the devices found, one per address."""
        devices = DeviceList()
        done = self._loop.create_future()

        def on_done() -> None:
            if not done.done():
                done.set_result(None)

        if not self.start(devices.add, on_done):
            return []
        await done
        return list(devices)

    async def _async_discover(
        self,
        on_found: Callable[[DeviceDescriptor], object],
        on_done: Callable[[], object],
    ) -> None:
        resolve_tasks: set[asyncio.Task[None]] = set()
        acquired = False
        try:
            self.multicast_lock.acquire()
            acquired = True
            await self._async_browse(on_found, resolve_tasks)
        except Exception:  # noqa: BLE001
            LOGGER.exception("Discovery of %s failed", self._config.service_type)
        finally:
            for task in resolve_tasks:
                task.cancel()
            if acquired:
                try:
                    self.multicast_lock.release()
                except Exception:  # noqa: BLE001
                    LOGGER.exception("Couldn't release multicast lock %s", self.multicast_lock.tag)
            self._task = None
            LOGGER.debug("Discovery finished")
            try:
                on_done()
            except Exception:  # noqa: BLE001
                LOGGER.exception("Error in discovery done callback")

    async def _async_browse(
        self,
        on_found: Callable[[DeviceDescriptor], object],
        resolve_tasks: set[asyncio.Task[None]],
    ) -> None:
        service_type = self._config.service_type

        def on_service_state_change(
            zeroconf: Zeroconf,
            service_type: str,
            name: str,
            state_change: ServiceStateChange,
        ) -> None:
            if state_change is not ServiceStateChange.Added:
                return
            LOGGER.debug("Found service: %s", name)
            task = self._loop.create_task(self._async_resolve(zeroconf, service_type, name, on_found))
            resolve_tasks.add(task)
            task.add_done_callback(resolve_tasks.discard)

        LOGGER.debug("Browsing %s for %s seconds", service_type, self._config.scan_timeout)
        # warning: this can throw `OSError: [Errno 19] No such device` if the interface is not ready yet
        aiozc = self._zeroconf_factory()
        try:
            browser = self._browser_factory(aiozc.zeroconf, [service_type], handlers=[on_service_state_change])
            try:
                await asyncio.sleep(self._config.scan_timeout)
            finally:
                # resolutions must be finished before zeroconf closes
                for task in resolve_tasks:
                    task.cancel()
                await asyncio.gather(*resolve_tasks, return_exceptions=True)
                await browser.async_cancel()
        finally:
            await aiozc.async_close()

    async def _async_resolve(
        self,
        zeroconf: Zeroconf,
        service_type: str,
        name: str,
        on_found: Callable[[DeviceDescriptor], object],
    ) -> None:
        try:
            info = self._info_factory(service_type, name)
            if not await info.async_request(zeroconf, self._config.resolve_timeout_ms):
                LOGGER.debug("No info for %s", name)
                return
            device = _descriptor_from_info(info, name, service_type)
            if device is None:
                LOGGER.debug("No address for %s", name)
                return
            LOGGER.debug("Resolved %s", device)
            on_found(device)
        except Exception:  # noqa: BLE001
            LOGGER.exception("Couldn't resolve %s", name)
