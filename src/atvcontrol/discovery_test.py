import asyncio
import time
from unittest import IsolatedAsyncioTestCase
from unittest.mock import Mock

from hamcrest import assert_that, contains_exactly, empty, has_length, is_, less_than
from zeroconf import IPVersion, ServiceStateChange

from atvcontrol.config import RemoteConfig
from atvcontrol.discovery import DiscoveryService
from atvcontrol.model import DeviceDescriptor, DeviceList
from atvcontrol.multicast import MulticastLock

SERVICE_TYPE = "_androidtvremote._tcp.local."


class FakeZeroconf:
    def __init__(self):
        self.zeroconf = Mock(name="zeroconf")
        self.closed = False

    async def async_close(self):
        self.closed = True


class FakeBrowser:
    def __init__(self, zc, types, handlers):
        self.zc = zc
        self.types = types
        self.handlers = handlers
        self.cancelled = False

    async def async_cancel(self):
        self.cancelled = True


class FakeInfo:
    def __init__(self, record, delay=0, on_cancel=None):
        self._record = record
        self._delay = delay
        self._on_cancel = on_cancel
        self.port = record[2] if record else None

    async def async_request(self, zc, timeout):
        try:
            await asyncio.sleep(self._delay)
        except asyncio.CancelledError:
            if self._on_cancel:
                self._on_cancel()
            raise
        return self._record is not None

    def parsed_addresses(self, version=IPVersion.All):
        v4, v6 = self._record[0], self._record[1]
        if version is IPVersion.V4Only:
            return list(v4)
        if version is IPVersion.V6Only:
            return list(v6)
        return list(v4) + list(v6)


class DiscoveryServiceTest(IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.aiozc = FakeZeroconf()
        self.browsers = []
        self.records = {}
        self.delays = {}
        self.zeroconf_closed_on_cancel = []
        self.lock = MulticastLock()
        self.config = RemoteConfig(scan_timeout=0.05, resolve_timeout=0.01)
        self.zeroconf_factory = lambda: self.aiozc
        self.found = []
        self.done_calls = 0
        self.lock_held_when_done = None
        self.done = asyncio.Event()
        self.sut = self._create_sut()

    def _create_sut(self):
        return DiscoveryService(
            self.config,
            self.lock,
            zeroconf_factory=lambda: self.zeroconf_factory(),
            browser_factory=self._create_browser,
            info_factory=self._create_info,
        )

    def _create_info(self, service_type, name):
        return FakeInfo(
            self.records.get(name),
            self.delays.get(name, 0),
            lambda: self.zeroconf_closed_on_cancel.append(self.aiozc.closed),
        )

    def _create_browser(self, zc, types, handlers):
        browser = FakeBrowser(zc, types, handlers)
        self.browsers.append(browser)
        return browser

    def on_found(self, device):
        self.found.append(device)

    def on_done(self):
        self.done_calls += 1
        self.lock_held_when_done = self.lock.held
        self.done.set()

    def announce(self, name, state_change=ServiceStateChange.Added):
        for browser in self.browsers:
            for handler in browser.handlers:
                handler(zeroconf=browser.zc, service_type=SERVICE_TYPE, name=name, state_change=state_change)

    async def start_and_announce(self, *names):
        assert_that(self.sut.start(self.on_found, self.on_done), is_(True))
        await asyncio.sleep(0)
        for name in names:
            self.announce(name)
        await asyncio.wait_for(self.done.wait(), 1)

    async def test_reports_resolved_devices(self):
        self.records["Living Room TV." + SERVICE_TYPE] = (["192.168.1.20"], [], 6466)
        self.records["Bedroom." + SERVICE_TYPE] = (["192.168.1.21"], [], 6466)

        await self.start_and_announce("Living Room TV." + SERVICE_TYPE, "Bedroom." + SERVICE_TYPE)

        assert_that([d.name for d in self.found], contains_exactly("Living Room TV", "Bedroom"))
        assert_that([d.address for d in self.found], contains_exactly("192.168.1.20", "192.168.1.21"))
        assert_that(self.browsers[0].types, contains_exactly(SERVICE_TYPE))

    async def test_prefers_ipv4_and_falls_back_to_ipv6(self):
        self.records["dual." + SERVICE_TYPE] = (["10.0.0.2"], ["fe80::2"], 6466)
        self.records["v6." + SERVICE_TYPE] = ([], ["fe80::3"], 6467)

        await self.start_and_announce("dual." + SERVICE_TYPE, "v6." + SERVICE_TYPE)

        assert_that(
            self.found,
            contains_exactly(DeviceDescriptor("dual", "10.0.0.2", 6466), DeviceDescriptor("v6", "fe80::3", 6467)),
        )
        assert_that(self.found[1].port, is_(6467))

    async def test_drops_records_without_address(self):
        self.records["empty." + SERVICE_TYPE] = ([], [], 6466)

        await self.start_and_announce("empty." + SERVICE_TYPE, "unresolvable." + SERVICE_TYPE)

        assert_that(self.found, is_(empty()))

    async def test_ignores_removed_and_updated_services(self):
        self.records["tv." + SERVICE_TYPE] = (["10.0.0.2"], [], 6466)
        self.sut.start(self.on_found, self.on_done)
        await asyncio.sleep(0)
        self.announce("tv." + SERVICE_TYPE, ServiceStateChange.Removed)
        self.announce("tv." + SERVICE_TYPE, ServiceStateChange.Updated)
        await asyncio.wait_for(self.done.wait(), 1)

        assert_that(self.found, is_(empty()))

    async def test_repeated_announcements_are_reported_and_deduped_by_consumer(self):
        self.records["tv." + SERVICE_TYPE] = (["10.0.0.2"], [], 6466)

        await self.start_and_announce("tv." + SERVICE_TYPE, "tv." + SERVICE_TYPE)

        assert_that(self.found, has_length(2))
        devices = DeviceList()
        for device in self.found:
            devices.add(device)
        assert_that(devices, has_length(1))

    async def test_done_within_window_and_resources_released(self):
        started = time.monotonic()
        await self.start_and_announce()

        assert_that(time.monotonic() - started, less_than(self.config.scan_timeout + 0.5))
        assert_that(self.done_calls, is_(1))
        assert_that(self.lock_held_when_done, is_(False))
        assert_that(self.browsers[0].cancelled, is_(True))
        assert_that(self.aiozc.closed, is_(True))
        assert_that(self.sut.is_running, is_(False))

    async def test_start_while_running_is_ignored(self):
        assert_that(self.sut.start(self.on_found, self.on_done), is_(True))
        assert_that(self.sut.is_running, is_(True))
        assert_that(self.sut.start(self.on_found, self.on_done), is_(False))

        await asyncio.wait_for(self.done.wait(), 1)
        await asyncio.sleep(0.1)
        assert_that(self.done_calls, is_(1))
        assert_that(self.browsers, has_length(1))

    async def test_can_start_again_after_done(self):
        await self.start_and_announce()
        self.done.clear()

        await self.start_and_announce()

        assert_that(self.done_calls, is_(2))
        assert_that(self.lock.count, is_(0))

    async def test_setup_failure_still_calls_done(self):
        def fail():
            raise OSError(19, "No such device")

        self.zeroconf_factory = fail

        await self.start_and_announce()

        assert_that(self.done_calls, is_(1))
        assert_that(self.lock_held_when_done, is_(False))
        assert_that(self.found, is_(empty()))

    async def test_teardown_failure_still_closes_and_calls_done(self):
        async def fail():
            raise RuntimeError("cancel failed")

        self.sut.start(self.on_found, self.on_done)
        await asyncio.sleep(0)
        self.browsers[0].async_cancel = fail
        await asyncio.wait_for(self.done.wait(), 1)

        assert_that(self.aiozc.closed, is_(True))
        assert_that(self.lock_held_when_done, is_(False))

    async def test_failing_on_found_does_not_stop_discovery(self):
        self.records["a." + SERVICE_TYPE] = (["10.0.0.2"], [], 6466)
        self.records["b." + SERVICE_TYPE] = (["10.0.0.3"], [], 6466)
        seen = []

        def on_found(device):
            seen.append(device)
            raise ValueError("UI went away")

        self.sut.start(on_found, self.on_done)
        await asyncio.sleep(0)
        self.announce("a." + SERVICE_TYPE)
        self.announce("b." + SERVICE_TYPE)
        await asyncio.wait_for(self.done.wait(), 1)

        assert_that(seen, has_length(2))
        assert_that(self.done_calls, is_(1))

    async def test_async_scan(self):
        self.records["tv." + SERVICE_TYPE] = (["10.0.0.2"], [], 6466)
        scan = asyncio.ensure_future(self.sut.async_scan())
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        self.announce("tv." + SERVICE_TYPE)
        self.announce("tv." + SERVICE_TYPE)

        devices = await asyncio.wait_for(scan, 1)

        assert_that(devices, contains_exactly(DeviceDescriptor("tv", "10.0.0.2", 6466)))

    async def test_cancelled_discovery_releases_and_calls_done(self):
        self.records["slow." + SERVICE_TYPE] = (["10.0.0.2"], [], 6466)
        self.delays["slow." + SERVICE_TYPE] = 10
        self.sut.start(self.on_found, self.on_done)
        await asyncio.sleep(0)
        self.announce("slow." + SERVICE_TYPE)
        await asyncio.sleep(0)

        self.sut._task.cancel()
        await asyncio.wait_for(self.done.wait(), 1)

        assert_that(self.done_calls, is_(1))
        assert_that(self.lock_held_when_done, is_(False))
        assert_that(self.lock.count, is_(0))
        assert_that(self.browsers[0].cancelled, is_(True))
        assert_that(self.aiozc.closed, is_(True))
        assert_that(self.zeroconf_closed_on_cancel, contains_exactly(False))
        assert_that(self.sut.is_running, is_(False))

    async def test_pending_resolution_cancelled_before_zeroconf_closes(self):
        self.records["slow." + SERVICE_TYPE] = (["10.0.0.2"], [], 6466)
        self.delays["slow." + SERVICE_TYPE] = 10

        await self.start_and_announce("slow." + SERVICE_TYPE)

        assert_that(self.zeroconf_closed_on_cancel, contains_exactly(False))
        assert_that(self.aiozc.closed, is_(True))
        assert_that(self.found, is_(empty()))

    async def test_failing_acquire_hook_still_calls_done(self):
        on_release = Mock()

        def deny():
            raise PermissionError("CHANGE_WIFI_MULTICAST_STATE")

        self.lock = MulticastLock(on_acquire=deny, on_release=on_release)
        self.sut = self._create_sut()

        await self.start_and_announce()

        assert_that(self.done_calls, is_(1))
        assert_that(self.lock.count, is_(0))
        assert_that(self.browsers, is_(empty()))
        on_release.assert_not_called()
        assert_that(self.sut.is_running, is_(False))

    async def test_failing_release_hook_still_calls_done(self):
        def fail():
            raise OSError("interface gone")

        self.lock = MulticastLock(on_release=fail)
        self.sut = self._create_sut()

        await self.start_and_announce()

        assert_that(self.done_calls, is_(1))
        assert_that(self.lock.count, is_(0))
        assert_that(self.aiozc.closed, is_(True))
        assert_that(self.sut.is_running, is_(False))
