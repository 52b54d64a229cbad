"""
Shared fixtures: in-process mock Shelly devices and a scripted mDNS browser.
"""

import asyncio
import base64
from typing import Dict, List, Optional

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import unused_port

from config_loader import DiscoveryConfig
from discovery.device_client import DeviceQueryClient
from discovery.mdns_browser import DiscoveryError
from discovery.models import ServiceRecord


STATUS_DOC = {"wifi_sta": {"rssi": -50}, "tmp": {"tC": 22.3}}
SETTINGS_DOC = {"wifi_sta": {"ipv4_method": "dhcp", "gw": "192.168.1.1", "mask": "255.255.255.0"}}


class MockShellyServer:
    """Serves /{address}/status and /{address}/settings for registered devices."""

    def __init__(self, username: str = "admin", password: str = "admin"):
        self.app = web.Application()
        self.runner = None
        self.site = None
        self.port = None
        self.expected_auth = "Basic " + base64.b64encode(
            f"{username}:{password}".encode()
        ).decode()

        # address -> {"status": body, "settings": body}; bodies may be raw text
        self.devices: Dict[str, Dict] = {}
        self.requests: List[str] = []
        self.auth_headers: List[Optional[str]] = []
        self.delay = 0.0

        self.app.router.add_get('/{address}/{document}', self.handle)

    def add_device(self, address: str, status=None, settings=None):
        self.devices[address] = {
            "status": STATUS_DOC if status is None else status,
            "settings": SETTINGS_DOC if settings is None else settings,
        }

    async def handle(self, request):
        address = request.match_info['address']
        document = request.match_info['document']
        self.requests.append(f"{address}/{document}")
        self.auth_headers.append(request.headers.get('Authorization'))

        if self.delay:
            await asyncio.sleep(self.delay)

        if request.headers.get('Authorization') != self.expected_auth:
            return web.Response(status=401, text="401 Unauthorized")

        device = self.devices.get(address)
        if device is None or document not in device:
            return web.Response(status=404, text="Not Found")

        body = device[document]
        if isinstance(body, str):
            return web.Response(text=body, content_type="text/plain")
        return web.json_response(body)

    async def start(self):
        self.port = unused_port()
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        self.site = web.TCPSite(self.runner, '127.0.0.1', self.port)
        await self.site.start()

    async def stop(self):
        if self.site:
            await self.site.stop()
        if self.runner:
            await self.runner.cleanup()


class RoutedClient(DeviceQueryClient):
    """DeviceQueryClient that sends every device address to the mock server."""

    def __init__(self, server: MockShellyServer, unreachable=(), **kwargs):
        kwargs.setdefault("username", "admin")
        kwargs.setdefault("password", "admin")
        super().__init__(**kwargs)
        self.server = server
        self.unreachable = set(unreachable)
        self.closed_port = unused_port()
        self.queried: List[str] = []

    def base_url(self, address, port=80):
        self.queried.append(address)
        if address in self.unreachable:
            return f"http://127.0.0.1:{self.closed_port}/{address}"
        return f"http://127.0.0.1:{self.server.port}/{address}"


class FakeBrowser:
    """Pushes scripted records onto the queue instead of browsing the network."""

    def __init__(self, records=(), delay: float = 0.0, fail: bool = False):
        self.records = list(records)
        self.delay = delay
        self.fail = fail
        self.service_type = None
        self.started = 0
        self.stopped = 0
        self._task = None

    async def start(self, service_type, queue):
        if self.fail:
            raise DiscoveryError("Failed to initialize resolver: no network")
        self.service_type = service_type
        self.started += 1
        self._task = asyncio.ensure_future(self._feed(queue))

    async def _feed(self, queue):
        for record in self.records:
            if self.delay:
                await asyncio.sleep(self.delay)
            queue.put_nowait(record)

    async def stop(self):
        self.stopped += 1
        if self._task:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)


SHELLY_RECORD = ServiceRecord(
    name="shelly1-ABCDEF._http._tcp.local.",
    hostname="shelly1-ABCDEF.local.",
    address="192.168.1.10",
)
WORKSTATION_RECORD = ServiceRecord(
    name="workstation._http._tcp.local.",
    hostname="workstation.local.",
    address="192.168.1.20",
)


@pytest.fixture
def discovery_config():
    """Short browse window so cycles finish quickly."""
    return DiscoveryConfig(wait_seconds=1.0)


@pytest_asyncio.fixture
async def mock_server():
    server = MockShellyServer()
    await server.start()
    yield server
    await server.stop()
