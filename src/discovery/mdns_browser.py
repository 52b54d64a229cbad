"""
mDNS / DNS-SD browsing with zeroconf
Resolved services are pushed as ServiceRecord objects onto an asyncio queue
"""

import asyncio
import logging
from typing import Optional, Set

from zeroconf import IPVersion, ServiceStateChange, Zeroconf
from zeroconf.asyncio import AsyncServiceBrowser, AsyncServiceInfo, AsyncZeroconf

from .models import ServiceRecord

logger = logging.getLogger(__name__)


class DiscoveryError(Exception):
    """Resolver or browse initialization failed"""


class MdnsBrowser:
    """Browses one service type and resolves every added instance to IPv4"""

    def __init__(self, resolve_timeout_ms: int = 3000):
        self.resolve_timeout_ms = resolve_timeout_ms
        self._aiozc: Optional[AsyncZeroconf] = None
        self._browser: Optional[AsyncServiceBrowser] = None
        self._queue: Optional[asyncio.Queue] = None
        self._pending: Set[asyncio.Task] = set()
        self._running = False

    async def start(self, service_type: str, queue: asyncio.Queue) -> None:
        """Start browsing; raises DiscoveryError when zeroconf cannot start"""
        self._queue = queue
        try:
            self._aiozc = AsyncZeroconf(ip_version=IPVersion.V4Only)
        except Exception as e:
            raise DiscoveryError(f"Failed to initialize resolver: {e}") from e

        try:
            self._browser = AsyncServiceBrowser(
                self._aiozc.zeroconf,
                [service_type],
                handlers=[self._on_service_state_change],
            )
        except Exception as e:
            await self._aiozc.async_close()
            self._aiozc = None
            raise DiscoveryError(f"Failed to browse: {e}") from e

        self._running = True
        logger.debug(f"Browsing {service_type}")

    async def stop(self) -> None:
        """Cancel the browse and any resolutions still in flight"""
        self._running = False
        for task in list(self._pending):
            task.cancel()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        self._pending.clear()

        if self._browser:
            await self._browser.async_cancel()
            self._browser = None
        if self._aiozc:
            await self._aiozc.async_close()
            self._aiozc = None

    def _on_service_state_change(
        self,
        zeroconf: Zeroconf,
        service_type: str,
        name: str,
        state_change: ServiceStateChange,
    ) -> None:
        if state_change is not ServiceStateChange.Added or not self._running:
            return
        task = asyncio.ensure_future(self._resolve(zeroconf, service_type, name))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _resolve(self, zeroconf: Zeroconf, service_type: str, name: str) -> None:
        info = AsyncServiceInfo(service_type, name)
        if not await info.async_request(zeroconf, self.resolve_timeout_ms):
            logger.debug(f"Could not resolve {name}")
            return

        record = self.record_from_info(info)
        if record is None:
            logger.debug(f"No IPv4 address advertised for {name}")
            return
        if self._running and self._queue is not None:
            self._queue.put_nowait(record)

    @staticmethod
    def record_from_info(info: AsyncServiceInfo) -> Optional[ServiceRecord]:
        addresses = info.parsed_addresses(IPVersion.V4Only)
        if not addresses:
            return None
        return ServiceRecord(
            name=info.name,
            hostname=info.server or info.name,
            address=addresses[0],
            port=info.port or 80,
        )
