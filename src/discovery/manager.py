"""
Discovery orchestrator: browse, filter, query each Shelly, print the report
"""

import asyncio
import logging
import sys
import time
from typing import Optional, TextIO

from .models import ServiceRecord, CycleResult
from .device_client import DeviceQueryClient
from .mdns_browser import MdnsBrowser

from config_loader import DiscoveryConfig
from report_formatter import HEADER_ROW, format_row

logger = logging.getLogger(__name__)

class ShellyDiscovery:
    """Runs discovery cycles: one browser producer, one row-printing worker"""

    def __init__(
        self,
        config: DiscoveryConfig,
        client: Optional[DeviceQueryClient] = None,
        browser: Optional[MdnsBrowser] = None,
        output: Optional[TextIO] = None,
    ):
        self.config = config
        self.client = client or DeviceQueryClient(
            config.username, config.password, config.request_timeout
        )
        self.browser = browser or MdnsBrowser()
        self.output = output or sys.stdout
        self._window_closed = False

    def matches(self, record: ServiceRecord) -> bool:
        return self.config.name_filter in record.host_label

    async def run_cycle(self) -> CycleResult:
        """
        One discovery cycle
        Prints the header, browses for wait_seconds while the worker prints
        one row per matching device, then prints a blank line.
        Raises DiscoveryError if the browse cannot be started.
        """
        logger.info("Shelly mDNS Discovery in progress..")
        start_time = time.time()
        result = CycleResult()
        queue: asyncio.Queue = asyncio.Queue()
        self._window_closed = False

        self._emit(HEADER_ROW)

        await self.browser.start(self.config.service_type, queue)
        worker = asyncio.create_task(self._process_records(queue, result))

        try:
            await asyncio.wait({worker}, timeout=self.config.wait_seconds)
        except asyncio.CancelledError:
            worker.cancel()
            raise
        finally:
            self._window_closed = True
            await self.browser.stop()
            queue.put_nowait(None)

        # Let the device in flight finish; anything still queued is dropped
        await worker
        while not queue.empty():
            if queue.get_nowait() is not None:
                result.records_dropped += 1
        if result.records_dropped:
            logger.debug(f"Dropped {result.records_dropped} records received after the browse window")

        self._emit("")
        result.duration_seconds = time.time() - start_time
        logger.info(
            f"mDNS Discovery finished: {result.rows_emitted} rows from "
            f"{result.devices_matched} devices ({result.records_seen} services) "
            f"in {result.duration_seconds:.1f}s"
        )
        return result

    async def _process_records(self, queue: asyncio.Queue, result: CycleResult) -> None:
        while True:
            record = await queue.get()
            if record is None or self._window_closed:
                if record is not None:
                    result.records_dropped += 1
                return

            result.records_seen += 1
            if not self.matches(record):
                logger.debug(f"Ignoring {record.hostname} ({record.address})")
                continue

            result.devices_matched += 1
            await self._report_device(record, result)

    async def _report_device(self, record: ServiceRecord, result: CycleResult) -> None:
        query = await self.client.query(record.address, record.port)

        if not query.ok:
            result.devices_with_errors += 1
            if self.config.on_error == 'skip':
                result.rows_skipped += 1
                logger.warning(
                    f"Skipping {record.host_label} ({record.address}): {'; '.join(query.errors)}"
                )
                return
            logger.debug(f"Reporting {record.host_label} ({record.address}) with incomplete data")

        row = format_row(record.host_label, record.address, query.status, query.settings)
        self._emit(row.render())
        result.rows_emitted += 1

    def _emit(self, line: str) -> None:
        print(line, file=self.output, flush=True)
