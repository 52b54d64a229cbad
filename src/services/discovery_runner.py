"""
Discovery Runner - runs discovery cycles once or on a fixed interval
"""

import asyncio
import logging
import time
from typing import List, Optional

from config_loader import DiscoveryConfig
from discovery.manager import ShellyDiscovery
from discovery.mdns_browser import DiscoveryError
from discovery.models import CycleResult

logger = logging.getLogger(__name__)

class DiscoveryRunner:
    """Runs the first cycle immediately, then every interval in periodic mode"""

    def __init__(self, config: DiscoveryConfig, discovery: Optional[ShellyDiscovery] = None):
        self.config = config
        self.discovery = discovery or ShellyDiscovery(config)
        self.running = False
        self.results: List[CycleResult] = []
        self._stop_event: Optional[asyncio.Event] = None

    async def run(self) -> List[CycleResult]:
        """
        Run discovery according to config.run_mode
        A DiscoveryError on the first cycle propagates; on later cycles it is
        logged and the next cycle is still scheduled.
        """
        self.running = True
        self._stop_event = asyncio.Event()

        try:
            self.results.append(await self.discovery.run_cycle())

            if self.config.run_mode != 'periodic':
                return self.results

            interval = self.config.interval_minutes * 60
            logger.info(f"Discovery scheduled every {self.config.interval_minutes:g} minutes")

            cycle_start_time = time.time() - self.results[-1].duration_seconds
            while self.running:
                elapsed_time = time.time() - cycle_start_time
                remaining_time = max(0, interval - elapsed_time)
                if elapsed_time > interval:
                    logger.warning(
                        f"Discovery cycle took {elapsed_time:.1f}s (>{interval:.0f}s interval) - "
                        f"starting next cycle immediately"
                    )

                if await self._wait_for_stop(remaining_time):
                    break

                cycle_start_time = time.time()
                try:
                    self.results.append(await self.discovery.run_cycle())
                except DiscoveryError as e:
                    logger.error(f"Discovery cycle failed: {e}")

            return self.results

        finally:
            self.running = False

    def stop(self):
        """Stop scheduling further cycles"""
        logger.info("Stopping discovery runner...")
        self.running = False
        if self._stop_event:
            self._stop_event.set()

    async def _wait_for_stop(self, timeout: float) -> bool:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False
