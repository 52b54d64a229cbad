# HTTP Helper for Shelly device connections
# Local devices are always plain HTTP with basic auth

import aiohttp
import logging
from typing import Optional

logger = logging.getLogger(__name__)

def create_device_session(
    username: str,
    password: str,
    timeout_seconds: Optional[float] = None
) -> aiohttp.ClientSession:
    """
    Create aiohttp session for local Shelly devices (always HTTP, basic auth)
    timeout_seconds=None leaves the total request time unbounded
    """
    connector = aiohttp.TCPConnector(
        limit_per_host=2,           # status + settings for one device
        ssl=False,                  # Local devices use HTTP only
        force_close=True            # Force connection cleanup
    )

    return aiohttp.ClientSession(
        connector=connector,
        auth=aiohttp.BasicAuth(username, password),
        timeout=aiohttp.ClientTimeout(total=timeout_seconds)
    )
