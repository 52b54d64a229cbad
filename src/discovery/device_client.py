"""
HTTP client for Shelly /status and /settings endpoints
"""

import json
import logging
import aiohttp
from typing import Any, List, Optional, Tuple
from .models import DeviceStatus, DeviceSettings, DeviceQueryResult

from http_helper import create_device_session

logger = logging.getLogger(__name__)

class DeviceQueryClient:
    """Fetches and decodes the status and settings documents of one device"""

    def __init__(self, username: str, password: str, request_timeout: Optional[float] = None):
        self.username = username
        self.password = password
        self.request_timeout = request_timeout

    @staticmethod
    def base_url(address: str, port: int = 80) -> str:
        if port in (80, 0, None):
            return f"http://{address}"
        return f"http://{address}:{port}"

    async def query(self, address: str, port: int = 80) -> DeviceQueryResult:
        """
        GET /status then /settings with basic auth
        Failures never raise; they are collected in result.errors and the
        affected document stays zero-valued
        """
        base_url = self.base_url(address, port)
        errors: List[str] = []

        try:
            async with create_device_session(self.username, self.password, self.request_timeout) as session:
                status_doc = await self._http_get(session, f"{base_url}/status", errors)
                settings_doc = await self._http_get(session, f"{base_url}/settings", errors)
        except Exception as e:
            # Session setup failed before any request went out
            errors.append(f"session error for {base_url}: {e}")
            status_doc, settings_doc = None, None

        result = DeviceQueryResult(
            address=address,
            status=DeviceStatus.from_dict(status_doc),
            settings=DeviceSettings.from_dict(settings_doc),
            errors=errors,
        )
        if errors:
            logger.debug(f"Device query for {address} finished with errors: {'; '.join(errors)}")
        return result

    async def _http_get(self, session: aiohttp.ClientSession, url: str, errors: List[str]) -> Optional[Any]:
        """Make HTTP GET request and return the decoded JSON body"""
        try:
            async with session.get(url) as response:
                body = await response.read()
                if response.status != 200:
                    errors.append(f"HTTP {response.status} for {url}")
                    return None
                document, error = self._decode(body)
                if error:
                    errors.append(f"invalid JSON from {url}: {error}")
                elif not isinstance(document, dict):
                    errors.append(f"unexpected JSON document from {url}")
                return document
        except Exception as e:
            errors.append(f"HTTP GET failed for {url}: {e.__class__.__name__}: {e}")
            return None

    @staticmethod
    def _decode(body: bytes) -> Tuple[Optional[Any], Optional[str]]:
        try:
            return json.loads(body.decode('utf-8', errors='replace')), None
        except ValueError as e:
            return None, str(e)
