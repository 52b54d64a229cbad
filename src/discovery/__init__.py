"""
Discovery module for Shelly device discovery
"""

from .manager import ShellyDiscovery
from .models import ServiceRecord, DeviceStatus, DeviceSettings, DeviceQueryResult, CycleResult
from .device_client import DeviceQueryClient
from .mdns_browser import MdnsBrowser, DiscoveryError

__all__ = ['ShellyDiscovery', 'ServiceRecord', 'DeviceStatus', 'DeviceSettings',
           'DeviceQueryResult', 'CycleResult', 'DeviceQueryClient', 'MdnsBrowser', 'DiscoveryError']
