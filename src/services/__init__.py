"""
Services module for scheduled discovery runs
"""

from .discovery_runner import DiscoveryRunner

__all__ = ['DiscoveryRunner']
