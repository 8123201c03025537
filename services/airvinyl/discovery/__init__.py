"""
Pluggable AirPlay device browsers.

The factory function ``create_browser`` reads config.json and returns the
right backend for the platform.

Supported types:
  - ``avahi``  – ``avahi-browse`` (Linux, default everywhere but macOS)
  - ``dnssd``  – ``dns-sd`` (macOS default)
"""

import logging
import sys

from ..config import cfg
from .avahi import AvahiBrowser
from .base import DeviceAdded, DeviceBrowser, DeviceRemoved, DiscoveryEvent
from .dnssd import DnsSdBrowser

logger = logging.getLogger(__name__)

__all__ = [
    "AvahiBrowser",
    "DeviceAdded",
    "DeviceBrowser",
    "DeviceRemoved",
    "DiscoveryEvent",
    "DnsSdBrowser",
    "create_browser",
]


def default_browser_type() -> str:
    return "dnssd" if sys.platform == "darwin" else "avahi"


def create_browser() -> DeviceBrowser:
    """Create the device browser selected by config.json.

    Reads from config.json "discovery" section:
      type            – "avahi" or "dnssd" (default depends on platform)
      lookup_timeout  – seconds allowed per dns-sd resolve step (default 5)
    """
    browser_type = str(cfg("discovery", "type", default=default_browser_type())).lower()
    if browser_type == "dnssd":
        logger.info("Discovery: dns-sd")
        return DnsSdBrowser()
    if browser_type != "avahi":
        logger.warning("Unknown discovery.type '%s' — falling back to avahi", browser_type)
    logger.info("Discovery: avahi-browse")
    return AvahiBrowser()
