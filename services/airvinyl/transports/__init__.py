"""
AirPlay transport clients.

Supported types:
  - ``pyatv``      – in-process RAOP client using pyatv (default)
  - ``raop_play``  – libraop's ``raop_play`` binary fed over stdin

``create_transport`` reads the "transport" section of config.json:
  type    – "pyatv" or "raop_play"
  binary  – path to raop_play (raop_play backend only)
"""

import logging

from ..audio import CD_FORMAT, AudioFormat
from ..config import cfg
from ..registry import Address
from .base import TransportClient, TransportFactory
from .pyatv_client import PyatvTransport
from .raop_play import RaopPlayTransport

logger = logging.getLogger(__name__)

__all__ = [
    "PyatvTransport",
    "RaopPlayTransport",
    "TransportClient",
    "TransportFactory",
    "create_transport",
]


def create_transport(address: Address, fmt: AudioFormat = CD_FORMAT,
                     latency_frames: int = 44100,
                     volume: int | None = None) -> TransportClient:
    """Create an unconnected transport client for *address*."""
    transport_type = str(cfg("transport", "type", default="pyatv")).lower()
    if transport_type == "raop_play":
        binary = cfg("transport", "binary", default="raop_play")
        logger.debug("Transport: %s -> %s", binary, address)
        return RaopPlayTransport(address, fmt, latency_frames, volume=volume, binary=binary)
    if transport_type != "pyatv":
        logger.warning("Unknown transport.type '%s' — falling back to pyatv", transport_type)
    logger.debug("Transport: pyatv -> %s", address)
    return PyatvTransport(address, fmt, latency_frames, volume=volume,
                          scan_timeout=cfg("transport", "connect_timeout", default=10) / 2)
