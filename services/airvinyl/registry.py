"""
Device registry — the set of AirPlay receivers currently reachable.

A single writer (the discovery feed) replaces the whole mapping on every
change; readers grab the current mapping without locking, so a reader never
waits on the writer and never sees a half-applied update.
"""

import ipaddress
import logging
import threading
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Address:
    """Host (literal IP) and port of a receiver's RAOP service."""

    host: str
    port: int

    @classmethod
    def parse(cls, host: str, port) -> "Address":
        """Build an Address, validating the IP literal and port number."""
        ip = ipaddress.ip_address(host.strip().split("%", 1)[0])
        port = int(port)
        if not 0 < port <= 65535:
            raise ValueError(f"Invalid port: {port}")
        return cls(str(ip), port)

    @property
    def is_ipv6(self) -> bool:
        return ":" in self.host

    def __str__(self) -> str:
        if self.is_ipv6:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class Device:
    id: str
    name: str
    addr: Address

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "addr": str(self.addr)}


class DeviceRegistry:
    """Concurrently readable map of device id → Device."""

    def __init__(self):
        self._write_lock = threading.Lock()
        self._devices: Mapping[str, Device] = MappingProxyType({})

    def upsert(self, device_id: str, device: Device) -> bool:
        """Insert *device* unless *device_id* is already known.

        Browsers resend adds for devices they already reported, so a known
        id is left untouched.  Returns True if the device was inserted.
        """
        with self._write_lock:
            if device_id in self._devices:
                return False
            devices = dict(self._devices)
            devices[device_id] = device
            self._devices = MappingProxyType(devices)
        log.info("Found AirPlay device %s (%s) at %s", device.name, device_id, device.addr)
        return True

    def remove(self, device_id: str) -> Device | None:
        """Forget *device_id*.  Returns the removed device, or None if unknown."""
        with self._write_lock:
            if device_id not in self._devices:
                return None
            devices = dict(self._devices)
            device = devices.pop(device_id)
            self._devices = MappingProxyType(devices)
        log.info("Lost AirPlay device %s (%s)", device.name, device_id)
        return device

    def snapshot(self) -> Mapping[str, Device]:
        """Read-only view of all devices at the time of the call."""
        return self._devices

    def resolve(self, device_id: str) -> Device | None:
        return self._devices.get(device_id)

    def find_by_addr(self, addr: Address | None) -> Device | None:
        """Return the device reachable at *addr*, if any."""
        if addr is None:
            return None
        for device in self._devices.values():
            if device.addr == addr:
                return device
        return None

    def __contains__(self, device_id: str) -> bool:
        return device_id in self._devices

    def __len__(self) -> int:
        return len(self._devices)
