"""
dns-sd browser — discovers RAOP receivers with macOS's ``dns-sd`` tool.

``dns-sd -B _raop`` only reports instance names:

  Browsing for _raop._tcp
  DATE: ---Fri 16 Oct 2026---
  23:04:05.123  ...STARTING...
  Timestamp     A/R    Flags  if Domain               Service Type         Instance Name
  23:04:05.456  Add        3   4 local.               _raop._tcp.          001122334455@Kitchen
  23:09:12.001  Rmv        0   4 local.               _raop._tcp.          001122334455@Kitchen

so every Add is resolved in two steps: ``dns-sd -L <name> _raop`` gives the
host and port ("... can be reached at Kitchen.local.:7000"), and
``dns-sd -G v4 <host>`` gives the IPv4 address.  Neither lookup ever exits
on its own, so both are bounded by a timeout and killed afterwards.
"""

import asyncio
import ipaddress
import logging
import re

from ..config import cfg
from ..errors import MalformedRecord, ResolveError
from ..process import terminate
from ..registry import Address, Device
from .avahi import display_name
from .base import DeviceAdded, DeviceBrowser, DeviceRemoved, DiscoveryEvent

log = logging.getLogger(__name__)

SERVICE_TYPE = "_raop"

_TIMESTAMP_RE = re.compile(r"^\d{1,2}:\d{2}:\d{2}\.\d+\s+")
_RECORD_RE = re.compile(
    r"^\S+\s+(?P<op>\S+)\s+\d+\s+\d+\s+\S+\s+\S+\s+(?P<name>\S.*?)\s*$"
)
_REACHED_AT = " can be reached at "


def parse_reached_at(line: str) -> tuple[str, int] | None:
    """Extract (host, port) from a ``dns-sd -L`` result line."""
    if _REACHED_AT not in line:
        return None
    target = line.split(_REACHED_AT, 1)[1].split()[0]
    host, sep, port = target.rpartition(":")
    if not sep or not host or not port.isdigit():
        raise MalformedRecord(line, "bad service target")
    return host, int(port)


def parse_address_record(line: str) -> str | None:
    """Extract the IP literal from a ``dns-sd -G`` Add line."""
    tokens = line.split()
    if len(tokens) < 3 or tokens[1] != "Add":
        return None
    for token in tokens[2:]:
        try:
            return str(ipaddress.ip_address(token))
        except ValueError:
            continue
    return None


class DnsSdBrowser(DeviceBrowser):
    type = "dnssd"

    def __init__(self, lookup_timeout: float | None = None):
        super().__init__()
        self.lookup_timeout = float(
            lookup_timeout if lookup_timeout is not None
            else cfg("discovery", "lookup_timeout", default=5)
        )

    def command(self) -> list[str]:
        return ["dns-sd", "-B", SERVICE_TYPE]

    def parse_line(self, line: str) -> DiscoveryEvent | None:
        if not _TIMESTAMP_RE.match(line):
            return None  # banner, DATE: or column header
        match = _RECORD_RE.match(line)
        if match is None:
            if "..." in line:
                return None  # ...STARTING...
            raise MalformedRecord(line)

        op, name = match.group("op"), match.group("name")
        if op == "Add":
            return DeviceAdded(device_id=name, name=display_name(name))
        if op == "Rmv":
            return DeviceRemoved(name)
        raise MalformedRecord(line, f"invalid dns-sd op {op!r}")

    async def resolve(self, event: DeviceAdded) -> Device:
        if event.addr is not None:
            return await super().resolve(event)
        host, port = await self._lookup(
            ["-L", event.device_id, SERVICE_TYPE], parse_reached_at)
        ip = await self._lookup(["-G", "v4", host], parse_address_record)
        return Device(id=event.device_id, name=event.name, addr=Address.parse(ip, port))

    async def _lookup(self, args: list[str], parse):
        """Run ``dns-sd *args*`` until *parse* returns a result for a line."""
        try:
            proc = await asyncio.create_subprocess_exec(
                "dns-sd", *args,
                stdout=asyncio.subprocess.PIPE,
                stdin=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            raise ResolveError(f"Cannot start dns-sd: {e}") from e

        async def _scan():
            while True:
                raw = await proc.stdout.readline()
                if not raw:
                    return None
                result = parse(raw.decode(errors="replace").rstrip("\r\n"))
                if result is not None:
                    return result

        try:
            result = await asyncio.wait_for(_scan(), self.lookup_timeout)
        except asyncio.TimeoutError:
            raise ResolveError(
                f"dns-sd {' '.join(args)} gave no answer within {self.lookup_timeout:.0f}s"
            ) from None
        except MalformedRecord as e:
            raise ResolveError(str(e)) from e
        finally:
            await terminate(proc, timeout=1.0)

        if result is None:
            raise ResolveError(f"dns-sd {' '.join(args)} exited without an answer")
        log.debug("dns-sd %s -> %s", " ".join(args), result)
        return result
