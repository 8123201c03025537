"""
Avahi browser — discovers RAOP receivers with ``avahi-browse``.

Runs ``avahi-browse --parsable --resolve _raop._tcp``, which prints one
semicolon-separated record per event:

  +;eth0;IPv4;001122334455@Kitchen;_raop._tcp;local
  =;eth0;IPv4;001122334455@Kitchen;_raop._tcp;local;Kitchen.local;192.168.1.20;7000;"tp=UDP" ...
  -;eth0;IPv4;001122334455@Kitchen;_raop._tcp;local

``+`` (found, unresolved) is ignored; ``=`` carries the resolved address so no
secondary lookup is needed.  IPv6 link-local ``=`` records are ignored as
well: the registry keeps the first address it sees, and a link-local one is
useless without its interface scope.  The same service is reported once per
interface and protocol, which the registry absorbs as duplicate adds.
"""

import ipaddress
import re

from ..errors import MalformedRecord
from ..registry import Address
from .base import DeviceAdded, DeviceBrowser, DeviceRemoved, DiscoveryEvent

SERVICE_TYPE = "_raop._tcp"

# avahi escapes unsafe characters in parsable output as \DDD (decimal) or \c
_ESCAPE_RE = re.compile(r"\\(\d{3}|.)")


def unescape(value: str) -> str:
    """Undo avahi-browse's escaping (``Living\\032Room`` → ``Living Room``)."""
    def _sub(match):
        code = match.group(1)
        return chr(int(code)) if code.isdigit() else code
    return _ESCAPE_RE.sub(_sub, value)


def display_name(service_name: str) -> str:
    """RAOP service names are ``<MAC>@<Name>``; show only the name part."""
    _, sep, name = service_name.partition("@")
    return name if sep and name else service_name


class AvahiBrowser(DeviceBrowser):
    type = "avahi"

    def command(self) -> list[str]:
        return ["avahi-browse", "--parsable", "--resolve", SERVICE_TYPE]

    def parse_line(self, line: str) -> DiscoveryEvent | None:
        parts = line.split(";")
        op = parts[0]
        if op not in ("+", "=", "-") or len(parts) < 6:
            raise MalformedRecord(line)

        device_id = unescape(parts[3])
        if op == "+":
            return None
        if op == "-":
            return DeviceRemoved(device_id)

        if len(parts) < 9:
            raise MalformedRecord(line, "truncated resolved record")
        try:
            addr = Address.parse(parts[7], parts[8])
        except ValueError as e:
            raise MalformedRecord(line, str(e)) from e
        if addr.is_ipv6 and ipaddress.ip_address(addr.host).is_link_local:
            # unreachable once the %scope is gone; wait for a routable record
            return None
        return DeviceAdded(
            device_id=device_id,
            name=display_name(device_id),
            addr=addr,
            host=unescape(parts[6]),
        )
