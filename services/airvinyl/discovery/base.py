# AirVinyl
# Copyright (C) 2026 The AirVinyl contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Abstract base class for AirPlay device browsers.

A browser wraps a platform mDNS tool that keeps running and prints one line
per service appearing or disappearing.  Subclasses only describe the command
to run and how to turn one line into an event; the subprocess plumbing,
malformed-line handling and cleanup live here.

    class MyBrowser(DeviceBrowser):
        type = "mybrowser"

        def command(self) -> list[str]: ...
        def parse_line(self, line) -> DiscoveryEvent | None: ...

        # only when Add events carry no address yet
        async def resolve(self, event) -> Device: ...
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncIterator, Union

from ..errors import DiscoveryError, MalformedRecord, ResolveError
from ..process import terminate
from ..registry import Address, Device

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeviceAdded:
    """A service appeared.  *addr* is None until the name has been resolved."""

    device_id: str
    name: str
    addr: Address | None = None
    host: str | None = None


@dataclass(frozen=True)
class DeviceRemoved:
    device_id: str


DiscoveryEvent = Union[DeviceAdded, DeviceRemoved]


class DeviceBrowser(ABC):
    """Interface every discovery backend must implement."""

    type: str = ""

    def __init__(self):
        self._proc: asyncio.subprocess.Process | None = None

    @abstractmethod
    def command(self) -> list[str]: ...

    @abstractmethod
    def parse_line(self, line: str) -> DiscoveryEvent | None:
        """Turn one output line into an event.

        Return None for lines that carry no event (headers, banners);
        raise MalformedRecord for lines that should carry one but don't.
        """

    async def resolve(self, event: DeviceAdded) -> Device:
        """Turn an Add event into a reachable Device.

        Backends whose events are already resolved need no override.
        """
        if event.addr is None:
            raise ResolveError(f"No address for {event.device_id}")
        return Device(id=event.device_id, name=event.name, addr=event.addr)

    async def events(self) -> AsyncIterator[DiscoveryEvent]:
        """Yield events until the browser process exits."""
        cmd = self.command()
        try:
            self._proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stdin=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            raise DiscoveryError(f"Cannot start {cmd[0]}: {e}") from e

        proc = self._proc
        log.info("Browsing for AirPlay devices with %s (pid %d)", cmd[0], proc.pid)
        try:
            while True:
                try:
                    raw = await proc.stdout.readline()
                except ValueError as e:
                    log.warning("Skipping oversized %s output: %s", cmd[0], e)
                    continue
                if not raw:
                    break
                line = raw.decode(errors="replace").rstrip("\r\n")
                if not line.strip():
                    continue
                try:
                    event = self.parse_line(line)
                except MalformedRecord as e:
                    log.warning("Skipping %s output: %s", cmd[0], e)
                    continue
                if event is not None:
                    yield event
        finally:
            await self.close()
        log.warning("%s exited (rc=%s)", cmd[0], proc.returncode)

    async def close(self):
        """Stop the browser process if it is still running."""
        proc, self._proc = self._proc, None
        await terminate(proc)
