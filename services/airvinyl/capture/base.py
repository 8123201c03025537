# AirVinyl
# Copyright (C) 2026 The AirVinyl contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Abstract base classes for audio capture sources.

A capture source is a byte stream of raw interleaved PCM in the shared
``AudioFormat``.  Stopping it is the authoritative way to end a relay: once
stopped, reads fail instead of blocking.
"""

import asyncio
import logging
from abc import ABC, abstractmethod

from ..audio import CD_FORMAT, AudioFormat
from ..errors import CaptureError
from ..process import terminate

log = logging.getLogger(__name__)


class CaptureSource(ABC):
    """Interface every capture source must implement."""

    type: str = ""

    def __init__(self, fmt: AudioFormat = CD_FORMAT):
        self.fmt = fmt

    @property
    @abstractmethod
    def running(self) -> bool: ...

    @abstractmethod
    async def start(self) -> None: ...

    @abstractmethod
    async def read(self, n: int) -> bytes:
        """Read up to *n* bytes.  Returns b"" at end of stream."""

    @abstractmethod
    async def stop(self) -> None: ...


class SubprocessCapture(CaptureSource):
    """Capture source backed by a recorder binary writing PCM to stdout."""

    # A recorder that cannot open its device exits almost immediately
    startup_grace = 0.2

    def __init__(self, fmt: AudioFormat = CD_FORMAT, device: str | None = None):
        super().__init__(fmt)
        self.device = device
        self._proc: asyncio.subprocess.Process | None = None

    @abstractmethod
    def command(self) -> list[str]: ...

    @property
    def running(self) -> bool:
        return self._proc is not None and self._proc.returncode is None

    async def start(self):
        if self.running:
            return
        cmd = self.command()
        try:
            self._proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stdin=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            raise CaptureError(f"Cannot start {cmd[0]}: {e}") from e

        await asyncio.sleep(self.startup_grace)
        if self._proc.returncode is not None:
            rc = self._proc.returncode
            self._proc = None
            raise CaptureError(f"{cmd[0]} exited immediately (rc={rc})")
        log.info("Capturing audio with %s (pid %d)", cmd[0], self._proc.pid)

    async def read(self, n: int) -> bytes:
        if self._proc is None:
            raise CaptureError("Capture source is not running")
        return await self._proc.stdout.read(n)

    async def stop(self):
        proc, self._proc = self._proc, None
        if proc is None:
            return
        rc = await terminate(proc)
        log.info("Capture stopped (rc=%s)", rc)
