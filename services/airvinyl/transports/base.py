# AirVinyl
# Copyright (C) 2026 The AirVinyl contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Abstract base class for AirPlay transport clients.

A transport client is one connection to one receiver.  The relay drives it
through a fixed sequence:

    client = create_transport(addr, fmt, latency_frames, volume=40)
    await client.connect()              # initial volume applied here
    await client.set_metadata({...})    # best-effort
    while streaming:
        await client.accept_frames(n)   # admission / pacing
        await client.send_chunk(pcm)
    await client.teardown()

Every failure is reported as TransportError; failures are per client and
per operation.
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable

from ..audio import CD_FORMAT, AudioFormat
from ..registry import Address

log = logging.getLogger(__name__)


class TransportClient(ABC):
    """Interface every transport backend must implement."""

    type: str = ""

    def __init__(self, address: Address, fmt: AudioFormat = CD_FORMAT,
                 latency_frames: int = 44100, volume: int | None = None):
        self.address = address
        self.fmt = fmt
        self.latency_frames = latency_frames
        self.volume = volume
        self.connected = False

    @abstractmethod
    async def connect(self) -> None:
        """Open the session; apply ``self.volume`` before returning."""

    async def set_volume(self, level: int) -> None:
        """Set the receiver volume (0-100).

        Before ``connect`` the level is only remembered and applied once
        the session is up.
        """
        self.volume = level
        if self.connected:
            await self._apply_volume(level)

    @abstractmethod
    async def _apply_volume(self, level: int) -> None: ...

    async def set_metadata(self, fields: dict) -> None:
        """Describe the stream (title, artist, album).  Optional."""
        log.debug("%s: metadata not supported", self.type)

    @abstractmethod
    async def accept_frames(self, frames: int) -> None:
        """Wait until the receiver can take *frames* more frames."""

    @abstractmethod
    async def send_chunk(self, data: bytes) -> None: ...

    @abstractmethod
    async def teardown(self) -> None:
        """Close the session.  Safe to call more than once."""

    def __repr__(self):
        return f"<{type(self).__name__} {self.address}>"


TransportFactory = Callable[..., TransportClient]
