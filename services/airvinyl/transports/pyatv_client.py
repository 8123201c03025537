"""
pyatv transport — in-process RAOP client.

Connects with pyatv's RAOP protocol and feeds live PCM into
``stream.stream_file`` through an asyncio.StreamReader.  The stream is
framed as an open-ended WAV file so pyatv can identify the format.  pyatv
pulls from the reader as fast as it likes, so admission is paced locally
with a frame clock holding at most ``latency_frames`` in flight.
"""

import asyncio
import logging

from ..audio import FramePacer, wav_header
from ..errors import TransportError
from .base import TransportClient

log = logging.getLogger(__name__)

METADATA_FIELDS = ("title", "artist", "album")


class PyatvTransport(TransportClient):
    type = "pyatv"

    def __init__(self, *args, scan_timeout: float = 5.0, **kwargs):
        super().__init__(*args, **kwargs)
        self.scan_timeout = scan_timeout
        self._atv = None
        self._reader: asyncio.StreamReader | None = None
        self._stream_task: asyncio.Task | None = None
        self._metadata = None
        self._pacer = FramePacer(self.fmt.sample_rate, self.latency_frames)

    async def connect(self):
        import pyatv
        from pyatv.const import Protocol

        loop = asyncio.get_running_loop()
        try:
            configs = await pyatv.scan(loop, hosts=[self.address.host],
                                       protocol=Protocol.RAOP, timeout=self.scan_timeout)
        except Exception as e:
            raise TransportError(f"Scan of {self.address.host} failed: {e}") from e
        if not configs:
            raise TransportError(f"No AirPlay receiver answered at {self.address}")

        config = configs[0]
        service = config.get_service(Protocol.RAOP)
        if service is None:
            raise TransportError(f"{config.name} has no RAOP service")
        if service.port != self.address.port:
            log.debug("%s: RAOP on port %d, discovery said %d",
                      config.name, service.port, self.address.port)

        try:
            self._atv = await pyatv.connect(config, loop, protocol=Protocol.RAOP)
        except Exception as e:
            raise TransportError(f"Connect to {self.address} failed: {e}") from e

        self._reader = asyncio.StreamReader()
        self._reader.feed_data(wav_header(self.fmt))
        self._pacer.reset()
        self.connected = True
        log.info("Connected to %s (%s)", config.name, self.address)
        if self.volume is not None:
            await self._apply_volume(self.volume)

    async def _apply_volume(self, level: int):
        try:
            await self._atv.audio.set_volume(float(level))
        except Exception as e:
            raise TransportError(f"Set volume on {self.address} failed: {e}") from e
        log.info("-> %s volume: %d%%", self.address, level)

    async def set_metadata(self, fields: dict):
        from pyatv.interface import MediaMetadata

        if self._stream_task is not None:
            raise TransportError("Metadata must be set before streaming starts")
        self._metadata = MediaMetadata(
            **{k: v for k, v in fields.items() if k in METADATA_FIELDS and v})

    def _check_stream(self):
        if not self.connected:
            raise TransportError(f"Not connected to {self.address}")
        task = self._stream_task
        if task is not None and task.done():
            exc = None if task.cancelled() else task.exception()
            raise TransportError(f"Stream to {self.address} ended: {exc or 'receiver closed it'}")

    async def accept_frames(self, frames: int):
        self._check_stream()
        await self._pacer.wait(frames)

    async def send_chunk(self, data: bytes):
        self._check_stream()
        if self._stream_task is None:
            self._stream_task = asyncio.create_task(self._stream())
        self._reader.feed_data(data)

    async def _stream(self):
        await self._atv.stream.stream_file(self._reader, metadata=self._metadata)

    async def teardown(self):
        self.connected = False
        if self._reader is not None:
            self._reader.feed_eof()
            self._reader = None

        task, self._stream_task = self._stream_task, None
        if task is not None and not task.done():
            task.cancel()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                log.debug("Stream to %s ended with %s", self.address, e)

        atv, self._atv = self._atv, None
        if atv is not None:
            pending = atv.close()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
            log.info("Disconnected from %s", self.address)
