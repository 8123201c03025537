"""In-memory stand-ins for the capture, transport and browser backends."""

import asyncio

from airvinyl.audio import CD_FORMAT
from airvinyl.capture import CaptureSource
from airvinyl.discovery import DeviceBrowser
from airvinyl.errors import CaptureError, ResolveError, TransportError
from airvinyl.registry import Address, Device
from airvinyl.transports import TransportClient

KITCHEN = Address("192.168.1.20", 7000)
STUDY = Address("192.168.1.21", 7000)
CHUNK = b"\x01\x00" * 704  # 352 stereo frames


async def hang():
    """Block until cancelled."""
    await asyncio.Event().wait()


class FakeCapture(CaptureSource):
    """Capture source fed by the test through ``feed``."""

    type = "fake"

    def __init__(self, fmt=CD_FORMAT, journal=None, fail_start=False):
        super().__init__(fmt)
        self.journal = journal if journal is not None else []
        self.fail_start = fail_start
        self.started = False
        self.stopped = False
        self._queue = asyncio.Queue()

    @property
    def running(self):
        return self.started and not self.stopped

    async def start(self):
        if self.fail_start:
            raise CaptureError("hw:1,0: no such device")
        self.started = True
        self.journal.append(("capture", "start"))

    async def read(self, n):
        if not self.running:
            raise CaptureError("not running")
        item = await self._queue.get()
        if isinstance(item, Exception):
            raise item
        return item[:n]

    async def stop(self):
        self.stopped = True
        self.journal.append(("capture", "stop"))

    def feed(self, item):
        self._queue.put_nowait(item)


class FakeTransport(TransportClient):
    """Transport client that records every operation in a shared journal."""

    type = "fake"

    def __init__(self, address, fmt=CD_FORMAT, latency_frames=44100, volume=None,
                 journal=None, fail_connect=False, fail_metadata=False):
        super().__init__(address, fmt, latency_frames, volume=volume)
        self.journal = journal if journal is not None else []
        self.fail_connect = fail_connect
        self.fail_metadata = fail_metadata
        self.fail_send = False
        self.hang_connect = False
        self.hang_send = False
        self.hang_teardown = False
        self.ops = []
        self.sent = []
        self.torn_down = False

    def _record(self, *op):
        self.ops.append(op)
        self.journal.append((self.address,) + op)

    async def connect(self):
        if self.hang_connect:
            await hang()
        if self.fail_connect:
            raise TransportError(f"{self.address} refused the session")
        self.connected = True
        self._record("connect", self.volume)

    async def _apply_volume(self, level):
        self._record("volume", level)

    async def set_metadata(self, fields):
        if self.fail_metadata:
            raise TransportError("metadata rejected")
        self._record("metadata", fields.get("title"))

    async def accept_frames(self, frames):
        if self.hang_send:
            await hang()
        if self.fail_send:
            raise TransportError("connection reset")

    async def send_chunk(self, data):
        self.sent.append(data)
        self._record("send", len(data))

    async def teardown(self):
        self.connected = False
        self.torn_down = True
        self._record("teardown")
        if self.hang_teardown:
            await hang()


class Backends:
    """Capture and transport factories handing out fakes."""

    def __init__(self):
        self.journal = []
        self.captures = []
        self.transports = []
        self.fail_capture = False
        self.fail_connect = False
        self.fail_metadata = False
        self.hang_connect = False
        self.hang_teardown = False

    def capture(self, fmt):
        source = FakeCapture(fmt, journal=self.journal, fail_start=self.fail_capture)
        self.captures.append(source)
        return source

    def transport(self, address, fmt, latency_frames, volume=None):
        client = FakeTransport(address, fmt, latency_frames, volume=volume,
                               journal=self.journal, fail_connect=self.fail_connect,
                               fail_metadata=self.fail_metadata)
        client.hang_connect = self.hang_connect
        client.hang_teardown = self.hang_teardown
        self.transports.append(client)
        return client


class ScriptedBrowser(DeviceBrowser):
    """Browser replaying a fixed list of events."""

    type = "scripted"

    def __init__(self, events=(), addresses=None, error=None):
        super().__init__()
        self.script = list(events)
        self.addresses = addresses or {}
        self.error = error
        self.resolved = []
        self.closed = False

    def command(self):
        return ["true"]

    def parse_line(self, line):
        return None

    async def events(self):
        for event in self.script:
            yield event
        if self.error is not None:
            raise self.error

    async def resolve(self, event):
        self.resolved.append(event.device_id)
        if event.addr is not None:
            return await super().resolve(event)
        if event.device_id not in self.addresses:
            raise ResolveError(f"no answer for {event.device_id}")
        return Device(event.device_id, event.name, self.addresses[event.device_id])

    async def close(self):
        self.closed = True


async def wait_until(predicate, timeout=2.0):
    """Poll *predicate* until it holds; fail the test after *timeout*."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)
