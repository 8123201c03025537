"""
Audio relay loop — moves PCM from the capture source to the receivers.

This task is the single owner of the capture source and the transport
clients.  Each cycle it applies a pending controller request (if any),
then reads one chunk and hands it to every live client.  The read races
against the controller's change signal, so a stalled recorder never holds
up a session update.

Failures are contained:
  - capture read error / end of stream → pipeline closed, session Idle
  - send error or timeout on a client  → that client dropped; the pipeline
    is closed when no client is left
  - setup error                        → pipeline closed, session Idle,
    the waiting ``update`` raises SessionError
"""

import asyncio
import logging
from typing import Callable

from .audio import CD_FORMAT, MAX_CHUNK_BYTES, AudioFormat
from .capture import CaptureSource, create_capture_source
from .config import cfg
from .controller import Session, StreamController, UpdateRequest
from .errors import SessionError, TransportError
from .registry import Address
from .transports import TransportClient, TransportFactory, create_transport

log = logging.getLogger(__name__)


def _reason(e: BaseException) -> str:
    return str(e) or type(e).__name__


class AudioRelay:
    def __init__(self, controller: StreamController,
                 capture_factory: Callable[[AudioFormat], CaptureSource] = create_capture_source,
                 transport_factory: TransportFactory = create_transport,
                 fmt: AudioFormat = CD_FORMAT,
                 latency_frames: int | None = None,
                 connect_timeout: float | None = None,
                 send_timeout: float | None = None,
                 teardown_timeout: float | None = None,
                 metadata: dict | None = None):
        self.controller = controller
        self.capture_factory = capture_factory
        self.transport_factory = transport_factory
        self.fmt = fmt
        self.latency_frames = latency_frames or cfg("transport", "latency_frames", default=44100)
        self.connect_timeout = connect_timeout or cfg("transport", "connect_timeout", default=10)
        self.send_timeout = send_timeout or cfg("transport", "send_timeout", default=5)
        self.teardown_timeout = teardown_timeout or cfg("transport", "teardown_timeout", default=5)
        self.metadata = metadata if metadata is not None else cfg("metadata", default={})

        self.capture: CaptureSource | None = None
        self.clients: dict[Address, TransportClient] = {}
        self._read_task: asyncio.Task | None = None
        self._task: asyncio.Task | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run(), name="audio-relay")
        return self._task

    async def stop(self):
        task, self._task = self._task, None
        if task:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def run(self) -> None:
        log.info("Audio relay started")
        try:
            while True:
                await self.step()
        finally:
            await self._close_pipeline()
            self.controller.fail_pending(SessionError("AirVinyl is shutting down"))
            self._publish_idle()
            log.info("Audio relay stopped")

    async def step(self) -> None:
        """Run one cycle of the loop."""
        request = self.controller.take_request()
        if request is not None:
            await self._apply(request)

        if self.capture is None:
            if not self.controller.changed.is_set():
                await self.controller.changed.wait()
            return

        chunk = await self._next_chunk()
        if chunk:
            await self._relay(chunk)

    # ------------------------------------------------------------------
    # Session changes
    # ------------------------------------------------------------------

    async def _apply(self, request: UpdateRequest):
        desired = request.session
        active = self.controller.active
        try:
            if desired.target != active.target or self.capture is None:
                await self._close_pipeline()
                if desired.target is not None:
                    await self._open_pipeline(desired)
            elif desired.volume is not None and desired.volume != active.volume:
                for client in self.clients.values():
                    await asyncio.wait_for(client.set_volume(desired.volume), self.send_timeout)
                log.info("Volume: %d%%", desired.volume)
        except asyncio.CancelledError:
            if not request.future.done():
                request.future.set_exception(SessionError("AirVinyl is shutting down"))
            raise
        except Exception as e:
            # any setup failure leaves the session Idle
            log.error("Could not stream to %s: %s", desired.target, _reason(e))
            await self._close_pipeline()
            self.controller.set_active(Session(None, desired.volume))
            error = SessionError(f"Could not stream to {desired.target}: {_reason(e)}")
            error.__cause__ = e
            if not request.future.done():
                request.future.set_exception(error)
            return

        self.controller.set_active(desired)
        if not request.future.done():
            request.future.set_result(None)

    async def _open_pipeline(self, session: Session):
        capture = self.capture_factory(self.fmt)
        await capture.start()
        self.capture = capture

        client = self.transport_factory(session.target, self.fmt, self.latency_frames,
                                        volume=session.volume)
        self.clients[session.target] = client
        try:
            await asyncio.wait_for(client.connect(), self.connect_timeout)
        except asyncio.TimeoutError as e:
            raise TransportError(f"Connect to {session.target} timed out") from e

        try:
            await asyncio.wait_for(client.set_metadata(dict(self.metadata)), self.send_timeout)
        except Exception as e:
            log.warning("Could not set metadata on %s: %s", session.target, _reason(e))

    async def _close_pipeline(self):
        task, self._read_task = self._read_task, None
        if task is not None:
            task.cancel()
            await asyncio.wait({task})
            if not task.cancelled() and task.exception() is not None:
                log.debug("Pending capture read failed: %s", _reason(task.exception()))

        capture, self.capture = self.capture, None
        if capture is not None:
            try:
                await capture.stop()
            except Exception as e:
                log.warning("Could not stop capture: %s", _reason(e))

        clients, self.clients = self.clients, {}
        for client in clients.values():
            await self._teardown(client)

    async def _teardown(self, client: TransportClient):
        try:
            await asyncio.wait_for(client.teardown(), self.teardown_timeout)
        except Exception as e:
            log.warning("Teardown of %s failed: %s", client.address, _reason(e))

    def _publish_idle(self):
        self.controller.set_active(Session(None, self.controller.active.volume))

    # ------------------------------------------------------------------
    # Steady state
    # ------------------------------------------------------------------

    async def _next_chunk(self) -> bytes | None:
        """Next chunk from capture, or None when woken by the controller."""
        if self._read_task is None:
            self._read_task = asyncio.create_task(self.capture.read(MAX_CHUNK_BYTES))
        waker = asyncio.create_task(self.controller.changed.wait())
        try:
            await asyncio.wait({self._read_task, waker}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waker.cancel()

        if not self._read_task.done():
            return None
        task, self._read_task = self._read_task, None
        try:
            chunk = task.result()
        except Exception as e:
            log.error("Capture failed: %s", _reason(e))
            await self._capture_lost()
            return None
        if not chunk:
            log.warning("Capture source ended")
            await self._capture_lost()
            return None
        return chunk

    async def _capture_lost(self):
        await self._close_pipeline()
        self._publish_idle()

    async def _relay(self, chunk: bytes):
        frames = self.fmt.frames(len(chunk))
        for addr, client in list(self.clients.items()):
            try:
                await asyncio.wait_for(client.accept_frames(frames), self.send_timeout)
                await asyncio.wait_for(client.send_chunk(chunk), self.send_timeout)
            except Exception as e:
                log.warning("Dropping AirPlay client %s: %s", addr, _reason(e))
                del self.clients[addr]
                await self._teardown(client)

        if not self.clients:
            log.warning("No AirPlay clients left — stopping capture")
            await self._close_pipeline()
            self._publish_idle()
