"""
raop_play transport — libraop's command-line sender as a subprocess.

PCM is written to the binary's stdin; pipe backpressure paces the sender,
so admission is simply a stdin drain.  The volume is a start-up argument
only: changing it while streaming restarts the process, and metadata is not
supported at all.
"""

import asyncio
import logging

from ..errors import TransportError
from ..process import terminate
from .base import TransportClient

log = logging.getLogger(__name__)

DEFAULT_BINARY = "raop_play"


class RaopPlayTransport(TransportClient):
    type = "raop_play"

    # raop_play exits quickly when the receiver refuses the session
    startup_grace = 1.0
    # time allowed to exit on its own after stdin closes
    drain_timeout = 1.0

    def __init__(self, *args, binary: str = DEFAULT_BINARY, **kwargs):
        super().__init__(*args, **kwargs)
        self.binary = binary
        self._proc: asyncio.subprocess.Process | None = None

    def command(self) -> list[str]:
        cmd = [
            self.binary,
            "-port", str(self.address.port),
            "-latency", str(self.latency_frames),
        ]
        if self.volume is not None:
            cmd += ["-volume", str(self.volume)]
        cmd += [self.address.host, "-"]
        return cmd

    async def connect(self):
        cmd = self.command()
        try:
            self._proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            raise TransportError(f"Cannot start {self.binary}: {e}") from e

        await asyncio.sleep(self.startup_grace)
        if self._proc.returncode is not None:
            rc = self._proc.returncode
            self._proc = None
            raise TransportError(f"{self.binary} could not reach {self.address} (rc={rc})")
        self.connected = True
        log.info("Streaming to %s via %s (pid %d)", self.address, self.binary, self._proc.pid)

    async def _apply_volume(self, level: int):
        log.info("%s cannot change volume in flight — restarting at %d%%", self.binary, level)
        await self.teardown()
        await self.connect()

    def _stdin(self):
        proc = self._proc
        if proc is None or not self.connected:
            raise TransportError(f"Not connected to {self.address}")
        if proc.returncode is not None:
            raise TransportError(f"{self.binary} exited (rc={proc.returncode})")
        return proc.stdin

    async def accept_frames(self, frames: int):
        stdin = self._stdin()
        try:
            await stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise TransportError(f"{self.binary} stopped reading: {e}") from e

    async def send_chunk(self, data: bytes):
        stdin = self._stdin()
        try:
            stdin.write(data)
        except (BrokenPipeError, ConnectionResetError, RuntimeError) as e:
            raise TransportError(f"{self.binary} stopped reading: {e}") from e

    async def teardown(self):
        self.connected = False
        proc = self._proc
        if proc is None:
            return
        try:
            # EOF lets raop_play flush and send its own TEARDOWN
            if proc.stdin is not None and not proc.stdin.is_closing():
                proc.stdin.close()
            try:
                rc = await asyncio.wait_for(proc.wait(), self.drain_timeout)
            except asyncio.TimeoutError:
                rc = await terminate(proc, timeout=1.0)
        except asyncio.CancelledError:
            # the caller ran out of patience; never leave the process behind
            if proc.returncode is None:
                try:
                    proc.kill()
                except ProcessLookupError:
                    pass
            self._proc = None
            raise
        self._proc = None
        log.info("Disconnected from %s (rc=%s)", self.address, rc)
