"""
Streaming session controller.

The controller owns the *desired* session and hands it to the relay loop,
which is the only place that starts capture or opens transport
connections.  ``update`` publishes the new desired session, wakes the relay
and waits for it to report whether the session could be established.

Two states:
    Idle    active.target is None — no capture, no transport clients
    Active  active.target is set  — capture running, one client per target
"""

import asyncio
import logging
from dataclasses import dataclass

from .config import cfg
from .errors import SessionError
from .registry import Address
from .watchdog import sd_status

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Session:
    target: Address | None = None
    volume: int | None = None

    def describe(self) -> str:
        if self.target is None:
            return "Idle"
        if self.volume is None:
            return f"Streaming to {self.target}"
        return f"Streaming to {self.target} at {self.volume}%"


IDLE = Session()


@dataclass
class UpdateRequest:
    session: Session
    future: asyncio.Future


def _consume_result(fut: asyncio.Future):
    # Nobody awaits a future whose caller gave up; mark its exception retrieved
    if not fut.cancelled():
        fut.exception()


class StreamController:
    def __init__(self, update_timeout: float | None = None, volume_max: int | None = None):
        if update_timeout is None:
            update_timeout = cfg("session", "update_timeout", default=30)
        if volume_max is None:
            volume_max = cfg("volume", "max", default=100)
        self.update_timeout = float(update_timeout)
        self.volume_max = int(volume_max)

        self.desired: Session = IDLE
        self.active: Session = IDLE
        self.changed = asyncio.Event()
        self._lock = asyncio.Lock()
        self._pending: UpdateRequest | None = None

    def clamp_volume(self, volume: int | None) -> int | None:
        if volume is None:
            return None
        return max(0, min(int(volume), self.volume_max))

    async def update(self, target: Address | None, volume: int | None = None) -> None:
        """Make *target* the streaming destination at *volume*.

        ``target=None`` stops streaming.  ``volume=None`` keeps the last
        requested volume.  Raises SessionError when the relay could not
        establish the session (the session is Idle afterwards) or did not
        answer within ``update_timeout``.  A timed-out request the relay has
        not picked up yet is withdrawn; one it is already applying may still
        complete, so check ``active`` after a timeout.
        """
        async with self._lock:
            if volume is None:
                volume = self.desired.volume
            session = Session(target, self.clamp_volume(volume))
            self.desired = session

            fut = asyncio.get_running_loop().create_future()
            fut.add_done_callback(_consume_result)
            self._fail(self._pending, SessionError("Superseded by a newer update"))
            self._pending = UpdateRequest(session, fut)
            self.changed.set()
            log.debug("Requested session: %s", session.describe())

            try:
                await asyncio.wait_for(asyncio.shield(fut), self.update_timeout)
            except asyncio.TimeoutError as e:
                if self._pending is not None and self._pending.future is fut:
                    self._pending = None
                    self.desired = self.active
                    self._fail_future(fut, SessionError("Withdrawn after timeout"))
                raise SessionError(f"Timed out after {self.update_timeout:.0f}s: "
                                   f"{session.describe()}") from e

    def take_request(self) -> UpdateRequest | None:
        """Hand the pending request (if any) to the relay loop."""
        request, self._pending = self._pending, None
        self.changed.clear()
        return request

    def set_active(self, session: Session) -> None:
        """Record the session the relay loop actually established."""
        if session == self.active:
            return
        previous, self.active = self.active, session
        if previous.describe() != session.describe():
            log.info("Session: %s -> %s", previous.describe(), session.describe())
            sd_status(session.describe())

    def fail_pending(self, exc: Exception) -> None:
        request, self._pending = self._pending, None
        self._fail(request, exc)

    @staticmethod
    def _fail(request: UpdateRequest | None, exc: Exception):
        if request is not None:
            StreamController._fail_future(request.future, exc)

    @staticmethod
    def _fail_future(fut: asyncio.Future, exc: Exception):
        if not fut.done():
            fut.set_exception(exc)
