"""Helpers for the helper binaries (browsers, recorders, raop_play)."""

import asyncio
import logging

log = logging.getLogger(__name__)


async def terminate(proc: asyncio.subprocess.Process | None, timeout: float = 2.0) -> int | None:
    """Terminate *proc*, escalating to SIGKILL after *timeout* seconds.

    Returns the exit code (None if there was no process).
    """
    if proc is None:
        return None
    if proc.returncode is not None:
        return proc.returncode
    try:
        proc.terminate()
    except ProcessLookupError:
        pass
    try:
        return await asyncio.wait_for(proc.wait(), timeout)
    except asyncio.TimeoutError:
        log.warning("Process %d did not exit after %.1fs — killing", proc.pid, timeout)
        try:
            proc.kill()
        except ProcessLookupError:
            pass
        return await proc.wait()
