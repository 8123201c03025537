"""Systemd notify integration for the AirVinyl service.

Sends WATCHDOG=1 to the systemd notify socket at regular intervals and a
STATUS= line whenever the streaming session changes.  Silently no-ops when
NOTIFY_SOCKET is unset (macOS / dev mode).

Usage:
    from airvinyl.watchdog import watchdog_loop, sd_status
    asyncio.create_task(watchdog_loop())
    sd_status("Streaming to Kitchen")
"""

import asyncio
import logging
import os
import socket

logger = logging.getLogger(__name__)


def _notify_socket() -> str | None:
    return os.environ.get("NOTIFY_SOCKET")


def sd_notify(msg: str) -> bool:
    """Send a notification message to the systemd notify socket.

    Returns False when there is no socket to talk to.
    """
    addr = _notify_socket()
    if not addr:
        return False
    if addr[0] == "@":
        addr = "\0" + addr[1:]
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM)
    try:
        sock.sendto(msg.encode(), addr)
    except OSError as e:
        logger.debug("sd_notify failed: %s", e)
        return False
    finally:
        sock.close()
    return True


def sd_status(text: str) -> bool:
    """Publish a one-line service status (shown by ``systemctl status``)."""
    return sd_notify(f"STATUS={text}")


async def watchdog_loop(interval: int = 20):
    """Send WATCHDOG=1 every *interval* seconds.  Call as asyncio.create_task().

    Also sends READY=1 on first invocation so systemd knows the service
    has finished startup (requires Type=notify in the unit file).
    """
    sd_notify("READY=1")
    logger.info("Watchdog started (interval=%ds)", interval)
    while True:
        sd_notify("WATCHDOG=1")
        await asyncio.sleep(interval)
