"""
Discovery feed — applies browser events to the device registry.

One long-lived task consumes the browser's events in arrival order.  Add
events are resolved inline (so a later Remove can never overtake its Add),
and a failed resolution only drops that one event.  When the browser goes
away the registry keeps its last known devices; the feed restarts the
browser after ``discovery.restart_delay`` seconds if that is configured.
"""

import asyncio
import logging

from .config import cfg
from .discovery import DeviceAdded, DeviceBrowser, DeviceRemoved, DiscoveryEvent
from .errors import DiscoveryError, ResolveError
from .registry import DeviceRegistry

log = logging.getLogger(__name__)


class DiscoveryFeed:
    def __init__(self, registry: DeviceRegistry, browser: DeviceBrowser,
                 restart_delay: float | None = None):
        self.registry = registry
        self.browser = browser
        if restart_delay is None:
            restart_delay = cfg("discovery", "restart_delay")
        self.restart_delay = float(restart_delay) if restart_delay is not None else None
        self._task: asyncio.Task | None = None
        self.applied = 0

    async def apply(self, event: DiscoveryEvent) -> None:
        """Apply a single browser event to the registry."""
        if isinstance(event, DeviceRemoved):
            self.registry.remove(event.device_id)
        elif isinstance(event, DeviceAdded):
            if event.device_id in self.registry:
                return
            try:
                device = await self.browser.resolve(event)
            except ResolveError as e:
                log.warning("Dropping AirPlay device %s: %s", event.device_id, e)
                return
            self.registry.upsert(event.device_id, device)
        else:
            raise TypeError(f"Unknown discovery event: {event!r}")
        self.applied += 1

    async def run_once(self) -> None:
        """Consume the browser until it is exhausted."""
        try:
            async for event in self.browser.events():
                await self.apply(event)
        except DiscoveryError as e:
            log.error("Device discovery failed: %s", e)
        log.warning("Device discovery stopped — keeping %d known devices",
                    len(self.registry))

    async def run(self) -> None:
        while True:
            await self.run_once()
            if self.restart_delay is None:
                return
            log.info("Restarting device discovery in %.0fs", self.restart_delay)
            await asyncio.sleep(self.restart_delay)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run(), name="discovery-feed")
        return self._task

    async def stop(self):
        task, self._task = self._task, None
        if task:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self.browser.close()
