"""
AirVinyl service scope.

Wires the registry, discovery feed, session controller and relay loop
together for the lifetime of the process and exposes the two operations
the control surface needs: query the current state and apply a desired
state.
"""

import logging

from .controller import StreamController
from .discovery import DeviceBrowser, create_browser
from .errors import UnknownDevice
from .feed import DiscoveryFeed
from .registry import DeviceRegistry
from .relay import AudioRelay

log = logging.getLogger(__name__)


def validate_volume(volume) -> int | None:
    """Check an API volume value.  Raises ValueError unless None or 0..100."""
    if volume is None:
        return None
    if isinstance(volume, bool) or not isinstance(volume, int):
        raise ValueError(f"volume must be an integer, got {volume!r}")
    if not 0 <= volume <= 100:
        raise ValueError(f"volume must be within 0..100, got {volume}")
    return volume


class AirVinylService:
    def __init__(self, registry: DeviceRegistry | None = None,
                 browser: DeviceBrowser | None = None,
                 controller: StreamController | None = None,
                 relay: AudioRelay | None = None):
        self.registry = registry or DeviceRegistry()
        self.browser = browser or create_browser()
        self.feed = DiscoveryFeed(self.registry, self.browser)
        self.controller = controller or StreamController()
        self.relay = relay or AudioRelay(self.controller)

    async def start(self):
        self.relay.start()
        self.feed.start()
        log.info("AirVinyl started (discovery: %s)", self.browser.type)

    async def stop(self):
        await self.relay.stop()
        await self.feed.stop()
        log.info("AirVinyl stopped")

    def state(self) -> dict:
        active = self.controller.active
        device = self.registry.find_by_addr(active.target)
        if active.target is not None and device is None:
            log.debug("Streaming to %s, which is no longer discovered", active.target)
        return {
            "device": device.id if device else None,
            "volume": active.volume,
            "devices": [d.to_dict() for d in self.registry.snapshot().values()],
        }

    async def apply(self, device_id: str | None, volume: int | None = None) -> None:
        """Stream to *device_id* at *volume*; ``device_id=None`` stops.

        Raises ValueError for malformed input, UnknownDevice for an id
        that is not in the registry (the session is left untouched) and
        SessionError when the session could not be established.
        """
        volume = validate_volume(volume)
        if device_id is None:
            await self.controller.update(None, volume)
            return
        if not isinstance(device_id, str):
            raise ValueError(f"device must be a string, got {device_id!r}")
        device = self.registry.resolve(device_id)
        if device is None:
            raise UnknownDevice(device_id)
        await self.controller.update(device.addr, volume)
