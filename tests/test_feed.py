import asyncio

import pytest

from airvinyl.discovery import DeviceAdded, DeviceRemoved
from airvinyl.errors import DiscoveryError
from airvinyl.feed import DiscoveryFeed
from airvinyl.registry import Device, DeviceRegistry
from fakes import KITCHEN, STUDY, ScriptedBrowser


@pytest.mark.asyncio
async def test_kitchen_comes_and_goes():
    registry = DeviceRegistry()
    browser = ScriptedBrowser(addresses={"dev1": KITCHEN})
    feed = DiscoveryFeed(registry, browser)

    await feed.apply(DeviceAdded("dev1", "Kitchen"))
    assert dict(registry.snapshot()) == {"dev1": Device("dev1", "Kitchen", KITCHEN)}

    await feed.apply(DeviceRemoved("dev1"))
    assert dict(registry.snapshot()) == {}


@pytest.mark.asyncio
async def test_duplicate_add_skips_lookup():
    registry = DeviceRegistry()
    browser = ScriptedBrowser(addresses={"dev1": KITCHEN})
    feed = DiscoveryFeed(registry, browser)

    await feed.apply(DeviceAdded("dev1", "Kitchen"))
    await feed.apply(DeviceAdded("dev1", "Kitchen"))
    assert browser.resolved == ["dev1"]
    assert len(registry) == 1


@pytest.mark.asyncio
async def test_failed_resolution_drops_only_that_event(caplog):
    registry = DeviceRegistry()
    browser = ScriptedBrowser(
        events=[DeviceAdded("ghost", "Ghost"), DeviceAdded("dev2", "Study")],
        addresses={"dev2": STUDY},
    )
    feed = DiscoveryFeed(registry, browser)

    await feed.run_once()

    assert set(registry.snapshot()) == {"dev2"}
    assert "Dropping AirPlay device ghost" in caplog.text


@pytest.mark.asyncio
async def test_run_applies_events_in_order():
    registry = DeviceRegistry()
    browser = ScriptedBrowser(events=[
        DeviceAdded("dev1", "Kitchen", addr=KITCHEN),
        DeviceRemoved("dev1"),
        DeviceAdded("dev1", "Kitchen", addr=STUDY),
        DeviceRemoved("nobody"),
    ])
    feed = DiscoveryFeed(registry, browser)

    await feed.run()

    assert registry.resolve("dev1").addr == STUDY
    assert feed.applied == 4


@pytest.mark.asyncio
async def test_browser_failure_keeps_last_known_devices():
    registry = DeviceRegistry()
    browser = ScriptedBrowser(
        events=[DeviceAdded("dev1", "Kitchen", addr=KITCHEN)],
        error=DiscoveryError("avahi-browse exited"),
    )
    feed = DiscoveryFeed(registry, browser)

    await feed.run_once()
    assert set(registry.snapshot()) == {"dev1"}


@pytest.mark.asyncio
async def test_restart_delay_restarts_browser(monkeypatch):
    registry = DeviceRegistry()
    browser = ScriptedBrowser(events=[DeviceAdded("dev1", "Kitchen", addr=KITCHEN)])
    feed = DiscoveryFeed(registry, browser, restart_delay=0.01)
    runs = []
    original = feed.run_once

    async def counting_run_once():
        runs.append(1)
        await original()

    monkeypatch.setattr(feed, "run_once", counting_run_once)
    feed.start()
    while len(runs) < 3:
        await asyncio.sleep(0.01)
    await feed.stop()

    assert browser.closed
    assert len(registry) == 1


@pytest.mark.asyncio
async def test_unknown_event_type_is_rejected():
    feed = DiscoveryFeed(DeviceRegistry(), ScriptedBrowser())
    with pytest.raises(TypeError):
        await feed.apply("dev1")
