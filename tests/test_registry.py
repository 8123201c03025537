import random

import pytest

from airvinyl.registry import Address, Device, DeviceRegistry


def make_device(n: int) -> Device:
    return Device(f"dev{n}", f"Speaker {n}", Address(f"10.0.0.{n}", 7000))


def test_address_parse_and_render():
    assert str(Address.parse("192.168.1.20", "7000")) == "192.168.1.20:7000"
    v6 = Address.parse("fe80::1%eth0", 7000)
    assert v6.host == "fe80::1"
    assert v6.is_ipv6
    assert str(v6) == "[fe80::1]:7000"


@pytest.mark.parametrize("host,port", [
    ("kitchen.local", 7000),
    ("192.168.1.20", 0),
    ("192.168.1.20", 70000),
    ("192.168.1.20", "http"),
])
def test_address_parse_rejects_garbage(host, port):
    with pytest.raises(ValueError):
        Address.parse(host, port)


def test_upsert_is_idempotent():
    registry = DeviceRegistry()
    first = make_device(1)
    assert registry.upsert("dev1", first)
    assert not registry.upsert("dev1", Device("dev1", "Renamed", Address("10.0.0.9", 7000)))
    assert registry.resolve("dev1") == first
    assert len(registry) == 1


def test_remove_unknown_is_noop():
    registry = DeviceRegistry()
    assert registry.remove("ghost") is None
    assert len(registry) == 0


def test_snapshot_is_stable_and_read_only():
    registry = DeviceRegistry()
    registry.upsert("dev1", make_device(1))
    snap = registry.snapshot()
    registry.upsert("dev2", make_device(2))
    registry.remove("dev1")

    assert set(snap) == {"dev1"}
    assert set(registry.snapshot()) == {"dev2"}
    with pytest.raises(TypeError):
        snap["dev3"] = make_device(3)


def test_find_by_addr():
    registry = DeviceRegistry()
    registry.upsert("dev1", make_device(1))
    assert registry.find_by_addr(Address("10.0.0.1", 7000)).id == "dev1"
    assert registry.find_by_addr(Address("10.0.0.1", 7001)) is None
    assert registry.find_by_addr(None) is None


def test_snapshot_matches_net_effect_of_any_sequence():
    rng = random.Random(1234)
    for _ in range(50):
        registry = DeviceRegistry()
        expected = {}
        for _ in range(40):
            n = rng.randrange(6)
            if rng.random() < 0.6:
                registry.upsert(f"dev{n}", make_device(n))
                expected.setdefault(f"dev{n}", make_device(n))
            else:
                registry.remove(f"dev{n}")
                expected.pop(f"dev{n}", None)
        assert dict(registry.snapshot()) == expected


def test_device_to_dict():
    assert make_device(4).to_dict() == {"id": "dev4", "name": "Speaker 4", "addr": "10.0.0.4:7000"}
