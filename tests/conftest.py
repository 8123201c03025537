import json
import os
import sys

import pytest

SERVICES = os.path.join(os.path.dirname(__file__), "..", "services")
sys.path.insert(0, os.path.abspath(SERVICES))

from airvinyl import config  # noqa: E402

DEFAULT_CONFIG = os.path.join(os.path.dirname(__file__), "..", "config", "default.json")


@pytest.fixture(autouse=True)
def app_config(monkeypatch):
    """Every test runs against a private copy of config/default.json."""
    with open(DEFAULT_CONFIG) as f:
        data = json.load(f)
    monkeypatch.setattr(config, "_config", data)
    monkeypatch.delenv("NOTIFY_SOCKET", raising=False)
    return data
