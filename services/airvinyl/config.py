"""
Shared configuration loader for the AirVinyl service.

Loads a single JSON config file.  Search order:
  1. $AIRVINYL_CONFIG              (explicit override)
  2. /etc/airvinyl/config.json     (deployed install)
  3. config.json                   (CWD — handy for local dev)
  4. ../../config/default.json     (repo fallback)

Usage:
    from airvinyl.config import cfg

    port        = cfg("server", "port", default=3030)
    capture     = cfg("capture", "type")
    volume_max  = cfg("volume", "max", default=100)
    metadata    = cfg("metadata")  # returns the whole dict
"""

import json
import logging
import os

logger = logging.getLogger(__name__)

_config: dict | None = None

_SEARCH_PATHS = [
    "/etc/airvinyl/config.json",
    "config.json",
    os.path.join(os.path.dirname(__file__), "..", "..", "config", "default.json"),
]

DISCOVERY_TYPES = ("avahi", "dnssd")
CAPTURE_TYPES = ("arecord", "sox")
TRANSPORT_TYPES = ("pyatv", "raop_play")


def _search_paths() -> list[str]:
    override = os.getenv("AIRVINYL_CONFIG")
    if override:
        return [override] + _SEARCH_PATHS
    return list(_SEARCH_PATHS)


def _validate(config: dict, path: str) -> None:
    """Warn about missing or suspicious config values."""
    for section, known in (("discovery", DISCOVERY_TYPES),
                           ("capture", CAPTURE_TYPES),
                           ("transport", TRANSPORT_TYPES)):
        value = (config.get(section) or {}).get("type")
        if value is not None and value not in known:
            logger.warning("Config %s: unknown %s.type '%s'", path, section, value)
    vol = config.get("volume") or {}
    vol_max = vol.get("max", 100)
    if not isinstance(vol_max, (int, float)) or not 0 < vol_max <= 100:
        logger.warning("Config %s: volume.max should be within 1..100, got %r", path, vol_max)
    transport = config.get("transport") or {}
    if transport.get("latency_frames", 1) <= 0:
        logger.warning("Config %s: transport.latency_frames must be positive", path)


def load_config() -> dict:
    """Load config from the first JSON file found. Cached after first call."""
    global _config
    if _config is not None:
        return _config

    for path in _search_paths():
        try:
            with open(path) as f:
                _config = json.load(f)
                logger.info("Config loaded from %s", path)
                _validate(_config, path)
                return _config
        except FileNotFoundError:
            continue
        except json.JSONDecodeError as e:
            logger.error("Invalid JSON in %s: %s", path, e)
            continue

    logger.warning("No config.json found — using empty config")
    _config = {}
    return _config


def cfg(section: str, key: str | None = None, *, default=None):
    """Read a config value.

    cfg("metadata")                      → config["metadata"]
    cfg("capture", "device")             → config["capture"]["device"]
    cfg("volume", "max", default=100)    → config["volume"]["max"] or 100
    """
    config = load_config()
    val = config.get(section)
    if key is None:
        return val if val is not None else default
    if isinstance(val, dict):
        value = val.get(key)
        return value if value is not None else default
    return default


def reload_config():
    """Force re-read from disk (for testing or hot-reload)."""
    global _config
    _config = None
    return load_config()
