"""
Audio capture sources.

Supported types:
  - ``arecord``  – ALSA line-in via ``arecord`` (Linux default)
  - ``sox``      – default input device via ``sox`` (macOS default)

``create_capture_source`` reads the "capture" section of config.json:
  type    – "arecord" or "sox" (default depends on platform)
  device  – ALSA device for arecord (default "hw:1,0")
"""

import logging
import sys

from ..audio import CD_FORMAT, AudioFormat
from ..config import cfg
from .base import CaptureSource, SubprocessCapture

logger = logging.getLogger(__name__)

__all__ = [
    "ArecordCapture",
    "CaptureSource",
    "SoxCapture",
    "SubprocessCapture",
    "create_capture_source",
]

DEFAULT_ALSA_DEVICE = "hw:1,0"


class ArecordCapture(SubprocessCapture):
    type = "arecord"

    def command(self) -> list[str]:
        return [
            "arecord",
            "-t", "raw",
            "-f", f"S{self.fmt.bits}_LE",
            "-c", str(self.fmt.channels),
            "-r", str(self.fmt.sample_rate),
            f"--device={self.device or DEFAULT_ALSA_DEVICE}",
        ]


class SoxCapture(SubprocessCapture):
    type = "sox"

    def command(self) -> list[str]:
        return [
            "sox",
            "--no-show-progress",
            "--default-device",
            "--encoding", "signed-integer",
            "--channels", str(self.fmt.channels),
            "--bits", str(self.fmt.bits),
            "--endian", "little",
            "--rate", str(self.fmt.sample_rate),
            "--type", "raw",
            "-",
        ]


def default_capture_type() -> str:
    return "sox" if sys.platform == "darwin" else "arecord"


def create_capture_source(fmt: AudioFormat = CD_FORMAT) -> CaptureSource:
    """Create a fresh (not yet started) capture source from config.json."""
    capture_type = str(cfg("capture", "type", default=default_capture_type())).lower()
    if capture_type == "sox":
        logger.debug("Capture: sox default device")
        return SoxCapture(fmt)
    if capture_type != "arecord":
        logger.warning("Unknown capture.type '%s' — falling back to arecord", capture_type)
    device = cfg("capture", "device", default=DEFAULT_ALSA_DEVICE)
    logger.debug("Capture: arecord %s", device)
    return ArecordCapture(fmt, device=device)
