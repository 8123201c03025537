"""
PCM format shared by capture and transport, plus frame pacing.

Capture output and transport input use the same raw interleaved format
(signed 16-bit little-endian, stereo, 44.1 kHz), so no conversion ever
happens between the two ends of the pipeline.
"""

import asyncio
import struct
import time
from dataclasses import dataclass

# RAOP sends audio in packets of 352 frames
MAX_SAMPLES_PER_CHUNK = 352


@dataclass(frozen=True)
class AudioFormat:
    sample_rate: int = 44100
    channels: int = 2
    bits: int = 16

    @property
    def bytes_per_frame(self) -> int:
        return self.channels * self.bits // 8

    @property
    def byte_rate(self) -> int:
        return self.sample_rate * self.bytes_per_frame

    def frames(self, nbytes: int) -> int:
        """Number of whole frames in *nbytes* of audio."""
        return nbytes // self.bytes_per_frame


CD_FORMAT = AudioFormat()
MAX_CHUNK_BYTES = MAX_SAMPLES_PER_CHUNK * CD_FORMAT.bytes_per_frame


def wav_header(fmt: AudioFormat) -> bytes:
    """RIFF/WAVE header for a PCM stream of unknown length.

    Sizes are set to the maximum so decoders treat the data chunk as
    open-ended.
    """
    block_align = fmt.bytes_per_frame
    return b"".join([
        b"RIFF", struct.pack("<I", 0xFFFFFFFF), b"WAVE",
        b"fmt ", struct.pack("<IHHIIHH", 16, 1, fmt.channels, fmt.sample_rate,
                             fmt.byte_rate, block_align, fmt.bits),
        b"data", struct.pack("<I", 0xFFFFFFFF),
    ])


class FramePacer:
    """Keeps a sender at most *latency_frames* ahead of real time.

    Call ``wait(frames)`` before sending *frames*; it sleeps just long
    enough for the receiver-side buffer to have room.  When the sender has
    fallen behind (e.g. the capture stalled) the clock is rebased instead
    of letting the sender burst to catch up.
    """

    def __init__(self, sample_rate: int, latency_frames: int, clock=time.monotonic):
        self._rate = sample_rate
        self._latency = latency_frames
        self._clock = clock
        self._start: float | None = None
        self._sent = 0

    @property
    def sent_frames(self) -> int:
        return self._sent

    def delay_for(self, frames: int) -> float:
        """Seconds to wait before *frames* more may be sent."""
        now = self._clock()
        if self._start is None:
            self._start = now
        played = (now - self._start) * self._rate
        if played > self._sent:
            self._start = now - self._sent / self._rate
            played = self._sent
        excess = self._sent + frames - played - self._latency
        return max(0.0, excess / self._rate)

    async def wait(self, frames: int) -> None:
        delay = self.delay_for(frames)
        if delay > 0:
            await asyncio.sleep(delay)
        self._sent += frames

    def reset(self):
        self._start = None
        self._sent = 0
