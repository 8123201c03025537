import struct

import pytest

from airvinyl.audio import (CD_FORMAT, MAX_CHUNK_BYTES, MAX_SAMPLES_PER_CHUNK, AudioFormat,
                            FramePacer, wav_header)


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def test_cd_format():
    assert CD_FORMAT == AudioFormat(44100, 2, 16)
    assert CD_FORMAT.bytes_per_frame == 4
    assert CD_FORMAT.byte_rate == 176400
    assert MAX_CHUNK_BYTES == MAX_SAMPLES_PER_CHUNK * 4 == 1408
    assert CD_FORMAT.frames(1410) == 352


def test_wav_header_describes_open_ended_pcm():
    header = wav_header(CD_FORMAT)
    assert len(header) == 44
    assert header[:4] == b"RIFF" and header[8:12] == b"WAVE"
    assert struct.unpack("<I", header[4:8])[0] == 0xFFFFFFFF
    fmt_len, tag, channels, rate, byte_rate, align, bits = struct.unpack("<IHHIIHH", header[16:36])
    assert (fmt_len, tag, channels, rate, byte_rate, align, bits) == (16, 1, 2, 44100, 176400, 4, 16)
    assert header[36:40] == b"data"


def test_pacer_allows_one_latency_window_up_front():
    clock = FakeClock()
    pacer = FramePacer(44100, 44100, clock=clock)
    assert pacer.delay_for(44100) == 0.0
    pacer._sent = 44100
    assert pacer.delay_for(441) == pytest.approx(0.01)

    clock.now += 0.5
    assert pacer.delay_for(441) == 0.0


def test_pacer_rebases_after_stall():
    clock = FakeClock()
    pacer = FramePacer(44100, 4410, clock=clock)
    pacer.delay_for(0)
    clock.now += 10
    pacer._sent = 4410
    # no burst to catch up on the ten silent seconds
    assert pacer.delay_for(4410) == 0.0
    assert pacer.delay_for(8820) == pytest.approx(0.1)


@pytest.mark.asyncio
async def test_pacer_wait_counts_frames():
    pacer = FramePacer(44100, 44100)
    await pacer.wait(352)
    await pacer.wait(352)
    assert pacer.sent_frames == 704
    pacer.reset()
    assert pacer.sent_frames == 0
