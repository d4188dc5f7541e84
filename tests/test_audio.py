from __future__ import annotations

import numpy as np

from tandem.audio.energy import frame_energy, rms_int16
from tandem.audio.receiver import FrameSplitter
from tandem.audio.ring_buffer import AudioRingBuffer
from tandem.audio.source import FrameClock
from tandem.audio.wav import pcm_to_wav_bytes


def _tone(amplitude: int, samples: int = 320) -> bytes:
    return np.full(samples, amplitude, dtype=np.int16).tobytes()


def test_frame_energy_scale():
    assert frame_energy(b"") == 0.0
    assert frame_energy(_tone(0)) == 0.0
    assert frame_energy(_tone(32767)) > 99.9
    # -20 dBFS -> 66.7 on the 0-100 scale
    assert abs(frame_energy(_tone(3277)) - 66.7) < 0.5
    # below -60 dBFS clamps to 0
    assert frame_energy(_tone(10)) == 0.0


def test_rms_ignores_trailing_odd_byte():
    assert rms_int16(_tone(100) + b"\x7f") == 100.0


def test_splitter_keeps_remainder():
    splitter = FrameSplitter(frame_bytes=640)

    assert splitter.feed(b"\x00" * 1000) == [b"\x00" * 640]
    assert splitter.remaining_bytes() == 360
    assert len(splitter.feed(b"\x00" * 920)) == 2
    assert splitter.remaining_bytes() == 0


def test_ring_buffer_slice_covers_overlapping_frames():
    buf = AudioRingBuffer(retention_sec=10, frame_ms=20)
    for i in range(10):
        buf.push(1_000 + i * 20, bytes([i]) * 4)

    # frames starting 1040..1100 overlap [1050, 1100]
    assert buf.slice(1_050, 1_100) == b"".join(bytes([i]) * 4 for i in range(2, 6))
    assert buf.slice(2_000, 3_000) == b""
    assert buf.slice(1_100, 1_050) == b""


def test_ring_buffer_evicts_old_frames():
    buf = AudioRingBuffer(retention_sec=0.1, frame_ms=20)
    for i in range(10):
        buf.push(i * 20, b"\x00\x00")

    assert len(buf) == 5
    assert buf.oldest_timestamp == 100
    assert buf.slice(0, 60) == b""


def test_frame_clock_advances_by_frame_and_resyncs_forward_only():
    clock = FrameClock(20, start_ms=1_000)

    assert [clock.stamp(), clock.stamp()] == [1_000, 1_020]
    clock.resync(900)
    assert clock.stamp() == 1_040
    clock.resync(5_000)
    assert clock.stamp() == 5_000


def test_wav_bytes_header():
    data = pcm_to_wav_bytes(b"\x00\x00" * 16, 16000)

    assert data[:4] == b"RIFF"
    assert data[8:12] == b"WAVE"
    assert len(data) == 44 + 32
