"""
Energy readings: one (timestamp, energy) sample per PCM frame.

Energy is RMS of int16 samples mapped onto a 0-100 scale:
0 at or below -60 dBFS, 100 at 0 dBFS. VAD and speaker attribution
thresholds are expressed on this scale.
"""
from __future__ import annotations

from dataclasses import dataclass

import numpy as np

FULL_SCALE = 32768.0
FLOOR_DBFS = -60.0


@dataclass(frozen=True)
class EnergyReading:
    """Energy of one frame. timestamp: ms since epoch."""

    timestamp: int
    energy: float


def rms_int16(pcm_bytes: bytes) -> float:
    """RMS of int16 samples."""
    if len(pcm_bytes) < 2:
        return 0.0
    usable = len(pcm_bytes) - (len(pcm_bytes) % 2)
    samples = np.frombuffer(pcm_bytes[:usable], dtype=np.int16)
    return float(np.sqrt(np.mean(samples.astype(np.float32) ** 2)))


def frame_energy(pcm_bytes: bytes) -> float:
    """Map frame RMS to the 0-100 energy scale."""
    rms = rms_int16(pcm_bytes)
    if rms <= 0.0:
        return 0.0
    dbfs = 20.0 * float(np.log10(rms / FULL_SCALE))
    scaled = (dbfs - FLOOR_DBFS) * 100.0 / -FLOOR_DBFS
    return float(min(100.0, max(0.0, scaled)))
