"""WAV container helpers for PCM 16-bit mono. Used by the recorder and by backends that need a file payload."""
from __future__ import annotations

import io
import os
import wave

SAMPLE_WIDTH = 2
NCHANNELS = 1


def pcm_to_wav_bytes(pcm_bytes: bytes, sample_rate: int) -> bytes:
    """Wrap raw PCM in a WAV header, in memory."""
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wav:
        wav.setnchannels(NCHANNELS)
        wav.setsampwidth(SAMPLE_WIDTH)
        wav.setframerate(sample_rate)
        wav.writeframes(pcm_bytes)
    return buf.getvalue()


def write_wav(pcm_bytes: bytes, out_path: str, sample_rate: int) -> None:
    """
    Write PCM to WAV: one open, set header once, write all frames, close once.
    Never open/close per chunk.
    """
    os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
    with wave.open(out_path, "wb") as wav:
        wav.setnchannels(NCHANNELS)
        wav.setsampwidth(SAMPLE_WIDTH)
        wav.setframerate(sample_rate)
        wav.writeframes(pcm_bytes)
