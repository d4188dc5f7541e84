"""
TranscriptionBackend: abstract contract for every ASR implementation.

Implementations: LocalWhisperBackend (faster-whisper), CloudflareWhisperBackend,
GoogleSpeechBackend, StubBackend. All run heavy work in executor to avoid
blocking the event loop.

Failures are raised as TranscriptionError subclasses (NetworkError,
QuotaExceeded, InvalidAudio, TranscriptionTimeout). An empty text is not a
failure: it means no speech was recognized.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

import numpy as np


@dataclass
class TranscriptionResult:
    """Result of one transcribe call. text may be empty."""

    text: str
    confidence: float | None = None  # 0.0–1.0 estimate when the backend reports one


def pcm_bytes_to_float32(pcm_bytes: bytes) -> np.ndarray:
    """Convert PCM 16-bit mono bytes to float32 [-1.0, 1.0]."""
    samples = np.frombuffer(pcm_bytes, dtype=np.int16)
    return samples.astype(np.float32) / 32768.0


class TranscriptionBackend(ABC):
    """
    Abstract ASR backend. Accepts raw audio bytes plus format hints.
    transcribe() is async; implementations may run sync work in executor.
    """

    name: str = "backend"

    @abstractmethod
    async def transcribe(
        self,
        audio: bytes,
        sample_rate: int,
        encoding: str,
        language: str | None = None,
    ) -> TranscriptionResult:
        """
        Transcribe one utterance.
        - encoding: hint such as "LINEAR16" (PCM 16-bit little-endian mono).
        - language: BCP-47 hint or None for auto-detection.
        Must not block event loop; run heavy work in executor.
        """
        ...
