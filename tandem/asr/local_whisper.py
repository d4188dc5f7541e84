"""
LocalWhisperBackend: Whisper-compatible ASR using faster-whisper.

- Model loaded ONCE at startup (singleton on app.state, injected at construction).
- Audio: PCM 16-bit bytes converted to float32 mono [-1, 1].
- Runs in executor so event loop stays responsive.
"""
from __future__ import annotations

import asyncio
import logging
import math
from typing import Any

from tandem.asr.base import TranscriptionBackend, TranscriptionResult, pcm_bytes_to_float32
from tandem.config import get_settings
from tandem.errors import InvalidAudio, TranscriptionError

logger = logging.getLogger(__name__)

# Type for shared WhisperModel (loaded at startup)
WhisperModelT = Any


def load_whisper_model() -> WhisperModelT:
    """Load faster-whisper model once. Called at startup when ASR_BACKEND=local."""
    try:
        from faster_whisper import WhisperModel
    except ImportError as err:
        raise ImportError(
            "faster-whisper is required for ASR_BACKEND=local. "
            "Install with: pip install faster-whisper"
        ) from err
    settings = get_settings()
    logger.info("Loading Whisper model %s on %s", settings.LOCAL_WHISPER_MODEL, settings.LOCAL_WHISPER_DEVICE)
    return WhisperModel(
        settings.LOCAL_WHISPER_MODEL,
        device=settings.LOCAL_WHISPER_DEVICE,
        compute_type=settings.LOCAL_WHISPER_COMPUTE_TYPE,
    )


class LocalWhisperBackend(TranscriptionBackend):
    """Local Whisper via faster-whisper. Uses shared model (singleton)."""

    name = "local"

    def __init__(self, model: WhisperModelT | None = None) -> None:
        self._model = model

    def _transcribe_sync(self, audio: bytes, sample_rate: int, language: str | None) -> TranscriptionResult:
        if self._model is None:
            raise TranscriptionError("Whisper model not loaded")
        if sample_rate != 16000:
            raise InvalidAudio(f"faster-whisper expects 16kHz audio, got {sample_rate}")
        if len(audio) < 2 or len(audio) % 2:
            raise InvalidAudio(f"malformed PCM payload ({len(audio)} bytes)")

        settings = get_settings()
        segments, _ = self._model.transcribe(
            pcm_bytes_to_float32(audio),
            beam_size=settings.LOCAL_WHISPER_BEAM_SIZE,
            language=language or None,
            vad_filter=True,
            vad_parameters=dict(min_silence_duration_ms=300, speech_pad_ms=100),
        )

        parts: list[str] = []
        logprobs: list[float] = []
        for seg in segments:
            t = (seg.text or "").strip()
            if t:
                parts.append(t)
                avg_logprob = getattr(seg, "avg_logprob", None)
                if avg_logprob is not None:
                    logprobs.append(avg_logprob)

        text = " ".join(parts).strip()
        confidence = None
        if logprobs:
            confidence = max(0.0, min(1.0, math.exp(sum(logprobs) / len(logprobs))))
        return TranscriptionResult(text=text, confidence=confidence)

    async def transcribe(
        self,
        audio: bytes,
        sample_rate: int,
        encoding: str,
        language: str | None = None,
    ) -> TranscriptionResult:
        """Run _transcribe_sync in executor so event loop is not blocked."""
        if encoding.upper() != "LINEAR16":
            raise InvalidAudio(f"unsupported encoding {encoding!r}")
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._transcribe_sync, audio, sample_rate, language)
