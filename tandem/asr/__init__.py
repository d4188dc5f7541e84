"""ASR: swappable transcription backends behind one contract."""
from __future__ import annotations

from typing import Any

from tandem.config import Settings, get_settings

from .base import TranscriptionBackend, TranscriptionResult, pcm_bytes_to_float32
from .cloudflare import CloudflareWhisperBackend
from .google import GoogleSpeechBackend
from .local_whisper import LocalWhisperBackend, load_whisper_model
from .stub import StubBackend


def create_backend(settings: Settings | None = None, whisper_model: Any = None) -> TranscriptionBackend:
    """Return the backend selected by ASR_BACKEND. Local uses the model loaded at startup."""
    settings = settings or get_settings()
    if settings.ASR_BACKEND == "cloudflare":
        return CloudflareWhisperBackend()
    if settings.ASR_BACKEND == "google":
        return GoogleSpeechBackend()
    if settings.ASR_BACKEND == "stub":
        return StubBackend()
    return LocalWhisperBackend(model=whisper_model)


__all__ = [
    "TranscriptionBackend",
    "TranscriptionResult",
    "CloudflareWhisperBackend",
    "GoogleSpeechBackend",
    "LocalWhisperBackend",
    "StubBackend",
    "create_backend",
    "load_whisper_model",
    "pcm_bytes_to_float32",
]
