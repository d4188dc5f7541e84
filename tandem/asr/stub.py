"""StubBackend: deterministic backend for development and tests. No network, no model."""
from __future__ import annotations

from tandem.asr.base import TranscriptionBackend, TranscriptionResult
from tandem.config import get_settings


class StubBackend(TranscriptionBackend):
    """Returns a fixed text for every non-empty payload, empty text for empty audio."""

    name = "stub"

    def __init__(self, text: str | None = None) -> None:
        self._text = text if text is not None else get_settings().STUB_TRANSCRIPT_TEXT
        self.calls = 0

    async def transcribe(
        self,
        audio: bytes,
        sample_rate: int,
        encoding: str,
        language: str | None = None,
    ) -> TranscriptionResult:
        self.calls += 1
        if not audio:
            return TranscriptionResult(text="", confidence=None)
        return TranscriptionResult(text=self._text, confidence=1.0)
