"""
GoogleSpeechBackend: Google Cloud Speech-to-Text (v1 speech:recognize).

- API key from settings (GOOGLE_API_KEY); never embedded in source.
- Sends base64 LINEAR16 audio; joins the top alternative of every result.
- Async HTTP with httpx.AsyncClient (no executor needed).
"""
from __future__ import annotations

import base64
import logging

import httpx

from tandem.asr.base import TranscriptionBackend, TranscriptionResult
from tandem.asr.cloudflare import raise_for_status
from tandem.config import get_settings
from tandem.errors import NetworkError, QuotaExceeded, TranscriptionError, TranscriptionTimeout

logger = logging.getLogger(__name__)


def build_request_body(audio: bytes, sample_rate: int, encoding: str, language: str | None, model: str) -> dict:
    return {
        "config": {
            "encoding": encoding.upper(),
            "sampleRateHertz": sample_rate,
            "languageCode": language or "en-US",
            "model": model,
            "maxAlternatives": 1,
            "enableAutomaticPunctuation": True,
        },
        "audio": {"content": base64.b64encode(audio).decode("ascii")},
    }


def parse_response(data: dict) -> TranscriptionResult:
    """Join top alternatives; confidence is the mean of reported confidences."""
    parts: list[str] = []
    confidences: list[float] = []
    for item in data.get("results") or []:
        alternatives = item.get("alternatives") or []
        if not alternatives:
            continue
        top = alternatives[0]
        transcript = (top.get("transcript") or "").strip()
        if transcript:
            parts.append(transcript)
            if top.get("confidence") is not None:
                confidences.append(float(top["confidence"]))
    text = " ".join(parts).strip()
    confidence = sum(confidences) / len(confidences) if confidences else None
    return TranscriptionResult(text=text, confidence=confidence)


class GoogleSpeechBackend(TranscriptionBackend):
    name = "google"

    def __init__(
        self,
        api_key: str | None = None,
        endpoint: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self._api_key = api_key if api_key is not None else settings.GOOGLE_API_KEY
        self._endpoint = endpoint or settings.GOOGLE_STT_ENDPOINT
        self._model = settings.GOOGLE_STT_MODEL
        self._timeout = timeout if timeout is not None else settings.DISPATCH_TIMEOUT_SECONDS
        self._transport = transport

    async def transcribe(
        self,
        audio: bytes,
        sample_rate: int,
        encoding: str,
        language: str | None = None,
    ) -> TranscriptionResult:
        if not self._api_key:
            raise TranscriptionError("GOOGLE_API_KEY not configured")
        body = build_request_body(audio, sample_rate, encoding, language, self._model)
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(self._endpoint, params={"key": self._api_key}, json=body)
        except httpx.TimeoutException as e:
            raise TranscriptionTimeout(f"google: {e}") from e
        except httpx.HTTPError as e:
            raise NetworkError(f"google: {e}") from e
        if resp.status_code == 403 and "quota" in resp.text.lower():
            raise QuotaExceeded(f"google: {resp.text[:200]}")
        raise_for_status(resp, "google")
        return parse_response(resp.json())
