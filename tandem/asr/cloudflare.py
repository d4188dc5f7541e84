"""
CloudflareWhisperBackend: Whisper via Cloudflare Workers AI.

Wraps PCM in a WAV container for the API.
Runs HTTP call in executor to avoid blocking event loop.
"""
from __future__ import annotations

import asyncio
import logging

import httpx

from tandem.asr.base import TranscriptionBackend, TranscriptionResult
from tandem.audio.wav import pcm_to_wav_bytes
from tandem.config import get_settings
from tandem.errors import (
    InvalidAudio,
    NetworkError,
    QuotaExceeded,
    TranscriptionError,
    TranscriptionTimeout,
)

logger = logging.getLogger(__name__)

_INVALID_AUDIO_STATUSES = {400, 413, 415, 422}


def raise_for_status(resp: httpx.Response, provider: str) -> None:
    """Map HTTP failures onto the transcription error hierarchy."""
    if resp.status_code == 200:
        return
    detail = resp.text[:200]
    if resp.status_code == 429:
        raise QuotaExceeded(f"{provider}: quota exceeded ({detail})")
    if resp.status_code in _INVALID_AUDIO_STATUSES:
        raise InvalidAudio(f"{provider}: HTTP {resp.status_code} ({detail})")
    raise NetworkError(f"{provider}: HTTP {resp.status_code} ({detail})")


def _sync_transcribe_cloudflare(wav_bytes: bytes, language: str | None, timeout: float) -> TranscriptionResult:
    """Blocking HTTP call; run in executor."""
    settings = get_settings()
    account_id = settings.CLOUDFLARE_ACCOUNT_ID
    token = settings.CLOUDFLARE_API_TOKEN
    if not account_id or not token:
        raise TranscriptionError("Cloudflare credentials not configured (CLOUDFLARE_ACCOUNT_ID / CLOUDFLARE_API_TOKEN)")

    url = f"https://api.cloudflare.com/client/v4/accounts/{account_id}/ai/run/@cf/openai/whisper"
    headers = {"Authorization": f"Bearer {token}"}
    body: dict = {"audio": list(wav_bytes)}
    if language:
        body["language"] = language

    try:
        with httpx.Client(timeout=timeout) as client:
            resp = client.post(url, headers=headers, json=body)
    except httpx.TimeoutException as e:
        raise TranscriptionTimeout(f"cloudflare: {e}") from e
    except httpx.HTTPError as e:
        raise NetworkError(f"cloudflare: {e}") from e
    raise_for_status(resp, "cloudflare")

    data = resp.json()
    result = data.get("result", data)
    if isinstance(result, dict):
        text = result.get("text", result.get("transcript", ""))
    elif isinstance(result, str):
        text = result
    else:
        text = ""
    text = (text or "").strip()
    return TranscriptionResult(text=text, confidence=None)


class CloudflareWhisperBackend(TranscriptionBackend):
    """Remote Whisper via Cloudflare Workers AI."""

    name = "cloudflare"

    def __init__(self, timeout: float | None = None) -> None:
        self._timeout = timeout if timeout is not None else get_settings().DISPATCH_TIMEOUT_SECONDS

    async def transcribe(
        self,
        audio: bytes,
        sample_rate: int,
        encoding: str,
        language: str | None = None,
    ) -> TranscriptionResult:
        if encoding.upper() != "LINEAR16":
            raise InvalidAudio(f"unsupported encoding {encoding!r}")
        wav_bytes = pcm_to_wav_bytes(audio, sample_rate)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None,
            _sync_transcribe_cloudflare,
            wav_bytes,
            language,
            self._timeout,
        )
