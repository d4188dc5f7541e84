from __future__ import annotations

import asyncio
import base64

import httpx
import pytest

from tandem.asr import (
    CloudflareWhisperBackend,
    GoogleSpeechBackend,
    LocalWhisperBackend,
    StubBackend,
    create_backend,
)
from tandem.asr.cloudflare import raise_for_status
from tandem.asr.google import build_request_body, parse_response
from tandem.config import Settings
from tandem.errors import InvalidAudio, NetworkError, QuotaExceeded, TranscriptionError, TranscriptionTimeout


def _google(handler) -> GoogleSpeechBackend:
    return GoogleSpeechBackend(
        api_key="test-key",
        endpoint="https://speech.example/v1/speech:recognize",
        timeout=5.0,
        transport=httpx.MockTransport(handler),
    )


def test_google_request_body():
    body = build_request_body(b"\x01\x02", 16000, "linear16", None, "latest_long")

    assert body["config"]["encoding"] == "LINEAR16"
    assert body["config"]["sampleRateHertz"] == 16000
    assert body["config"]["languageCode"] == "en-US"
    assert base64.b64decode(body["audio"]["content"]) == b"\x01\x02"


def test_google_parse_response_joins_results():
    result = parse_response(
        {
            "results": [
                {"alternatives": [{"transcript": "hello", "confidence": 0.8}]},
                {"alternatives": []},
                {"alternatives": [{"transcript": " world ", "confidence": 0.6}]},
            ]
        }
    )

    assert result.text == "hello world"
    assert result.confidence == pytest.approx(0.7)
    assert parse_response({}).text == ""
    assert parse_response({}).confidence is None


def test_google_backend_sends_key_and_parses():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["key"] = request.url.params.get("key")
        return httpx.Response(200, json={"results": [{"alternatives": [{"transcript": "hi"}]}]})

    result = asyncio.run(_google(handler).transcribe(b"\x00\x00", 16000, "LINEAR16"))

    assert result.text == "hi"
    assert seen["key"] == "test-key"


@pytest.mark.parametrize(
    "status, text, error",
    [
        (429, "slow down", QuotaExceeded),
        (403, "Quota exceeded for project", QuotaExceeded),
        (400, "bad audio", InvalidAudio),
        (503, "unavailable", NetworkError),
    ],
)
def test_google_backend_maps_http_errors(status, text, error):
    backend = _google(lambda request: httpx.Response(status, text=text))

    with pytest.raises(error):
        asyncio.run(backend.transcribe(b"\x00\x00", 16000, "LINEAR16"))


def test_google_backend_maps_transport_errors():
    def timeout(request):
        raise httpx.ReadTimeout("read timed out", request=request)

    def refused(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TranscriptionTimeout):
        asyncio.run(_google(timeout).transcribe(b"\x00\x00", 16000, "LINEAR16"))
    with pytest.raises(NetworkError):
        asyncio.run(_google(refused).transcribe(b"\x00\x00", 16000, "LINEAR16"))


def test_google_backend_without_key_fails():
    backend = GoogleSpeechBackend(api_key="", transport=httpx.MockTransport(lambda r: httpx.Response(200)))

    with pytest.raises(TranscriptionError):
        asyncio.run(backend.transcribe(b"\x00\x00", 16000, "LINEAR16"))


def test_raise_for_status_passes_200():
    raise_for_status(httpx.Response(200, text="ok"), "test")


def test_stub_backend():
    backend = StubBackend(text="fixed")

    assert asyncio.run(backend.transcribe(b"\x00\x00", 16000, "LINEAR16")).text == "fixed"
    assert asyncio.run(backend.transcribe(b"", 16000, "LINEAR16")).text == ""
    assert backend.calls == 2


def test_local_backend_rejects_unsupported_audio():
    backend = LocalWhisperBackend(model=object())

    with pytest.raises(InvalidAudio):
        asyncio.run(backend.transcribe(b"\x00\x00", 8000, "LINEAR16"))
    with pytest.raises(InvalidAudio):
        asyncio.run(backend.transcribe(b"\x00", 16000, "LINEAR16"))


@pytest.mark.parametrize(
    "name, cls",
    [("stub", StubBackend), ("google", GoogleSpeechBackend), ("cloudflare", CloudflareWhisperBackend)],
)
def test_create_backend_selects_by_setting(name, cls):
    assert isinstance(create_backend(Settings(ASR_BACKEND=name)), cls)


def test_create_backend_local_uses_loaded_model():
    model = object()
    backend = create_backend(Settings(ASR_BACKEND="local"), whisper_model=model)

    assert isinstance(backend, LocalWhisperBackend)
