from __future__ import annotations

import time

import numpy as np
import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from tandem.main import app

LOUD_FRAME = np.full(320, 10000, dtype=np.int16).tobytes()


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setenv("ASR_BACKEND", "stub")
    monkeypatch.setenv("STUB_TRANSCRIPT_TEXT", "hi")
    monkeypatch.setenv("TRANSCRIPT_SAVE_ENABLED", "false")
    monkeypatch.setenv("ENABLE_RECORDING", "false")
    with TestClient(app) as c:
        yield c


def _create(client: TestClient, sources=None) -> str:
    resp = client.post("/api/sessions", json={"sources": sources or {"mic": "SourceA", "system": "SourceB"}})
    assert resp.status_code == 200
    return resp.json()["session_id"]


def _post_energy(client: TestClient, sid: str, stream: str, energies: list[float], t0: int = 0) -> None:
    for i, energy in enumerate(energies):
        resp = client.post(f"/api/sessions/{sid}/energy/{stream}", json={"timestamp": t0 + i * 20, "energy": energy})
        assert resp.status_code == 200


def _wait_for_final(client: TestClient, sid: str, timeout: float = 5.0) -> list[dict]:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        segments = client.get(f"/api/sessions/{sid}/transcript").json()["segments"]
        if segments and all(s["status"] == "Final" for s in segments):
            return segments
        time.sleep(0.05)
    raise AssertionError("no final segment in time")


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_create_session(client):
    resp = client.post("/api/sessions", json={"sources": {"mic": "SourceA", "system": "SourceB", "all": "Mixed"}})

    assert resp.status_code == 200
    body = resp.json()
    assert body["streams"] == {"mic": "SourceA", "system": "SourceB", "all": "Mixed"}
    assert body["warnings"] == []
    assert client.get(f"/api/sessions/{body['session_id']}/transcript").json()["state"] == "running"


def test_create_session_validation(client):
    assert client.post("/api/sessions", json={"sources": {}}).status_code == 400
    assert client.post("/api/sessions", json={"sources": {"mic": "Narrator"}}).status_code == 422


def test_energy_only_session_lifecycle(client):
    sid = _create(client)

    _post_energy(client, sid, "mic", [70.0] * 30 + [0.0] * 30)
    stopped = client.post(f"/api/sessions/{sid}/stop")

    assert stopped.status_code == 200
    assert stopped.json()["state"] == "stopped"
    # no audio was sent, so the backend had nothing to transcribe
    assert stopped.json()["segments"] == []
    assert client.get(f"/api/sessions/{sid}/transcript").json()["state"] == "stopped"
    assert client.get(f"/api/sessions/{sid}/export.json").json() == []
    assert client.get(f"/api/sessions/{sid}/export.srt").text == ""
    # stopping again returns the same final transcript
    assert client.post(f"/api/sessions/{sid}/stop").json()["segments"] == []


def test_energy_for_unknown_stream_conflicts(client):
    sid = _create(client)

    resp = client.post(f"/api/sessions/{sid}/energy/camera", json={"timestamp": 0, "energy": 50.0})

    assert resp.status_code == 409


def test_unknown_session_returns_404(client):
    assert client.get("/api/sessions/nope/transcript").status_code == 404
    assert client.post("/api/sessions/nope/stop").status_code == 404
    assert client.get("/api/sessions/nope/export.srt").status_code == 404
    assert client.delete("/api/sessions/nope").status_code == 404
    assert client.post("/api/sessions/nope/energy/mic", json={"timestamp": 0, "energy": 1.0}).status_code == 404


def test_audio_stream_over_websocket(client):
    sid = _create(client)

    with client.websocket_connect(f"/ws/sessions/{sid}/streams/mic") as ws:
        hello = ws.receive_json()
        assert hello == {"type": "stream", "session_id": sid, "stream_id": "mic"}
        ws.send_bytes(LOUD_FRAME * 40)

    segments = _wait_for_final(client, sid)
    assert len(segments) == 1
    assert segments[0]["speaker"] == "SourceA"
    assert segments[0]["text"] == "hi"
    assert segments[0]["source_stream"] == "mic"

    final = client.post(f"/api/sessions/{sid}/stop").json()["segments"]
    assert [s["text"] for s in final] == ["hi"]
    srt = client.get(f"/api/sessions/{sid}/export.srt").text
    assert srt.startswith("1\n")
    assert srt.endswith("SourceA: hi\n")


def test_events_channel_streams_changes_then_stopped(client):
    sid = _create(client)

    with client.websocket_connect(f"/ws/sessions/{sid}/events") as ws:
        _post_energy(client, sid, "system", [70.0] * 30 + [0.0] * 30)
        placeholder = ws.receive_json()
        removed = ws.receive_json()
        client.post(f"/api/sessions/{sid}/stop")
        stopped = ws.receive_json()

    assert placeholder["type"] == "upsert"
    assert placeholder["segment"]["status"] == "Partial"
    assert placeholder["segment"]["speaker"] == "SourceB"
    assert removed["type"] == "remove"
    assert removed["segment"]["id"] == placeholder["segment"]["id"]
    assert stopped == {"type": "stopped"}


def test_websocket_for_unknown_session_or_stream_is_rejected(client):
    sid = _create(client)

    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/ws/sessions/nope/events"):
            pass
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect(f"/ws/sessions/{sid}/streams/camera"):
            pass


def test_delete_session(client):
    sid = _create(client)

    assert client.delete(f"/api/sessions/{sid}").json() == {"status": "deleted"}
    assert client.get(f"/api/sessions/{sid}/transcript").status_code == 404
