"""
FastAPI app: live two-source transcription sessions.

HTTP:
- POST /api/sessions                      create a session (declare streams)
- POST /api/sessions/{id}/energy/{stream} energy-only feed
- GET  /api/sessions/{id}/transcript      current ordered transcript
- POST /api/sessions/{id}/stop            drain and return the final transcript
- GET  /api/sessions/{id}/export.srt|json export (live snapshot or final)
- DELETE /api/sessions/{id}               stop if running, then forget it

WebSocket:
- /ws/sessions/{id}/streams/{stream}  client sends binary PCM 16-bit mono 16kHz
- /ws/sessions/{id}/events            server sends {type: upsert|remove, segment}
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import PlainTextResponse, Response

from tandem.asr import TranscriptionBackend, create_backend, load_whisper_model
from tandem.audio.energy import EnergyReading
from tandem.config import get_settings
from tandem.errors import SessionStartError, SessionStateError
from tandem.logging_config import configure_logging
from tandem.schemas.sessions import (
    CreateSessionRequest,
    CreateSessionResponse,
    EnergyReadingIn,
    SegmentOut,
    TranscriptResponse,
)
from tandem.session import Session
from tandem.session_store import SessionRegistry
from tandem.transcript.export import to_session_json, to_srt
from tandem.transcript.models import TranscriptSegment
from tandem.websocket_manager import StreamConnection, TranscriptEventChannel

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings)
    # Load Whisper model once at startup when using local backend (singleton)
    if settings.ASR_BACKEND == "local" and getattr(app.state, "whisper_model", None) is None:
        app.state.whisper_model = load_whisper_model()
    app.state.registry = SessionRegistry()
    logger.info("ASR backend: %s", settings.ASR_BACKEND)
    yield
    await app.state.registry.stop_all()
    app.state.whisper_model = None


app = FastAPI(
    title="Tandem live transcription",
    description="Per-stream VAD, speaker attribution and transcript assembly over WebSocket",
    lifespan=lifespan,
)


def get_backend(a: FastAPI) -> TranscriptionBackend:
    """Backend for a new session; selected once, at session construction."""
    override = getattr(a.state, "backend_override", None)
    if override is not None:
        return override
    return create_backend(get_settings(), getattr(a.state, "whisper_model", None))


def _registry(a: FastAPI) -> SessionRegistry:
    return a.state.registry


def _live_session(request: Request, session_id: str) -> Session:
    session = _registry(request.app).get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


def _segments_for_export(request: Request, session_id: str) -> tuple[TranscriptSegment, ...]:
    registry = _registry(request.app)
    session = registry.get(session_id)
    if session is not None:
        return session.snapshot()
    final = registry.finished(session_id)
    if final is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return final


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}


@app.post("/api/sessions", response_model=CreateSessionResponse)
async def create_session(body: CreateSessionRequest, request: Request) -> CreateSessionResponse:
    if not body.sources:
        raise HTTPException(status_code=400, detail="at least one source is required")
    session = Session(get_backend(request.app))
    try:
        await session.start(body.sources)
    except SessionStartError as e:
        raise HTTPException(status_code=400, detail=str(e))
    _registry(request.app).add(session)
    return CreateSessionResponse(session_id=session.session_id, streams=session.streams, warnings=session.warnings)


@app.post("/api/sessions/{session_id}/energy/{stream_id}")
async def feed_energy(session_id: str, stream_id: str, body: EnergyReadingIn, request: Request) -> dict:
    session = _live_session(request, session_id)
    try:
        session.feed_energy(stream_id, EnergyReading(body.timestamp, body.energy))
    except SessionStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"status": "ok"}


@app.get("/api/sessions/{session_id}/transcript", response_model=TranscriptResponse)
async def get_transcript(session_id: str, request: Request) -> TranscriptResponse:
    registry = _registry(request.app)
    session = registry.get(session_id)
    if session is None:
        final = registry.finished(session_id)
        if final is None:
            raise HTTPException(status_code=404, detail="Session not found")
        return TranscriptResponse(
            session_id=session_id,
            state="stopped",
            segments=[SegmentOut.from_segment(s) for s in final],
        )
    return TranscriptResponse(
        session_id=session_id,
        state=session.state.value,
        segments=[SegmentOut.from_segment(s) for s in session.snapshot()],
        in_flight=len(session.in_flight),
        warnings=session.warnings,
    )


@app.post("/api/sessions/{session_id}/stop", response_model=TranscriptResponse)
async def stop_session(session_id: str, request: Request) -> TranscriptResponse:
    registry = _registry(request.app)
    session = registry.get(session_id)
    warnings = session.warnings if session is not None else []
    final = await registry.stop(session_id)
    if final is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return TranscriptResponse(
        session_id=session_id,
        state="stopped",
        segments=[SegmentOut.from_segment(s) for s in final],
        warnings=warnings,
    )


@app.delete("/api/sessions/{session_id}")
async def delete_session(session_id: str, request: Request) -> dict:
    """Stop if still running, then forget the session and its final transcript."""
    registry = _registry(request.app)
    if registry.get(session_id) is None and registry.finished(session_id) is None:
        raise HTTPException(status_code=404, detail="Session not found")
    await registry.stop(session_id)
    registry.discard(session_id)
    return {"status": "deleted"}


@app.get("/api/sessions/{session_id}/export.srt", response_class=PlainTextResponse)
async def export_srt(session_id: str, request: Request) -> PlainTextResponse:
    return PlainTextResponse(to_srt(_segments_for_export(request, session_id)))


@app.get("/api/sessions/{session_id}/export.json")
async def export_json(session_id: str, request: Request) -> Response:
    return Response(to_session_json(_segments_for_export(request, session_id)), media_type="application/json")


@app.websocket("/ws/sessions/{session_id}/streams/{stream_id}")
async def websocket_stream(websocket: WebSocket, session_id: str, stream_id: str) -> None:
    """Client sends raw PCM 16-bit mono (binary) for one stream of the session."""
    session = _registry(websocket.app).get(session_id)
    if session is None or stream_id not in session.streams:
        await websocket.close(code=1008)
        return
    await websocket.accept()
    await StreamConnection(websocket, session, stream_id).run()


@app.websocket("/ws/sessions/{session_id}/events")
async def websocket_events(websocket: WebSocket, session_id: str) -> None:
    """Server pushes transcript changes as JSON until the session stops."""
    session = _registry(websocket.app).get(session_id)
    if session is None:
        await websocket.close(code=1008)
        return
    await websocket.accept()
    try:
        await TranscriptEventChannel(websocket, session).run()
    except WebSocketDisconnect:
        pass
    try:
        await websocket.close()
    except Exception:
        pass
