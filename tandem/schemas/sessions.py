"""
Schemas for the session API.

A session declares its streams up front (stream_id -> role); audio for each
stream then arrives over its own WebSocket.
"""
from __future__ import annotations

from pydantic import BaseModel, Field

from tandem.diarization.models import StreamRole
from tandem.transcript.models import TranscriptSegment


class CreateSessionRequest(BaseModel):
    """Request body for POST /api/sessions."""

    sources: dict[str, StreamRole] = Field(
        ...,
        description="stream_id -> role (SourceA, SourceB, Mixed), e.g. {'mic': 'SourceA', 'system': 'SourceB'}",
    )


class CreateSessionResponse(BaseModel):
    session_id: str
    streams: dict[str, StreamRole]
    warnings: list[str] = Field(default_factory=list)


class EnergyReadingIn(BaseModel):
    """Energy-only feed: one reading on the 0-100 scale."""

    timestamp: int = Field(..., description="ms since epoch")
    energy: float = Field(..., ge=0.0)


class SegmentOut(BaseModel):
    id: str
    start: int
    end: int
    speaker: str
    text: str
    status: str
    confidence: float | None = None
    source_stream: str | None = None
    error: str | None = None

    @classmethod
    def from_segment(cls, segment: TranscriptSegment) -> "SegmentOut":
        return cls(**segment.to_dict())


class TranscriptResponse(BaseModel):
    session_id: str
    state: str
    segments: list[SegmentOut]
    in_flight: int = 0
    warnings: list[str] = Field(default_factory=list)
