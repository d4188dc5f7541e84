"""Pydantic schemas for API request/response."""
from tandem.schemas.sessions import (
    CreateSessionRequest,
    CreateSessionResponse,
    EnergyReadingIn,
    SegmentOut,
    TranscriptResponse,
)

__all__ = [
    "CreateSessionRequest",
    "CreateSessionResponse",
    "EnergyReadingIn",
    "SegmentOut",
    "TranscriptResponse",
]
