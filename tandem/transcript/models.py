"""
Segment types for the transcript pipeline.

- SpeechSegment: span of detected speech on one stream (ms since epoch).
  Created by the VAD on SpeechEnd; immutable; consumed once by the dispatcher.
- TranscriptSegment: one entry of the transcript. Identity is the opaque id
  assigned by the dispatcher, never (start, end): overlapping or retried
  segments may share fuzzy timestamps.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tandem.diarization.models import Speaker


class SegmentStatus(str, Enum):
    PARTIAL = "Partial"  # placeholder awaiting backend result
    FINAL = "Final"
    ERRORED = "Errored"  # retry exhausted; kept for audit


@dataclass(frozen=True)
class SpeechSegment:
    start: int
    end: int
    source_stream: str
    speaker: Speaker | None = None  # set by the session after attribution

    @property
    def duration_ms(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class TranscriptSegment:
    """
    One transcript entry. start/end: ms since epoch.
    confidence: backend estimate when available.
    error: diagnostic message when status is Errored.
    """

    id: str
    start: int
    end: int
    speaker: Speaker
    text: str
    status: SegmentStatus
    confidence: float | None = None
    source_stream: str | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["speaker"] = self.speaker.value
        data["status"] = self.status.value
        return data
