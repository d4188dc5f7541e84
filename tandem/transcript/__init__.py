"""Transcript handling: segment lifecycle, ordered assembly, export."""
from .assembler import TranscriptAssembler
from .dispatcher import DispatcherConfig, SegmentDispatcher
from .export import to_session_json, to_srt, write_exports
from .models import SegmentStatus, SpeechSegment, TranscriptSegment

__all__ = [
    "DispatcherConfig",
    "SegmentDispatcher",
    "SegmentStatus",
    "SpeechSegment",
    "TranscriptAssembler",
    "TranscriptSegment",
    "to_session_json",
    "to_srt",
    "write_exports",
]
