"""
Speaker labels and stream roles.

Labels name input devices, not people:
- SourceA: first attributed stream (e.g. local microphone)
- SourceB: second attributed stream (e.g. remote/system audio)
- Unknown: both streams were loud in the same window (overlap)

Limitations:
- Attribution is an energy heuristic; crosstalk and echo between devices
  can shift labels.
- No voiceprints; two people sharing one microphone get the same label.
"""
from __future__ import annotations

from enum import Enum


class Speaker(str, Enum):
    SOURCE_A = "SourceA"
    SOURCE_B = "SourceB"
    UNKNOWN = "Unknown"

    def __str__(self) -> str:
        return self.value


class StreamRole(str, Enum):
    """Role of a stream in a session. Mixed is recorded but never transcribed or attributed."""

    SOURCE_A = "SourceA"
    SOURCE_B = "SourceB"
    MIXED = "Mixed"

    @property
    def speaker(self) -> Speaker | None:
        if self is StreamRole.SOURCE_A:
            return Speaker.SOURCE_A
        if self is StreamRole.SOURCE_B:
            return Speaker.SOURCE_B
        return None
