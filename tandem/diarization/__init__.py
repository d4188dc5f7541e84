"""
Speaker attribution across input streams (energy overlap heuristic).

- No audio separation and no voiceprints; labels name devices (SourceA/SourceB).
- Overlap: both streams loud in the same window -> Unknown.
"""
from __future__ import annotations

from tandem.diarization.attributor import AttributorConfig, SpeakerAttributor
from tandem.diarization.models import Speaker, StreamRole

__all__ = ["AttributorConfig", "Speaker", "SpeakerAttributor", "StreamRole"]
