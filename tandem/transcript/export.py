"""
Transcript export: SRT and session JSON.

SRT block for segment i (1-based):
    <i>
    <HH:MM:SS,mmm> --> <HH:MM:SS,mmm>
    <speaker>: <text>
Blocks are separated by one blank line. Timestamps are UTC wall-clock fields
of the segment's ms-since-epoch values.

Session JSON: ordered array of {start, end, speaker, text} in ms.

write_exports() persists both files at session end; write failures are
logged, never raised, so a full disk cannot lose the in-memory transcript.
"""
from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from typing import Iterable

from tandem.config import Settings, get_settings
from tandem.transcript.models import TranscriptSegment

logger = logging.getLogger(__name__)


def format_srt_timestamp(ms: int) -> str:
    dt = datetime.fromtimestamp(ms / 1000.0, tz=timezone.utc)
    return f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d},{ms % 1000:03d}"


def to_srt(segments: Iterable[TranscriptSegment]) -> str:
    blocks = []
    for i, seg in enumerate(segments, start=1):
        blocks.append(
            f"{i}\n"
            f"{format_srt_timestamp(seg.start)} --> {format_srt_timestamp(seg.end)}\n"
            f"{seg.speaker.value}: {seg.text}\n"
        )
    return "\n".join(blocks)


def to_session_records(segments: Iterable[TranscriptSegment]) -> list[dict]:
    return [
        {"start": seg.start, "end": seg.end, "speaker": seg.speaker.value, "text": seg.text}
        for seg in segments
    ]


def to_session_json(segments: Iterable[TranscriptSegment]) -> str:
    return json.dumps(to_session_records(segments), ensure_ascii=False, indent=2)


def write_exports(
    session_id: str,
    segments: Iterable[TranscriptSegment],
    settings: Settings | None = None,
) -> dict[str, str]:
    """Write <session_id>.json and <session_id>.srt. Returns {format: path} for files written."""
    settings = settings or get_settings()
    if not settings.TRANSCRIPT_SAVE_ENABLED:
        return {}
    segments = list(segments)
    written: dict[str, str] = {}
    outputs = {
        "json": to_session_json(segments),
        "srt": to_srt(segments),
    }
    try:
        os.makedirs(settings.TRANSCRIPT_DIR, exist_ok=True)
    except OSError as e:
        logger.warning("Transcript dir %s unavailable: %s", settings.TRANSCRIPT_DIR, e)
        return written
    for fmt, content in outputs.items():
        path = os.path.join(settings.TRANSCRIPT_DIR, f"{session_id}.{fmt}")
        try:
            with open(path, "w", encoding="utf-8") as f:
                f.write(content)
            written[fmt] = path
        except OSError as e:
            logger.warning("Transcript export failed for %s: %s", path, e)
    if written:
        logger.info("Transcript exported: %s", ", ".join(written.values()))
    return written
