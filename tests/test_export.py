from __future__ import annotations

import json
import os

from tandem.config import Settings
from tandem.diarization.models import Speaker
from tandem.transcript.export import format_srt_timestamp, to_session_json, to_srt, write_exports
from tandem.transcript.models import SegmentStatus, TranscriptSegment


def _seg(sid: str, start: int, end: int, speaker: Speaker, text: str) -> TranscriptSegment:
    return TranscriptSegment(id=sid, start=start, end=end, speaker=speaker, text=text, status=SegmentStatus.FINAL)


def test_format_srt_timestamp_uses_utc_wall_clock():
    assert format_srt_timestamp(0) == "00:00:00,000"
    assert format_srt_timestamp(1_500) == "00:00:01,500"
    # 2021-01-01T13:45:07.089Z
    assert format_srt_timestamp(1_609_508_707_089) == "13:45:07,089"


def test_single_segment_srt():
    srt = to_srt([_seg("a", 0, 1_500, Speaker.SOURCE_A, "hello")])

    assert srt == "1\n00:00:00,000 --> 00:00:01,500\nSourceA: hello\n"


def test_blocks_are_separated_by_blank_line():
    srt = to_srt(
        [
            _seg("a", 0, 1_500, Speaker.SOURCE_A, "hello"),
            _seg("b", 2_000, 3_250, Speaker.UNKNOWN, "hi there"),
        ]
    )

    assert srt == (
        "1\n00:00:00,000 --> 00:00:01,500\nSourceA: hello\n"
        "\n"
        "2\n00:00:02,000 --> 00:00:03,250\nUnknown: hi there\n"
    )


def test_empty_transcript_exports():
    assert to_srt([]) == ""
    assert json.loads(to_session_json([])) == []


def test_session_json_records():
    data = json.loads(to_session_json([_seg("a", 10, 900, Speaker.SOURCE_B, "ok")]))

    assert data == [{"start": 10, "end": 900, "speaker": "SourceB", "text": "ok"}]


def test_write_exports_creates_both_files(tmp_path):
    settings = Settings(TRANSCRIPT_DIR=str(tmp_path / "out"))

    written = write_exports("s1", [_seg("a", 0, 1_500, Speaker.SOURCE_A, "hello")], settings)

    assert set(written) == {"json", "srt"}
    assert written["srt"] == os.path.join(str(tmp_path / "out"), "s1.srt")
    with open(written["srt"], encoding="utf-8") as f:
        assert f.read().startswith("1\n00:00:00,000")
    with open(written["json"], encoding="utf-8") as f:
        assert json.load(f)[0]["text"] == "hello"


def test_write_exports_disabled(tmp_path):
    settings = Settings(TRANSCRIPT_SAVE_ENABLED=False, TRANSCRIPT_DIR=str(tmp_path))

    assert write_exports("s1", [], settings) == {}
    assert os.listdir(tmp_path) == []
