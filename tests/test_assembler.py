from __future__ import annotations

import asyncio

import pytest

from tandem.diarization.models import Speaker
from tandem.errors import TranscriptFrozenError
from tandem.transcript.assembler import TranscriptAssembler
from tandem.transcript.models import SegmentStatus, TranscriptSegment


def _seg(sid: str, start: int, text: str = "hi", status: SegmentStatus = SegmentStatus.FINAL) -> TranscriptSegment:
    return TranscriptSegment(
        id=sid,
        start=start,
        end=start + 500,
        speaker=Speaker.SOURCE_A,
        text=text,
        status=status,
    )


def test_upsert_keeps_segments_sorted_by_start():
    assembler = TranscriptAssembler()
    assembler.upsert(_seg("c", 3_000))
    assembler.upsert(_seg("a", 1_000))
    assembler.upsert(_seg("b", 2_000))

    assert [s.id for s in assembler.snapshot()] == ["a", "b", "c"]


def test_upsert_replaces_by_id():
    assembler = TranscriptAssembler()
    assembler.upsert(_seg("a", 1_000, "(transcribing...)", SegmentStatus.PARTIAL))
    assembler.upsert(_seg("a", 1_000, "good morning"))

    snapshot = assembler.snapshot()
    assert len(snapshot) == 1
    assert snapshot[0].text == "good morning"
    assert snapshot[0].status is SegmentStatus.FINAL


def test_equal_starts_keep_arrival_order():
    assembler = TranscriptAssembler()
    assembler.upsert(_seg("first", 1_000))
    assembler.upsert(_seg("second", 1_000))

    assert [s.id for s in assembler.snapshot()] == ["first", "second"]


def test_remove():
    assembler = TranscriptAssembler()
    assembler.upsert(_seg("a", 1_000))

    assert assembler.remove("a") is True
    assert assembler.remove("a") is False
    assert len(assembler) == 0


def test_listeners_receive_changes_until_unsubscribed():
    assembler = TranscriptAssembler()
    seen = []
    unsubscribe = assembler.subscribe(lambda kind, seg: seen.append((kind, seg.id)))

    assembler.upsert(_seg("a", 1_000))
    assembler.remove("a")
    unsubscribe()
    assembler.upsert(_seg("b", 2_000))

    assert seen == [("upsert", "a"), ("remove", "a")]


def test_failing_listener_does_not_break_upsert():
    assembler = TranscriptAssembler()

    def broken(kind, seg):
        raise RuntimeError("boom")

    assembler.subscribe(broken)
    assembler.upsert(_seg("a", 1_000))

    assert assembler.get("a") is not None


def test_drain_without_dispatcher_freezes_immediately():
    assembler = TranscriptAssembler()
    assembler.upsert(_seg("a", 1_000))

    snapshot = asyncio.run(assembler.drain_and_snapshot())

    assert [s.id for s in snapshot] == ["a"]
    assert assembler.frozen
    with pytest.raises(TranscriptFrozenError):
        assembler.remove("a")
    with pytest.raises(TranscriptFrozenError):
        assembler.reset()
