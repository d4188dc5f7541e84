"""
TranscriptAssembler: authoritative, time-ordered transcript of one session.

- upsert() replaces by id or appends, then re-sorts by start (stable, so equal
  starts keep arrival order). Completion order of backend calls never affects
  transcript order.
- remove() drops an entry (e.g. placeholder for an empty backend result).
- Subscribers receive ("upsert" | "remove", segment) after every change.
- drain_and_snapshot() waits until no transcription is in flight, then
  freezes the transcript; this is the only way to obtain the final transcript.
"""
from __future__ import annotations

import logging
from typing import Awaitable, Callable

from tandem.errors import TranscriptFrozenError
from tandem.transcript.models import TranscriptSegment

logger = logging.getLogger(__name__)

TranscriptListener = Callable[[str, TranscriptSegment], None]


class TranscriptAssembler:
    def __init__(self) -> None:
        self._segments: list[TranscriptSegment] = []
        self._listeners: list[TranscriptListener] = []
        self._inflight_waiter: Callable[[], Awaitable[None]] | None = None
        self._frozen = False

    def bind_inflight(self, waiter: Callable[[], Awaitable[None]]) -> None:
        """Register the coroutine that completes once nothing is in flight (dispatcher.wait_idle)."""
        self._inflight_waiter = waiter

    def subscribe(self, listener: TranscriptListener) -> Callable[[], None]:
        """Add a change listener. Returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def upsert(self, segment: TranscriptSegment) -> None:
        self._check_mutable()
        for i, existing in enumerate(self._segments):
            if existing.id == segment.id:
                self._segments[i] = segment
                break
        else:
            self._segments.append(segment)
        self._segments.sort(key=lambda s: s.start)
        self._publish("upsert", segment)

    def remove(self, segment_id: str) -> bool:
        self._check_mutable()
        for i, existing in enumerate(self._segments):
            if existing.id == segment_id:
                del self._segments[i]
                self._publish("remove", existing)
                return True
        return False

    def get(self, segment_id: str) -> TranscriptSegment | None:
        for segment in self._segments:
            if segment.id == segment_id:
                return segment
        return None

    def snapshot(self) -> tuple[TranscriptSegment, ...]:
        return tuple(self._segments)

    def reset(self) -> None:
        """Clear at session start."""
        self._check_mutable()
        self._segments.clear()

    async def drain_and_snapshot(self) -> tuple[TranscriptSegment, ...]:
        """Block until the in-flight set is empty, freeze, return the ordered transcript."""
        if not self._frozen:
            if self._inflight_waiter is not None:
                await self._inflight_waiter()
            self._frozen = True
            logger.info("Transcript frozen with %d segments", len(self._segments))
        return self.snapshot()

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __len__(self) -> int:
        return len(self._segments)

    def _check_mutable(self) -> None:
        if self._frozen:
            raise TranscriptFrozenError("transcript is frozen")

    def _publish(self, kind: str, segment: TranscriptSegment) -> None:
        for listener in list(self._listeners):
            try:
                listener(kind, segment)
            except Exception:
                logger.exception("Transcript listener failed on %s %s", kind, segment.id)
