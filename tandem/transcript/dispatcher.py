"""
SegmentDispatcher: lifecycle of each detected utterance.

Identity-level dedup, at-least-once delivery to the backend:
1. push() assigns an opaque id and publishes a Partial placeholder at once.
2. The backend call runs as an asyncio task, bounded by a per-call timeout.
3. Non-empty text -> Final (same id). Empty/None -> entry removed
   ("no speech detected" is not an error). An utterance with no audio at all
   (energy-only input) skips the backend and is removed the same way.
4. Failure or timeout -> fixed backoff, exactly one retry. A second failure
   marks the entry Errored and keeps it, so real failures stay visible.

A push for an id that is already in flight is a no-op. The in-flight map is
only touched from the event loop, so it needs no lock.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, replace
from typing import Awaitable, Callable

from tandem.asr.base import TranscriptionBackend, TranscriptionResult
from tandem.config import Settings, get_settings
from tandem.diarization.models import Speaker
from tandem.errors import TranscriptionError, TranscriptionTimeout
from tandem.transcript.assembler import TranscriptAssembler
from tandem.transcript.models import SegmentStatus, SpeechSegment, TranscriptSegment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DispatcherConfig:
    timeout_sec: float = 30.0
    retry_backoff_sec: float = 2.0
    placeholder_text: str = "(transcribing...)"
    sample_rate: int = 16000
    encoding: str = "LINEAR16"
    language: str | None = None
    max_concurrency: int = 0  # 0 = unbounded

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "DispatcherConfig":
        settings = settings or get_settings()
        return cls(
            timeout_sec=settings.DISPATCH_TIMEOUT_SECONDS,
            retry_backoff_sec=settings.DISPATCH_RETRY_BACKOFF_SECONDS,
            placeholder_text=settings.TRANSCRIPT_PLACEHOLDER_TEXT,
            sample_rate=settings.SAMPLE_RATE,
            encoding=settings.ASR_ENCODING,
            language=settings.ASR_LANGUAGE or None,
            max_concurrency=settings.DISPATCH_MAX_CONCURRENCY,
        )


class SegmentDispatcher:
    """One per session. Must be used from within the session's event loop."""

    def __init__(
        self,
        backend: TranscriptionBackend,
        assembler: TranscriptAssembler,
        config: DispatcherConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._backend = backend
        self._assembler = assembler
        self._config = config or DispatcherConfig.from_settings()
        self._sleep = sleep
        self._inflight: dict[str, asyncio.Task[None]] = {}
        self._semaphore = (
            asyncio.Semaphore(self._config.max_concurrency) if self._config.max_concurrency > 0 else None
        )
        self._closed = False
        self.backend_calls = 0
        assembler.bind_inflight(self.wait_idle)

    def push(
        self,
        segment: SpeechSegment,
        speaker: Speaker,
        audio: bytes,
        segment_id: str | None = None,
    ) -> str | None:
        """
        Accept one utterance. Returns its id, or None when the dispatcher is closed.
        Pushing an id that is still in flight does nothing and returns that id.
        """
        if self._closed:
            logger.warning("Dispatcher closed; rejecting segment %s-%s", segment.start, segment.end)
            return None
        if segment_id is not None and segment_id in self._inflight:
            logger.debug("Segment %s already in flight; ignoring duplicate push", segment_id)
            return segment_id

        sid = segment_id or uuid.uuid4().hex
        placeholder = TranscriptSegment(
            id=sid,
            start=segment.start,
            end=segment.end,
            speaker=speaker,
            text=self._config.placeholder_text,
            status=SegmentStatus.PARTIAL,
            source_stream=segment.source_stream,
        )
        self._assembler.upsert(placeholder)
        self._inflight[sid] = asyncio.create_task(self._run(placeholder, audio), name=f"transcribe-{sid}")
        logger.debug(
            "Segment %s dispatched (%s, %dms, %d bytes)", sid, speaker.value, segment.duration_ms, len(audio)
        )
        return sid

    async def _run(self, placeholder: TranscriptSegment, audio: bytes) -> None:
        sid = placeholder.id
        if not audio:
            # energy-only streams carry no samples; nothing to transcribe
            logger.info("Segment %s has no audio; removing placeholder", sid)
            self._assembler.remove(sid)
            self._inflight.pop(sid, None)
            return
        try:
            result = await self._transcribe_with_retry(sid, audio)
        except TranscriptionError as e:
            message = str(e) or type(e).__name__
            logger.error("Segment %s failed after retry: %s", sid, message)
            self._assembler.upsert(
                replace(
                    placeholder,
                    status=SegmentStatus.ERRORED,
                    text=f"[transcription failed: {message}]",
                    error=message,
                )
            )
        else:
            text = ((result.text if result else "") or "").strip()
            if text:
                self._assembler.upsert(
                    replace(placeholder, status=SegmentStatus.FINAL, text=text, confidence=result.confidence)
                )
            else:
                logger.info("Segment %s: no speech recognized; removing placeholder", sid)
                self._assembler.remove(sid)
        finally:
            self._inflight.pop(sid, None)

    async def _transcribe_with_retry(self, sid: str, audio: bytes) -> TranscriptionResult | None:
        try:
            return await self._call_backend(audio)
        except TranscriptionError as e:
            logger.warning(
                "Segment %s: %s (%s); retrying in %.1fs",
                sid,
                type(e).__name__,
                e,
                self._config.retry_backoff_sec,
            )
        await self._sleep(self._config.retry_backoff_sec)
        return await self._call_backend(audio)

    async def _call_backend(self, audio: bytes) -> TranscriptionResult | None:
        cfg = self._config
        self.backend_calls += 1
        try:
            if self._semaphore is not None:
                async with self._semaphore:
                    return await self._transcribe_once(audio)
            return await self._transcribe_once(audio)
        except asyncio.TimeoutError as e:
            raise TranscriptionTimeout(f"no response within {cfg.timeout_sec:.0f}s") from e
        except TranscriptionError:
            raise
        except Exception as e:
            logger.exception("Backend %s raised unexpectedly", self._backend.name)
            raise TranscriptionError(f"{type(e).__name__}: {e}") from e

    async def _transcribe_once(self, audio: bytes) -> TranscriptionResult | None:
        cfg = self._config
        return await asyncio.wait_for(
            self._backend.transcribe(audio, cfg.sample_rate, cfg.encoding, cfg.language),
            timeout=cfg.timeout_sec,
        )

    async def wait_idle(self) -> None:
        """Join every pending transcription, including ones pushed while waiting."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight.values()), return_exceptions=True)

    def close(self) -> None:
        """Reject further pushes. In-flight calls keep running until they finish or exhaust retries."""
        self._closed = True

    @property
    def in_flight(self) -> frozenset[str]:
        return frozenset(self._inflight)

    @property
    def closed(self) -> bool:
        return self._closed
