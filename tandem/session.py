"""
Session: one live transcription session and everything it mutates.

Owns, for the life of the session:
- one VAD and one audio ring buffer per transcribed stream,
- the speaker attributor (energy histories),
- the segment dispatcher (in-flight set) and the transcript assembler,
- the continuous recorder.

Nothing here is process-wide; a Session is built at start and dropped at end.
All methods run on the event loop (the control thread), so the shared
structures need no locks.

Flow per frame: recorder <- frame; ring buffer <- frame; energy reading ->
attributor + VAD. On SpeechEnd the utterance audio is cut from the ring
buffer and pushed to the dispatcher with its attributed speaker.

Attribution timing: an utterance's speaker is resolved once, from the first
reading of its stream at or after start + window (the window then covers the
beginning of the utterance, before the energy history is pruned).
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, replace
from enum import Enum
from typing import Awaitable, Callable, Mapping

from tandem.asr.base import TranscriptionBackend
from tandem.audio.energy import EnergyReading, frame_energy
from tandem.audio.recorder import RecorderBase, create_recorder
from tandem.audio.ring_buffer import AudioRingBuffer
from tandem.audio.source import StreamSource, now_ms
from tandem.audio.vad import SpeechEnd, SpeechStart, StreamDropped, VADConfig, VADEvent, VoiceActivityDetector
from tandem.config import Settings, get_settings
from tandem.diarization.attributor import AttributorConfig, SpeakerAttributor
from tandem.diarization.models import Speaker, StreamRole
from tandem.errors import AcquisitionError, SessionStartError, SessionStateError, StreamDroppedError
from tandem.transcript.assembler import TranscriptAssembler, TranscriptListener
from tandem.transcript.dispatcher import DispatcherConfig, SegmentDispatcher
from tandem.transcript.export import write_exports
from tandem.transcript.models import TranscriptSegment

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    CREATED = "created"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass
class _Stream:
    stream_id: str
    role: StreamRole
    vad: VoiceActivityDetector | None  # None for the mixed stream (recorded only)
    ring: AudioRingBuffer | None
    speaker: Speaker | None = None  # resolved speaker of the open utterance
    last_timestamp: int | None = None
    halted: bool = False
    dropped: bool = False


class Session:
    def __init__(
        self,
        backend: TranscriptionBackend,
        settings: Settings | None = None,
        session_id: str | None = None,
        recorder: RecorderBase | None = None,
        vad_config: VADConfig | None = None,
        attributor_config: AttributorConfig | None = None,
        dispatcher_config: DispatcherConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._settings = settings or get_settings()
        self.session_id = session_id or uuid.uuid4().hex[:12]
        self._vad_config = vad_config or VADConfig.from_settings(self._settings)
        self._attributor = SpeakerAttributor(attributor_config or AttributorConfig.from_settings(self._settings))
        self._assembler = TranscriptAssembler()
        self._dispatcher = SegmentDispatcher(
            backend,
            self._assembler,
            dispatcher_config or DispatcherConfig.from_settings(self._settings),
            sleep=sleep,
        )
        self._recorder = recorder or create_recorder(self.session_id, self._settings)
        self._streams: dict[str, _Stream] = {}
        self._pumps: dict[str, asyncio.Task[None]] = {}
        self._final: tuple[TranscriptSegment, ...] | None = None
        self._stop_lock = asyncio.Lock()
        self._stopped = asyncio.Event()
        self.state = SessionState.CREATED
        self.warnings: list[str] = []
        self.recordings: dict[str, str | None] = {}
        self.exports: dict[str, str] = {}
        self.started_at: int | None = None

    # --- lifecycle ---

    async def start(
        self,
        streams: Mapping[str, StreamRole],
        sources: Mapping[str, StreamSource] | None = None,
    ) -> None:
        """
        Register streams and open the given sources. A stream whose source
        fails to open is skipped with a warning; the session runs with the
        rest. Raises SessionStartError when nothing could be opened.
        """
        if self.state is not SessionState.CREATED:
            raise SessionStateError(f"session {self.session_id} already {self.state.value}")
        sources = dict(sources or {})
        opened: list[str] = []
        for stream_id, role in streams.items():
            role = StreamRole(role)
            source = sources.get(stream_id)
            if source is not None:
                try:
                    await source.open()
                except AcquisitionError as e:
                    self._warn(f"stream {stream_id} could not be opened: {e}")
                    sources.pop(stream_id, None)
                    continue
            self._register(stream_id, role)
            opened.append(stream_id)
        if not opened:
            raise SessionStartError(f"session {self.session_id}: no stream could be opened")

        self._assembler.reset()
        self._attributor.clear()
        try:
            self._recorder.start(opened)
        except Exception:
            logger.exception("Session %s: recorder failed to start", self.session_id)
        self.state = SessionState.RUNNING
        self.started_at = now_ms()
        for stream_id, source in sources.items():
            if stream_id in self._streams:
                self._pumps[stream_id] = asyncio.create_task(self._pump(source), name=f"pump-{stream_id}")
        logger.info(
            "Session %s started: %s",
            self.session_id,
            ", ".join(f"{s.stream_id}={s.role.value}" for s in self._streams.values()),
        )

    def _register(self, stream_id: str, role: StreamRole) -> None:
        if role is StreamRole.MIXED:
            self._streams[stream_id] = _Stream(stream_id, role, vad=None, ring=None)
            return
        vad = VoiceActivityDetector(stream_id, self._vad_config, on_event=self._on_vad_event)
        ring = AudioRingBuffer(self._settings.AUDIO_BUFFER_SECONDS, self._settings.FRAME_MS)
        self._streams[stream_id] = _Stream(stream_id, role, vad=vad, ring=ring)
        self._attributor.register_stream(stream_id, role.speaker)

    async def attach(self, source: StreamSource) -> None:
        """Pump a source that connects after start (e.g. a WebSocket). Returns when it ends."""
        stream = self._require(source.stream_id)
        if stream.halted:
            raise SessionStateError(f"stream {source.stream_id} already ended")
        try:
            await source.open()
        except AcquisitionError as e:
            self._warn(f"stream {source.stream_id} could not be opened: {e}")
            raise
        await self._pump(source)

    async def _pump(self, source: StreamSource) -> None:
        stream_id = source.stream_id
        try:
            async for frame, timestamp in source.frames():
                if self.state is not SessionState.RUNNING:
                    return
                self.feed_frame(stream_id, frame, timestamp)
        except StreamDroppedError as e:
            self.drop_stream(stream_id, str(e))
        else:
            if self.state is SessionState.RUNNING:
                self.end_stream(stream_id)

    async def stop(self) -> tuple[TranscriptSegment, ...]:
        """
        Halt every VAD (open utterances are closed and dispatched), let
        in-flight transcriptions finish or exhaust retries, then return the
        frozen transcript. Safe to call more than once.
        """
        async with self._stop_lock:
            if self._final is not None:
                return self._final
            if self.state is SessionState.CREATED:
                raise SessionStateError(f"session {self.session_id} was never started")
            for task in self._pumps.values():
                if not task.done():
                    task.cancel()
            for stream in self._streams.values():
                if not stream.halted:
                    self._halt(stream, self._last_timestamp(stream))
            self.state = SessionState.STOPPED
            self._dispatcher.close()
            self._final = await self._assembler.drain_and_snapshot()

            loop = asyncio.get_running_loop()
            try:
                self.recordings = await loop.run_in_executor(None, self._recorder.finalize)
            except Exception:
                logger.exception("Session %s: recorder finalize failed", self.session_id)
            self.exports = write_exports(self.session_id, self._final, self._settings)
            logger.info(
                "Session %s stopped: %d segments, %d backend calls",
                self.session_id,
                len(self._final),
                self._dispatcher.backend_calls,
            )
            self._stopped.set()
            return self._final

    # --- stream input ---

    def feed_frame(self, stream_id: str, frame: bytes, timestamp: int) -> None:
        """One PCM frame of a stream at `timestamp` (ms since epoch)."""
        stream = self._require(stream_id)
        if stream.halted:
            return
        try:
            self._recorder.append(stream_id, frame)
        except Exception:
            logger.exception("Session %s: recorder append failed for %s", self.session_id, stream_id)
        if stream.ring is None:
            stream.last_timestamp = timestamp
            return
        stream.ring.push(timestamp, frame)
        self.feed_energy(stream_id, EnergyReading(timestamp, frame_energy(frame)))

    def feed_energy(self, stream_id: str, reading: EnergyReading) -> None:
        """Energy-only input (client computed the energy itself)."""
        stream = self._require(stream_id)
        stream.last_timestamp = reading.timestamp
        if stream.halted or stream.vad is None:
            return
        self._attributor.add_energy(stream_id, reading)
        vad = stream.vad
        if (
            stream.speaker is None
            and vad.speech_start is not None
            and reading.timestamp >= vad.speech_start + self._attributor.window_ms
        ):
            stream.speaker = self._attributor.attribute(reading.timestamp)
        vad.push(reading)

    def end_stream(self, stream_id: str, timestamp: int | None = None) -> None:
        """StreamEnded: close an open utterance normally, then stop listening to this stream."""
        stream = self._require(stream_id)
        if stream.halted:
            return
        self._halt(stream, timestamp if timestamp is not None else self._last_timestamp(stream))
        self._attributor.remove_stream(stream_id)
        logger.info("Session %s: stream %s ended", self.session_id, stream_id)

    def drop_stream(self, stream_id: str, reason: str = "", timestamp: int | None = None) -> None:
        """StreamDropped: discard the open utterance; attribution falls back to remaining streams."""
        stream = self._require(stream_id)
        if stream.halted:
            return
        ts = timestamp if timestamp is not None else self._last_timestamp(stream)
        stream.halted = True
        stream.dropped = True
        if stream.vad is not None:
            stream.vad.stream_dropped(ts, reason)
        self._attributor.remove_stream(stream_id)
        self._warn(f"stream {stream_id} dropped: {reason or 'unknown error'}")

    @staticmethod
    def _last_timestamp(stream: _Stream) -> int:
        return stream.last_timestamp if stream.last_timestamp is not None else now_ms()

    def _halt(self, stream: _Stream, timestamp: int) -> None:
        stream.halted = True
        if stream.vad is not None:
            stream.vad.finish(timestamp)

    # --- VAD events ---

    def _on_vad_event(self, event: VADEvent) -> None:
        stream = self._streams[event.stream_id]
        if isinstance(event, SpeechStart):
            stream.speaker = None
        elif isinstance(event, SpeechEnd):
            self._dispatch(stream, event)
        elif isinstance(event, StreamDropped):
            stream.speaker = None

    def _dispatch(self, stream: _Stream, event: SpeechEnd) -> None:
        segment = event.segment
        speaker = stream.speaker
        if speaker is None:
            speaker = self._attributor.attribute(min(segment.end, segment.start + self._attributor.window_ms))
        stream.speaker = None
        # Include the debounce run that preceded the confirmed start
        pre_roll = self._vad_config.speech_debounce_samples * self._vad_config.frame_ms
        audio = stream.ring.slice(segment.start - pre_roll, segment.end) if stream.ring is not None else b""
        self._dispatcher.push(replace(segment, speaker=speaker), speaker, audio)

    # --- views ---

    async def wait_stopped(self) -> None:
        """Return once stop() has drained and frozen the transcript."""
        await self._stopped.wait()

    def subscribe(self, listener: TranscriptListener) -> Callable[[], None]:
        return self._assembler.subscribe(listener)

    def snapshot(self) -> tuple[TranscriptSegment, ...]:
        return self._assembler.snapshot()

    @property
    def streams(self) -> dict[str, StreamRole]:
        return {s.stream_id: s.role for s in self._streams.values()}

    @property
    def active_streams(self) -> list[str]:
        return [s.stream_id for s in self._streams.values() if not s.halted]

    @property
    def in_flight(self) -> frozenset[str]:
        return self._dispatcher.in_flight

    @property
    def dispatcher(self) -> SegmentDispatcher:
        return self._dispatcher

    @property
    def assembler(self) -> TranscriptAssembler:
        return self._assembler

    @property
    def attributor(self) -> SpeakerAttributor:
        return self._attributor

    def _require(self, stream_id: str) -> _Stream:
        if self.state is not SessionState.RUNNING:
            raise SessionStateError(f"session {self.session_id} is {self.state.value}")
        stream = self._streams.get(stream_id)
        if stream is None:
            raise SessionStateError(f"unknown stream {stream_id!r} in session {self.session_id}")
        return stream

    def _warn(self, message: str) -> None:
        logger.warning("Session %s: %s", self.session_id, message)
        self.warnings.append(message)
