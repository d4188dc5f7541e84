"""
VoiceActivityDetector: energy-based speech/silence state machine for one stream.

Two states, Idle and Speaking, driven by periodic energy readings (one per
20ms frame by default):
- energy > speech_threshold: speech-like
- energy < silence_threshold: silence-like
- in between: weak evidence; while Speaking it counts towards silence,
  while Idle it only lets both counters decay

Counters decay by one on disqualifying readings instead of resetting, so a
single noisy frame does not flicker the state.

Idle -> Speaking after `speech_debounce_samples` speech-like readings.
Speaking -> Idle after `silence_run_samples` silence-like readings; utterances
shorter than `min_speech_duration_ms` are dropped as noise. There is no
mid-speech timeout: long utterances are never truncated here.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Union

from tandem.audio.energy import EnergyReading
from tandem.config import Settings, get_settings
from tandem.transcript.models import SpeechSegment

logger = logging.getLogger(__name__)


class VADState(str, Enum):
    IDLE = "Idle"
    SPEAKING = "Speaking"


@dataclass(frozen=True)
class SpeechStart:
    stream_id: str
    timestamp: int


@dataclass(frozen=True)
class SpeechEnd:
    stream_id: str
    segment: SpeechSegment


@dataclass(frozen=True)
class StreamDropped:
    stream_id: str
    timestamp: int
    reason: str


VADEvent = Union[SpeechStart, SpeechEnd, StreamDropped]


@dataclass(frozen=True)
class VADConfig:
    speech_threshold: float = 30.0
    silence_threshold: float = 10.0
    speech_debounce_samples: int = 5
    silence_duration_ms: int = 500
    frame_ms: int = 20
    min_speech_duration_ms: int = 500
    silence_run_samples: int | None = None  # derived from silence_duration_ms when None

    @property
    def silence_samples(self) -> int:
        if self.silence_run_samples is not None:
            return max(1, self.silence_run_samples)
        return max(1, self.silence_duration_ms // self.frame_ms)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "VADConfig":
        settings = settings or get_settings()
        return cls(
            speech_threshold=settings.VAD_SPEECH_THRESHOLD,
            silence_threshold=settings.VAD_SILENCE_THRESHOLD,
            speech_debounce_samples=settings.VAD_SPEECH_DEBOUNCE_SAMPLES,
            silence_duration_ms=settings.VAD_SILENCE_DURATION_MS,
            frame_ms=settings.FRAME_MS,
            min_speech_duration_ms=settings.VAD_MIN_SPEECH_DURATION_MS,
        )


class VoiceActivityDetector:
    """
    One instance per stream. push() is called from the frame callback;
    it never blocks and never does I/O.
    """

    def __init__(
        self,
        stream_id: str,
        config: VADConfig | None = None,
        on_event: Callable[[VADEvent], None] | None = None,
    ) -> None:
        if config is None:
            config = VADConfig.from_settings()
        if config.silence_threshold > config.speech_threshold:
            raise ValueError("silence_threshold must not exceed speech_threshold")
        self._stream_id = stream_id
        self._config = config
        self._on_event = on_event
        self._state = VADState.IDLE
        self._speech_run = 0
        self._silence_run = 0
        self._start: int | None = None
        self._halted = False

    def push(self, reading: EnergyReading) -> VADEvent | None:
        """Consume one energy reading. Returns the event fired by it, if any."""
        if self._halted:
            return None
        cfg = self._config
        energy = reading.energy
        if energy > cfg.speech_threshold:
            self._speech_run += 1
            self._silence_run = max(0, self._silence_run - 1)
        elif energy < cfg.silence_threshold:
            self._silence_run += 1
            self._speech_run = max(0, self._speech_run - 1)
        elif self._state is VADState.SPEAKING:
            self._silence_run += 1
            self._speech_run = max(0, self._speech_run - 1)
        else:
            self._speech_run = max(0, self._speech_run - 1)
            self._silence_run = max(0, self._silence_run - 1)

        if self._state is VADState.IDLE and self._speech_run >= cfg.speech_debounce_samples:
            self._state = VADState.SPEAKING
            self._start = reading.timestamp
            self._reset_runs()
            logger.debug("VAD %s: speech start at %d", self._stream_id, reading.timestamp)
            return self._emit(SpeechStart(self._stream_id, reading.timestamp))

        if self._state is VADState.SPEAKING and self._silence_run >= cfg.silence_samples:
            return self._close_segment(reading.timestamp)
        return None

    def finish(self, timestamp: int) -> VADEvent | None:
        """Stream ended normally: close any open utterance at `timestamp`, then halt."""
        if self._halted:
            return None
        event = None
        if self._state is VADState.SPEAKING:
            event = self._close_segment(timestamp)
        self._halted = True
        return event

    def stream_dropped(self, timestamp: int, reason: str = "") -> VADEvent | None:
        """Stream failed: go Idle without emitting the open utterance, report StreamDropped."""
        if self._halted:
            return None
        if self._state is VADState.SPEAKING:
            logger.info("VAD %s: discarding open utterance from %s (stream dropped)", self._stream_id, self._start)
        self._state = VADState.IDLE
        self._start = None
        self._reset_runs()
        self._halted = True
        return self._emit(StreamDropped(self._stream_id, timestamp, reason))

    def _close_segment(self, now: int) -> VADEvent | None:
        start = self._start if self._start is not None else now
        self._state = VADState.IDLE
        self._start = None
        self._reset_runs()
        duration = now - start
        if duration < self._config.min_speech_duration_ms:
            logger.debug("VAD %s: dropped %dms utterance (below minimum)", self._stream_id, duration)
            return None
        segment = SpeechSegment(start=start, end=now, source_stream=self._stream_id)
        logger.debug("VAD %s: speech end at %d (%dms)", self._stream_id, now, duration)
        return self._emit(SpeechEnd(self._stream_id, segment))

    def _reset_runs(self) -> None:
        self._speech_run = 0
        self._silence_run = 0

    def _emit(self, event: VADEvent) -> VADEvent:
        if self._on_event is not None:
            self._on_event(event)
        return event

    @property
    def stream_id(self) -> str:
        return self._stream_id

    @property
    def state(self) -> VADState:
        return self._state

    @property
    def halted(self) -> bool:
        return self._halted

    @property
    def speech_start(self) -> int | None:
        return self._start
