"""
SpeakerAttributor: which input stream was loud at a given time.

Answers "which device was loud enough", not "whose voice is this":
- Keeps a short energy history per attributed stream (2x window).
- For a query time t, looks at [t - window, t] on every stream, keeps readings
  above the energy threshold, groups them into runs (gap < run_gap_ms) and
  sums the duration of runs with at least two readings.
- Two or more streams above the overlap threshold -> Unknown.
- Exactly one -> that stream's label. None -> default label, since the VAD
  already confirmed speech and some label must be assigned.
"""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass

from tandem.audio.energy import EnergyReading
from tandem.config import Settings, get_settings
from tandem.diarization.models import Speaker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AttributorConfig:
    window_ms: int = 500
    overlap_threshold_ms: int = 200
    energy_threshold: float = 30.0
    run_gap_ms: int = 100
    default_speaker: Speaker = Speaker.SOURCE_A

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "AttributorConfig":
        settings = settings or get_settings()
        return cls(
            window_ms=settings.ATTRIBUTION_WINDOW_MS,
            overlap_threshold_ms=settings.ATTRIBUTION_OVERLAP_THRESHOLD_MS,
            energy_threshold=settings.ATTRIBUTION_ENERGY_THRESHOLD,
            run_gap_ms=settings.ATTRIBUTION_RUN_GAP_MS,
            default_speaker=Speaker(settings.ATTRIBUTION_DEFAULT_SPEAKER),
        )


def high_energy_duration(readings: list[EnergyReading], run_gap_ms: int) -> int:
    """Sum of (last - first) over runs of consecutive readings; single-reading runs count 0."""
    if not readings:
        return 0
    total = 0
    run_start = readings[0].timestamp
    prev = readings[0].timestamp
    run_len = 1
    for reading in readings[1:]:
        if reading.timestamp - prev < run_gap_ms:
            run_len += 1
        else:
            if run_len > 1:
                total += prev - run_start
            run_start = reading.timestamp
            run_len = 1
        prev = reading.timestamp
    if run_len > 1:
        total += prev - run_start
    return total


class SpeakerAttributor:
    """One per session. Histories are pruned on every add; nothing is archived."""

    def __init__(self, config: AttributorConfig | None = None) -> None:
        self._config = config or AttributorConfig.from_settings()
        self._labels: dict[str, Speaker] = {}
        self._history: dict[str, deque[EnergyReading]] = {}

    def register_stream(self, stream_id: str, speaker: Speaker) -> None:
        if speaker is Speaker.UNKNOWN:
            raise ValueError("a stream cannot be labelled Unknown")
        self._labels[stream_id] = speaker
        self._history.setdefault(stream_id, deque())

    def remove_stream(self, stream_id: str) -> None:
        """Forget a dropped stream; attribution falls back to the remaining ones."""
        self._labels.pop(stream_id, None)
        self._history.pop(stream_id, None)

    def add_energy(self, stream_id: str, reading: EnergyReading) -> None:
        history = self._history.get(stream_id)
        if history is None:
            return
        history.append(reading)
        cutoff = reading.timestamp - self._config.window_ms * 2
        while history and history[0].timestamp <= cutoff:
            history.popleft()

    def attribute(self, timestamp: int) -> Speaker:
        cfg = self._config
        window_start = timestamp - cfg.window_ms
        active: list[Speaker] = []
        for stream_id, history in self._history.items():
            loud = [
                r
                for r in history
                if window_start <= r.timestamp <= timestamp and r.energy > cfg.energy_threshold
            ]
            duration = high_energy_duration(loud, cfg.run_gap_ms)
            if duration > cfg.overlap_threshold_ms:
                active.append(self._labels[stream_id])
        if len(active) >= 2:
            logger.debug("Attribution at %d: overlap (%s)", timestamp, ", ".join(s.value for s in active))
            return Speaker.UNKNOWN
        if len(active) == 1:
            return active[0]
        return cfg.default_speaker

    def clear(self) -> None:
        for history in self._history.values():
            history.clear()

    def history(self, stream_id: str) -> list[EnergyReading]:
        return list(self._history.get(stream_id, ()))

    @property
    def streams(self) -> dict[str, Speaker]:
        return dict(self._labels)

    @property
    def window_ms(self) -> int:
        return self._config.window_ms
