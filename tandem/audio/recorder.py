"""
ContinuousRecorder: archival recording of every stream of a session.

- Independent of VAD and transcription; sees the raw PCM as received.
- One in-memory chunk list per stream (including the mixed stream); chunks
  are committed in slices of RECORD_SLICE_MS of audio.
- stop() writes one WAV per stream: one open, one write, one close.
- Any failure here is logged and reported as None for that stream; it must
  never abort the transcription pipeline.
"""
from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from typing import Iterable, Optional

from tandem.audio.wav import write_wav
from tandem.config import Settings, get_settings

logger = logging.getLogger(__name__)


class RecorderBase(ABC):
    """append() accepts raw PCM per stream; finalize() writes one file per stream."""

    @abstractmethod
    def start(self, stream_ids: Iterable[str]) -> None:
        ...

    @abstractmethod
    def append(self, stream_id: str, data: bytes) -> None:
        """Buffer PCM bytes. Safe from the receive loop; never raises."""
        ...

    @abstractmethod
    def finalize(self) -> dict[str, Optional[str]]:
        """Write files; returns {stream_id: path or None}. Blocking: run in executor."""
        ...


class NoOpRecorder(RecorderBase):
    """Recorder when recording disabled. No buffer, no file I/O."""

    def start(self, stream_ids: Iterable[str]) -> None:
        pass

    def append(self, stream_id: str, data: bytes) -> None:
        pass

    def finalize(self) -> dict[str, Optional[str]]:
        return {}


def _validate_pcm_chunk(data: bytes) -> bool:
    """PCM contract: length divisible by 2 (int16), non-empty."""
    if len(data) == 0:
        logger.debug("Recording: dropped empty chunk")
        return False
    if len(data) % 2 != 0:
        logger.warning("Recording: dropped malformed chunk (length %d not divisible by 2)", len(data))
        return False
    return True


class _StreamTrack:
    def __init__(self, slice_bytes: int) -> None:
        self.slice_bytes = slice_bytes
        self.slices: list[bytes] = []
        self.pending = bytearray()
        self.dropped = 0

    def append(self, data: bytes) -> None:
        self.pending.extend(data)
        while len(self.pending) >= self.slice_bytes:
            self.slices.append(bytes(self.pending[: self.slice_bytes]))
            del self.pending[: self.slice_bytes]

    def flush(self) -> bytes:
        if self.pending:
            self.slices.append(bytes(self.pending))
            self.pending.clear()
        return b"".join(self.slices)


class ContinuousRecorder(RecorderBase):
    def __init__(self, session_id: str, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self._session_id = session_id
        self._sample_rate = settings.SAMPLE_RATE
        self._record_dir = settings.RECORD_DIR
        bytes_per_ms = settings.SAMPLE_RATE * settings.SAMPLE_WIDTH * settings.CHANNELS // 1000
        self._slice_bytes = max(settings.SAMPLE_WIDTH, bytes_per_ms * settings.RECORD_SLICE_MS)
        self._tracks: dict[str, _StreamTrack] = {}
        self._finalized = False

    def start(self, stream_ids: Iterable[str]) -> None:
        for stream_id in stream_ids:
            self._tracks.setdefault(stream_id, _StreamTrack(self._slice_bytes))
        logger.info("Recording started for %s", ", ".join(self._tracks) or "no streams")

    def append(self, stream_id: str, data: bytes) -> None:
        if self._finalized:
            return
        track = self._tracks.get(stream_id)
        if track is None:
            track = self._tracks[stream_id] = _StreamTrack(self._slice_bytes)
        if not _validate_pcm_chunk(data):
            track.dropped += 1
            return
        track.append(data)

    def finalize(self) -> dict[str, Optional[str]]:
        if self._finalized:
            return {}
        self._finalized = True
        results: dict[str, Optional[str]] = {}
        for stream_id, track in self._tracks.items():
            pcm = track.flush()
            if not pcm:
                if track.dropped:
                    logger.debug("Recording %s: no data to write (all chunks dropped: %d)", stream_id, track.dropped)
                results[stream_id] = None
                continue
            path = os.path.join(self._record_dir, f"session_{self._session_id}_{stream_id}.wav")
            try:
                write_wav(pcm, path, self._sample_rate)
            except Exception:
                logger.exception("Recording %s: failed to write %s", stream_id, path)
                results[stream_id] = None
                continue
            results[stream_id] = path
        return results

    def slice_count(self, stream_id: str) -> int:
        track = self._tracks.get(stream_id)
        return len(track.slices) if track else 0


def create_recorder(session_id: str, settings: Settings | None = None) -> RecorderBase:
    """ContinuousRecorder when ENABLE_RECORDING is true. Disabled by default."""
    settings = settings or get_settings()
    if settings.ENABLE_RECORDING:
        return ContinuousRecorder(session_id, settings)
    return NoOpRecorder()
