"""
AudioRingBuffer: time-indexed PCM frames for one stream.

The VAD only reports (start, end) timestamps; the audio for a segment is cut
from this buffer when SpeechEnd fires. Frames older than the retention window
are evicted as new frames arrive.
"""
from __future__ import annotations

from collections import deque

from tandem.config import get_settings


class AudioRingBuffer:
    """
    Keeps (timestamp_ms, frame) pairs for the last `retention_sec` seconds.
    Timestamps mark the frame start; each frame spans `frame_ms`.
    """

    def __init__(self, retention_sec: float | None = None, frame_ms: int | None = None) -> None:
        settings = get_settings()
        self._frame_ms = frame_ms or settings.FRAME_MS
        retention = retention_sec if retention_sec is not None else settings.AUDIO_BUFFER_SECONDS
        self._max_frames = max(1, int(retention * 1000) // self._frame_ms)
        self._frames: deque[tuple[int, bytes]] = deque(maxlen=self._max_frames)

    def push(self, timestamp: int, frame: bytes) -> None:
        self._frames.append((timestamp, frame))

    def slice(self, start_ms: int, end_ms: int) -> bytes:
        """Concatenate frames overlapping [start_ms, end_ms]. Empty when evicted or never seen."""
        if end_ms < start_ms:
            return b""
        parts = [
            frame
            for ts, frame in self._frames
            if ts + self._frame_ms > start_ms and ts <= end_ms
        ]
        return b"".join(parts)

    def clear(self) -> None:
        self._frames.clear()

    def __len__(self) -> int:
        return len(self._frames)

    @property
    def oldest_timestamp(self) -> int | None:
        return self._frames[0][0] if self._frames else None
