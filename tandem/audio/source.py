"""
Stream sources: where PCM frames of one origin come from.

Contract:
- open() prepares the stream; raises AcquisitionError when it cannot.
- frames() yields (pcm_frame, timestamp_ms). A normal end of iteration is
  StreamEnded; StreamDroppedError signals an error mid-stream.

WebSocketStreamSource reads binary PCM 16-bit mono from a FastAPI WebSocket
and timestamps frames on the session clock (ms since epoch): the first frame
takes the arrival time, later frames advance by FRAME_MS so timestamps follow
audio time rather than network jitter.
"""
from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import AsyncIterator

from fastapi import WebSocket

from tandem.audio.receiver import FrameSplitter
from tandem.config import get_settings
from tandem.errors import StreamDroppedError


def now_ms() -> int:
    return int(time.time() * 1000)


class StreamSource(ABC):
    def __init__(self, stream_id: str) -> None:
        self.stream_id = stream_id

    async def open(self) -> None:
        """Acquire the stream. Default: nothing to acquire."""

    @abstractmethod
    def frames(self) -> AsyncIterator[tuple[bytes, int]]:
        ...


class FrameClock:
    """Assigns frame timestamps: anchored at first use, then advanced by frame_ms per frame."""

    def __init__(self, frame_ms: int, start_ms: int | None = None) -> None:
        self._frame_ms = frame_ms
        self._next = start_ms

    def stamp(self) -> int:
        if self._next is None:
            self._next = now_ms()
        ts = self._next
        self._next += self._frame_ms
        return ts

    def resync(self, floor_ms: int) -> None:
        """Jump forward after a gap in delivery (audio time never runs behind wall time)."""
        if self._next is None or self._next < floor_ms:
            self._next = floor_ms


class WebSocketStreamSource(StreamSource):
    def __init__(self, stream_id: str, websocket: WebSocket, frame_bytes: int | None = None) -> None:
        super().__init__(stream_id)
        settings = get_settings()
        self._ws = websocket
        self._splitter = FrameSplitter(frame_bytes)
        self._frame_ms = settings.FRAME_MS
        self._clock = FrameClock(self._frame_ms)
        self.bytes_received = 0

    async def frames(self) -> AsyncIterator[tuple[bytes, int]]:
        while True:
            try:
                msg = await self._ws.receive()
            except Exception as e:
                raise StreamDroppedError(f"{self.stream_id}: receive failed: {e}") from e
            if msg.get("type") == "websocket.disconnect":
                code = msg.get("code", 1000)
                if code not in (1000, 1001):
                    raise StreamDroppedError(f"{self.stream_id}: closed with code {code}")
                return
            data = msg.get("bytes")
            if data is None:
                continue
            self.bytes_received += len(data)
            frames = self._splitter.feed(data)
            if not frames:
                continue
            # Audio that arrives late after a pause starts at wall time minus its own length
            self._clock.resync(now_ms() - len(frames) * self._frame_ms)
            for frame in frames:
                yield frame, self._clock.stamp()
