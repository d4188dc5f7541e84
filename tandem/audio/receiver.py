"""
FrameSplitter: accepts raw PCM chunks of any size and yields fixed frames.

- Expects PCM 16-bit mono at SAMPLE_RATE.
- Emits fixed-size frames (e.g. 20ms = 640 bytes) for energy/VAD.
- Any remainder is kept for the next feed.
"""
from __future__ import annotations

from tandem.config import get_settings


class FrameSplitter:
    """Buffers incoming binary chunks into fixed-size PCM frames."""

    def __init__(self, frame_bytes: int | None = None) -> None:
        settings = get_settings()
        self._frame_bytes = frame_bytes or settings.FRAME_BYTES
        self._buffer = bytearray()

    def feed(self, data: bytes) -> list[bytes]:
        """Append raw PCM bytes and return every complete frame now available."""
        self._buffer.extend(data)
        return self.drain_frames()

    def drain_frames(self) -> list[bytes]:
        """Drain all complete frames; remainder stays in buffer."""
        out: list[bytes] = []
        while len(self._buffer) >= self._frame_bytes:
            out.append(bytes(self._buffer[: self._frame_bytes]))
            del self._buffer[: self._frame_bytes]
        return out

    def remaining_bytes(self) -> int:
        """Bytes left in buffer (incomplete frame)."""
        return len(self._buffer)

    @property
    def frame_bytes(self) -> int:
        return self._frame_bytes
