"""
WebSocket plumbing between clients and a Session.

- StreamConnection: one WebSocket = one audio stream of a session. Binary PCM
  in, nothing out except a hello message. Normal close ends the stream;
  abnormal close drops it (the session carries on with other streams).
- TranscriptEventChannel: pushes transcript changes ({type: upsert|remove,
  segment}) to a client as they happen, then {type: stopped} once the
  session has stopped and every queued change was sent.
"""
from __future__ import annotations

import asyncio
import json
import logging

from fastapi import WebSocket

from tandem.audio.source import WebSocketStreamSource
from tandem.errors import AcquisitionError, SessionStateError
from tandem.session import Session
from tandem.transcript.models import TranscriptSegment

logger = logging.getLogger(__name__)


def _event_to_json(kind: str, segment: TranscriptSegment) -> str:
    return json.dumps({"type": kind, "segment": segment.to_dict()}, ensure_ascii=False)


class StreamConnection:
    def __init__(self, websocket: WebSocket, session: Session, stream_id: str) -> None:
        self._ws = websocket
        self._session = session
        self._stream_id = stream_id

    async def run(self) -> None:
        source = WebSocketStreamSource(self._stream_id, self._ws)
        try:
            await self._ws.send_text(
                json.dumps({"type": "stream", "session_id": self._session.session_id, "stream_id": self._stream_id})
            )
        except Exception:
            logger.debug("Stream %s: hello not delivered", self._stream_id)
        try:
            await self._session.attach(source)
        except (AcquisitionError, SessionStateError) as e:
            logger.warning("Stream %s rejected: %s", self._stream_id, e)
            await self._close(code=1008)
            return
        logger.info("Stream %s finished (%d bytes)", self._stream_id, source.bytes_received)

    async def _close(self, code: int = 1000) -> None:
        try:
            await self._ws.close(code=code)
        except Exception:
            pass


class TranscriptEventChannel:
    def __init__(self, websocket: WebSocket, session: Session) -> None:
        self._ws = websocket
        self._session = session
        self._queue: asyncio.Queue[tuple[str, TranscriptSegment]] = asyncio.Queue()

    def _on_change(self, kind: str, segment: TranscriptSegment) -> None:
        self._queue.put_nowait((kind, segment))

    async def run(self) -> None:
        unsubscribe = self._session.subscribe(self._on_change)
        stopped = asyncio.ensure_future(self._session.wait_stopped())
        getter: asyncio.Future | None = None
        try:
            for segment in self._session.snapshot():
                await self._ws.send_text(_event_to_json("upsert", segment))
            while True:
                getter = asyncio.ensure_future(self._queue.get())
                done, _ = await asyncio.wait({getter, stopped}, return_when=asyncio.FIRST_COMPLETED)
                if getter in done:
                    kind, segment = getter.result()
                    await self._ws.send_text(_event_to_json(kind, segment))
                    continue
                getter.cancel()
                # Changes published before the freeze are still queued
                while not self._queue.empty():
                    kind, segment = self._queue.get_nowait()
                    await self._ws.send_text(_event_to_json(kind, segment))
                await self._ws.send_text(json.dumps({"type": "stopped"}))
                break
        finally:
            if getter is not None:
                getter.cancel()
            stopped.cancel()
            unsubscribe()
