"""
SessionRegistry: live sessions of one app instance, keyed by session_id.

Lives on app.state (created in the lifespan), never at module level.
Stopped sessions keep their final transcript available for export until
they are discarded.
"""
from __future__ import annotations

import logging

from tandem.session import Session, SessionState
from tandem.transcript.models import TranscriptSegment

logger = logging.getLogger(__name__)


class SessionRegistry:
    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._finished: dict[str, tuple[TranscriptSegment, ...]] = {}

    def add(self, session: Session) -> None:
        self._sessions[session.session_id] = session

    def get(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def finished(self, session_id: str) -> tuple[TranscriptSegment, ...] | None:
        """Final transcript of a stopped session, or None."""
        return self._finished.get(session_id)

    async def stop(self, session_id: str) -> tuple[TranscriptSegment, ...] | None:
        """Stop and unregister a live session; its final transcript stays available."""
        session = self._sessions.get(session_id)
        if session is None:
            return self._finished.get(session_id)
        transcript = await session.stop()
        self._sessions.pop(session_id, None)
        self._finished[session_id] = transcript
        return transcript

    def discard(self, session_id: str) -> bool:
        removed = self._sessions.pop(session_id, None) is not None
        return self._finished.pop(session_id, None) is not None or removed

    async def stop_all(self) -> None:
        """Shutdown: drain every running session."""
        for session_id, session in list(self._sessions.items()):
            if session.state is SessionState.RUNNING:
                try:
                    await self.stop(session_id)
                except Exception:
                    logger.exception("Failed to stop session %s on shutdown", session_id)

    def __len__(self) -> int:
        return len(self._sessions)
