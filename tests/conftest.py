from __future__ import annotations

import asyncio

import pytest

from tandem.asr.base import TranscriptionBackend, TranscriptionResult


class ScriptedBackend(TranscriptionBackend):
    """Plays back configured actions: a TranscriptionResult, None, an exception, or a delay in seconds."""

    name = "scripted"

    def __init__(self, actions: list[object] | None = None, default: object = None) -> None:
        self.actions = list(actions or [])
        self.default = default if default is not None else TranscriptionResult(text="hello", confidence=0.9)
        self.calls: list[dict[str, object]] = []
        self.gate: asyncio.Event | None = None

    async def transcribe(self, audio, sample_rate, encoding, language=None):
        self.calls.append({"audio": audio, "sample_rate": sample_rate, "encoding": encoding, "language": language})
        if self.gate is not None:
            await self.gate.wait()
        action = self.actions.pop(0) if self.actions else self.default
        if isinstance(action, BaseException):
            raise action
        if isinstance(action, (int, float)) and not isinstance(action, bool):
            await asyncio.sleep(action)
            return self.default
        return action


class SleepRecorder:
    """Stand-in for asyncio.sleep in backoff: records requested delays, returns at once."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def backend() -> ScriptedBackend:
    return ScriptedBackend()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def make_backend():
    return ScriptedBackend
