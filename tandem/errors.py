"""Exception hierarchy shared across the pipeline."""
from __future__ import annotations


class TandemError(Exception):
    """Base for all pipeline errors."""


class TranscriptionError(TandemError):
    """Backend call failed. Retried once by the dispatcher, then marked Errored."""


class NetworkError(TranscriptionError):
    pass


class QuotaExceeded(TranscriptionError):
    pass


class InvalidAudio(TranscriptionError):
    pass


class TranscriptionTimeout(TranscriptionError):
    pass


class AcquisitionError(TandemError):
    """A stream could not be opened at session start."""


class StreamDroppedError(TandemError):
    """A stream failed mid-session (as opposed to ending normally)."""


class SessionStartError(TandemError):
    """No stream of the session could be opened."""


class SessionStateError(TandemError):
    """Operation not valid in the session's current state."""


class TranscriptFrozenError(TandemError):
    """Transcript was drained and frozen; no further mutations are accepted."""
