"""Tandem: live two-source transcription with per-stream VAD and speaker attribution."""

__version__ = "0.1.0"
