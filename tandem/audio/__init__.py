"""Audio pipeline: frames, energy, VAD, ring buffer, stream sources; optional recording."""
from .energy import EnergyReading, frame_energy
from .receiver import FrameSplitter
from .ring_buffer import AudioRingBuffer
from .vad import SpeechEnd, SpeechStart, StreamDropped, VADConfig, VADState, VoiceActivityDetector
from .recorder import ContinuousRecorder, NoOpRecorder, RecorderBase, create_recorder

__all__ = [
    "AudioRingBuffer",
    "ContinuousRecorder",
    "EnergyReading",
    "FrameSplitter",
    "NoOpRecorder",
    "RecorderBase",
    "SpeechEnd",
    "SpeechStart",
    "StreamDropped",
    "VADConfig",
    "VADState",
    "VoiceActivityDetector",
    "create_recorder",
    "frame_energy",
]
