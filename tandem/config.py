"""Application configuration. Loads from env vars."""
from pydantic_settings import BaseSettings
from typing import Literal


class Settings(BaseSettings):
    """App settings. Override via environment variables."""

    # Audio: PCM 16-bit mono, 16kHz
    SAMPLE_RATE: int = 16000
    SAMPLE_WIDTH: int = 2  # 16-bit
    CHANNELS: int = 1

    # Frame: 20ms @ 16kHz = 320 samples = 640 bytes
    FRAME_MS: int = 20
    FRAME_BYTES: int = 640  # 320 * 2

    # Per-stream PCM kept in memory so segment audio can be cut after SpeechEnd
    AUDIO_BUFFER_SECONDS: float = 120.0

    # VAD: energy on a 0-100 scale (0 at -60 dBFS, 100 at 0 dBFS)
    VAD_SPEECH_THRESHOLD: float = 30.0
    VAD_SILENCE_THRESHOLD: float = 10.0
    VAD_SPEECH_DEBOUNCE_SAMPLES: int = 5  # ~100ms of consistent speech
    VAD_SILENCE_DURATION_MS: int = 500
    VAD_MIN_SPEECH_DURATION_MS: int = 500  # shorter utterances are treated as noise

    # Speaker attribution (energy overlap heuristic, not voiceprints)
    ATTRIBUTION_WINDOW_MS: int = 500
    ATTRIBUTION_OVERLAP_THRESHOLD_MS: int = 200
    ATTRIBUTION_ENERGY_THRESHOLD: float = 30.0
    ATTRIBUTION_RUN_GAP_MS: int = 100
    ATTRIBUTION_DEFAULT_SPEAKER: Literal["SourceA", "SourceB"] = "SourceA"

    # Segment dispatch: one retry after a fixed backoff, per-call timeout
    DISPATCH_TIMEOUT_SECONDS: float = 30.0
    DISPATCH_RETRY_BACKOFF_SECONDS: float = 2.0
    DISPATCH_MAX_CONCURRENCY: int = 0  # 0 = unbounded
    TRANSCRIPT_PLACEHOLDER_TEXT: str = "(transcribing...)"

    # ASR backend: "local" | "cloudflare" | "google" | "stub"
    ASR_BACKEND: Literal["local", "cloudflare", "google", "stub"] = "local"
    ASR_LANGUAGE: str = ""  # empty = let the backend detect
    ASR_ENCODING: str = "LINEAR16"

    # Cloudflare Workers AI Whisper (when ASR_BACKEND=cloudflare)
    CLOUDFLARE_ACCOUNT_ID: str = ""
    CLOUDFLARE_API_TOKEN: str = ""

    # Google Cloud Speech-to-Text (when ASR_BACKEND=google). Key comes from env / .env only.
    GOOGLE_API_KEY: str = ""
    GOOGLE_STT_ENDPOINT: str = "https://speech.googleapis.com/v1/speech:recognize"
    GOOGLE_STT_MODEL: str = "latest_long"

    # Local Whisper (when ASR_BACKEND=local); model loaded once at startup
    LOCAL_WHISPER_MODEL: str = "base"  # base | small | medium | large-v3
    LOCAL_WHISPER_DEVICE: Literal["cpu", "cuda"] = "cpu"
    LOCAL_WHISPER_COMPUTE_TYPE: Literal["int8", "float16"] = "int8"
    LOCAL_WHISPER_BEAM_SIZE: int = 5

    # Stub backend (development / tests)
    STUB_TRANSCRIPT_TEXT: str = "(stub transcript)"

    # Continuous recording: one WAV per stream, written on session stop. Disabled by default.
    ENABLE_RECORDING: bool = False
    RECORD_DIR: str = "./recordings"
    RECORD_SLICE_MS: int = 100

    # Session export: <session_id>.json and <session_id>.srt on stop
    TRANSCRIPT_SAVE_ENABLED: bool = True
    TRANSCRIPT_DIR: str = "./transcripts"

    # Logging: level (DEBUG, INFO, WARNING, ERROR); file path empty = console only
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    class Config:
        env_file = ".env"
        extra = "ignore"


def get_settings() -> Settings:
    return Settings()
