"""Speech-to-text transcription via AssemblyAI."""

from .client import AssemblyAIClient, validate_audio_url
from .errors import (
    InvalidAudioUrlError,
    TranscriptionConfigError,
    TranscriptionError,
    TranscriptionRateLimitError,
    TranscriptionTimeoutError,
)
from .normalize import normalize_transcript, segment_words

__all__ = [
    "AssemblyAIClient",
    "validate_audio_url",
    "normalize_transcript",
    "segment_words",
    "TranscriptionError",
    "TranscriptionTimeoutError",
    "TranscriptionRateLimitError",
    "TranscriptionConfigError",
    "InvalidAudioUrlError",
]
