"""Exceptions raised by the transcription client."""

from typing import Optional

from src.workflow.errors import NonRetriableError


class TranscriptionError(Exception):
    """Raised when the transcription provider rejects or fails a request.

    Attributes:
        status_code: HTTP status of the failing response, when there was one.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class TranscriptionTimeoutError(TranscriptionError):
    """Raised when a request times out or polling runs out of attempts."""


class TranscriptionRateLimitError(TranscriptionError):
    """Raised when polling stays rate limited after every retry."""

    def __init__(self, transcript_id: str, retries: int, body: str):
        self.transcript_id = transcript_id
        self.retries = retries
        self.body = body
        super().__init__(
            f"AssemblyAI poll failed (429) for transcript {transcript_id} "
            f"after {retries} retries: {body}",
            status_code=429,
        )


class TranscriptionConfigError(TranscriptionError):
    """Raised when the transcription API key is not configured."""


class InvalidAudioUrlError(TranscriptionError, NonRetriableError):
    """Raised when the audio URL is empty or not an absolute URL."""
