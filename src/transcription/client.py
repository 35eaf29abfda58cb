"""AssemblyAI speech-to-text client.

Submits an audio URL for transcription, polls until the transcript is ready
with capped exponential backoff, retries polls that hit rate limits or
server errors, and normalizes the result into the canonical Transcript.
"""

import logging
import time
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlparse

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from src.schemas import Transcript
from src.workflow.config import TranscriptionConfig

from .errors import (
    InvalidAudioUrlError,
    TranscriptionConfigError,
    TranscriptionError,
    TranscriptionRateLimitError,
    TranscriptionTimeoutError,
)
from .normalize import normalize_transcript

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.assemblyai.com/v2"

# Current model first, previous model as fallback
DEFAULT_SPEECH_MODELS = ["universal-3-pro", "universal-2"]


def validate_audio_url(audio_url: Any) -> str:
    """
    Check that `audio_url` is a non-empty absolute URL.

    Raises:
        InvalidAudioUrlError: If the URL is missing, blank or has no scheme and host.
    """
    if not isinstance(audio_url, str) or not audio_url.strip():
        raise InvalidAudioUrlError("audio_url is required for transcription")
    parsed = urlparse(audio_url)
    if not parsed.scheme or not parsed.netloc:
        raise InvalidAudioUrlError(f"Invalid audio_url format: {audio_url!r}")
    return audio_url


class AssemblyAIClient:
    """Client for the AssemblyAI v2 transcript API.

    Example:
        client = AssemblyAIClient(api_key=config.ASSEMBLYAI_API_KEY)
        transcript = client.transcribe("https://example.com/episode.mp3")
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        config: Optional[TranscriptionConfig] = None,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the client.

        Args:
            api_key: AssemblyAI API key, sent verbatim in the Authorization header.
            base_url: API base URL.
            config: Polling and timeout settings; defaults are used when omitted.
            session: Optional pre-built requests session.
            sleep: Function used to wait between polls.
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.config = config or TranscriptionConfig()
        self._session = session or self._create_session()
        self._sleep = sleep

    def _create_session(self) -> requests.Session:
        """Create a requests session that retries dropped connections on polls."""
        session = requests.Session()

        # Status codes are handled explicitly; only connection failures retry here
        retry_strategy = Retry(
            total=3,
            connect=3,
            read=0,
            status=0,
            backoff_factor=0.5,
            allowed_methods=["GET"],
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("http://", adapter)
        session.mount("https://", adapter)

        return session

    def _require_api_key(self) -> str:
        if not self.api_key:
            raise TranscriptionConfigError("ASSEMBLYAI_API_KEY is not set")
        return self.api_key

    def transcribe(self, audio_url: str) -> Transcript:
        """
        Transcribe a publicly reachable audio file.

        Args:
            audio_url: Absolute URL of the audio file.

        Returns:
            Transcript: The normalized transcript.

        Raises:
            InvalidAudioUrlError: If the URL is invalid.
            TranscriptionConfigError: If no API key is configured.
            TranscriptionTimeoutError: If a request times out or polling is exhausted.
            TranscriptionRateLimitError: If polling stays rate limited.
            TranscriptionError: For any other provider failure.
        """
        validate_audio_url(audio_url)
        api_key = self._require_api_key()

        transcript_id = self.start_transcription(audio_url, api_key)
        logger.info(f"Started AssemblyAI transcript {transcript_id}")

        result = self.poll_transcription(transcript_id, api_key)
        transcript = normalize_transcript(result)
        logger.info(
            f"AssemblyAI transcript {transcript_id} completed: "
            f"{len(transcript.segments)} segments, {len(transcript.text)} chars"
        )
        return transcript

    def start_transcription(self, audio_url: str, api_key: Optional[str] = None) -> str:
        """
        Submit a transcription job.

        Returns:
            str: The provider's transcript id.
        """
        api_key = api_key or self._require_api_key()
        try:
            response = self._session.post(
                f"{self.base_url}/transcript",
                headers={"Authorization": api_key, "Content-Type": "application/json"},
                json={
                    "audio_url": audio_url,
                    "speech_models": DEFAULT_SPEECH_MODELS,
                    "speaker_labels": True,
                    "auto_chapters": True,
                },
                timeout=self.config.request_timeout,
            )
        except requests.Timeout:
            raise TranscriptionTimeoutError("AssemblyAI start request timed out")

        if not response.ok:
            raise TranscriptionError(
                f"AssemblyAI start failed ({response.status_code}): {response.text}",
                status_code=response.status_code,
            )

        transcript_id = response.json().get("id")
        if not transcript_id:
            raise TranscriptionError("AssemblyAI did not return a transcript id")
        return transcript_id

    def _retry_delay(self, retry: int) -> float:
        cfg = self.config
        return min(
            cfg.rate_limit_base_delay * cfg.rate_limit_backoff_factor ** (retry - 1),
            cfg.max_poll_interval,
        )

    def _get_with_retries(self, transcript_id: str, api_key: str) -> requests.Response:
        """
        GET the transcript, waiting and retrying on 429 and 5xx answers.

        The n-th retry waits min(base * factor**(n-1), max_poll_interval).
        Rate limits and server errors each get `rate_limit_max_retries`
        retries; once server error retries run out the 5xx response is
        returned for the caller to report.
        """
        cfg = self.config
        url = f"{self.base_url}/transcript/{transcript_id}"
        rate_limit_attempt = 0
        server_error_attempt = 0

        while True:
            try:
                response = self._session.get(
                    url,
                    headers={"Authorization": api_key},
                    timeout=cfg.request_timeout,
                )
            except requests.Timeout:
                raise TranscriptionTimeoutError(
                    f"AssemblyAI poll request timed out for transcript {transcript_id}"
                )

            if response.status_code >= 500:
                server_error_attempt += 1
                if server_error_attempt > cfg.rate_limit_max_retries:
                    return response
                retry_delay = self._retry_delay(server_error_attempt)
                logger.warning(
                    f"AssemblyAI poll failed ({response.status_code}) for transcript "
                    f"{transcript_id}; retry {server_error_attempt}/{cfg.rate_limit_max_retries} "
                    f"in {retry_delay:.1f}s"
                )
                self._sleep(retry_delay)
                continue

            if response.status_code != 429:
                return response

            rate_limit_attempt += 1
            if rate_limit_attempt > cfg.rate_limit_max_retries:
                raise TranscriptionRateLimitError(
                    transcript_id, cfg.rate_limit_max_retries, response.text
                )

            retry_delay = self._retry_delay(rate_limit_attempt)
            logger.warning(
                f"AssemblyAI poll rate-limited for transcript {transcript_id}; "
                f"retry {rate_limit_attempt}/{cfg.rate_limit_max_retries} in {retry_delay:.1f}s"
            )
            self._sleep(retry_delay)

    def poll_transcription(self, transcript_id: str, api_key: Optional[str] = None) -> Dict[str, Any]:
        """
        Poll until the transcript is completed.

        The wait after poll n (0-based) is min(poll_interval * backoff_factor**n, max_poll_interval).

        Returns:
            Dict[str, Any]: The completed provider response.
        """
        api_key = api_key or self._require_api_key()
        cfg = self.config

        for attempt in range(cfg.max_polls):
            response = self._get_with_retries(transcript_id, api_key)
            if not response.ok:
                raise TranscriptionError(
                    f"AssemblyAI poll failed ({response.status_code}): {response.text}",
                    status_code=response.status_code,
                )

            data = response.json()
            status = data.get("status")
            if status == "completed":
                return data
            if status == "error":
                raise TranscriptionError(data.get("error") or "AssemblyAI transcription failed")

            delay = min(cfg.poll_interval * cfg.backoff_factor ** attempt, cfg.max_poll_interval)
            logger.debug(f"Transcript {transcript_id} is {status}; polling again in {delay:.1f}s")
            self._sleep(delay)

        raise TranscriptionTimeoutError("AssemblyAI transcription timed out")

    def close(self) -> None:
        self._session.close()
