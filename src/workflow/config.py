"""Configuration for the processing workflow.

Provides environment-based configuration for transcription polling,
content generation concurrency and retry behavior.
"""

import os
from dataclasses import dataclass
from typing import Optional


def _get_int_env(
    name: str,
    default: int,
    min_val: Optional[int] = None,
    max_val: Optional[int] = None,
) -> int:
    """Parse an integer from an environment variable with validation.

    Args:
        name: Environment variable name.
        default: Default value if env var is not set.
        min_val: Minimum allowed value (inclusive), or None for no minimum.
        max_val: Maximum allowed value (inclusive), or None for no maximum.

    Returns:
        The parsed and validated integer value.

    Raises:
        ValueError: If the value cannot be parsed as an integer or is out of range.
    """
    raw = os.getenv(name)
    if raw is None:
        return default

    try:
        value = int(raw)
    except ValueError:
        raise ValueError(
            f"Invalid value for {name}: '{raw}' is not a valid integer"
        )

    if min_val is not None and value < min_val:
        raise ValueError(
            f"Invalid value for {name}: {value} must be >= {min_val}"
        )

    if max_val is not None and value > max_val:
        raise ValueError(
            f"Invalid value for {name}: {value} must be <= {max_val}"
        )

    return value


def _get_float_env(name: str, default: float, min_val: Optional[float] = None) -> float:
    """Parse a float from an environment variable, rejecting values below `min_val`."""
    raw = os.getenv(name)
    if raw is None:
        return default

    try:
        value = float(raw)
    except ValueError:
        raise ValueError(
            f"Invalid value for {name}: '{raw}' is not a valid number"
        )

    if min_val is not None and value < min_val:
        raise ValueError(
            f"Invalid value for {name}: {value} must be >= {min_val}"
        )

    return value


@dataclass
class TranscriptionConfig:
    """Polling, timeout and rate-limit settings for the transcription client.

    Durations are in seconds. All settings can be overridden via environment
    variables (given in milliseconds).
    """

    poll_interval: float = 3.0
    backoff_factor: float = 2.0
    max_poll_interval: float = 24.0
    max_polls: int = 120
    request_timeout: float = 30.0

    # 429 handling while polling
    rate_limit_max_retries: int = 4
    rate_limit_base_delay: float = 1.0
    rate_limit_backoff_factor: float = 2.0

    @classmethod
    def from_env(cls) -> "TranscriptionConfig":
        """Create configuration from environment variables.

        Returns:
            TranscriptionConfig instance with values from environment or defaults.

        Raises:
            ValueError: If any environment variable has an invalid value.
        """
        poll_interval_ms = _get_int_env("ASSEMBLYAI_POLL_INTERVAL_MS", 3000, min_val=0)
        max_poll_interval_ms = _get_int_env(
            "ASSEMBLYAI_MAX_POLL_INTERVAL_MS", poll_interval_ms * 8, min_val=0
        )

        if max_poll_interval_ms < poll_interval_ms:
            raise ValueError(
                f"Invalid configuration: ASSEMBLYAI_MAX_POLL_INTERVAL_MS "
                f"({max_poll_interval_ms}) must be >= ASSEMBLYAI_POLL_INTERVAL_MS "
                f"({poll_interval_ms})"
            )

        return cls(
            poll_interval=poll_interval_ms / 1000,
            backoff_factor=_get_float_env("ASSEMBLYAI_BACKOFF_FACTOR", 2.0, min_val=1.0),
            max_poll_interval=max_poll_interval_ms / 1000,
            max_polls=_get_int_env("ASSEMBLYAI_MAX_POLLS", 120, min_val=1),
            request_timeout=_get_int_env("ASSEMBLYAI_REQUEST_TIMEOUT_MS", 30000, min_val=1) / 1000,
            rate_limit_max_retries=_get_int_env("ASSEMBLYAI_RATE_LIMIT_MAX_RETRIES", 4, min_val=0),
            rate_limit_base_delay=_get_int_env("ASSEMBLYAI_RATE_LIMIT_BASE_DELAY_MS", 1000, min_val=0) / 1000,
            rate_limit_backoff_factor=_get_float_env(
                "ASSEMBLYAI_RATE_LIMIT_BACKOFF_FACTOR", 2.0, min_val=1.0
            ),
        )


@dataclass
class WorkflowConfig:
    """Configuration for the workflow orchestrator and event dispatcher.

    All settings can be overridden via environment variables.
    """

    # Thread pool size for the content generation fan-out
    generation_workers: int = 6

    # Times a failed run is re-executed by the dispatcher (same run id)
    max_workflow_retries: int = 3

    # In-process attempts per step before the step fails the run
    step_max_attempts: int = 1

    # Base delay between run retries, doubled on each retry
    retry_delay_seconds: int = 1

    @classmethod
    def from_env(cls) -> "WorkflowConfig":
        """Create configuration from environment variables.

        Returns:
            WorkflowConfig instance with values from environment or defaults.
        """
        return cls(
            generation_workers=_get_int_env("WORKFLOW_GENERATION_WORKERS", 6, min_val=1),
            max_workflow_retries=_get_int_env("WORKFLOW_MAX_RETRIES", 3, min_val=0),
            step_max_attempts=_get_int_env("WORKFLOW_STEP_MAX_ATTEMPTS", 1, min_val=1),
            retry_delay_seconds=_get_int_env("WORKFLOW_RETRY_DELAY_SECONDS", 1, min_val=0),
        )
