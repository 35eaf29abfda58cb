"""Plan-gated content generation jobs.

Each job produces one output key. Jobs that depend on the summary share a
single memoized summary so the model is called at most once per run, even
when the jobs run on different threads.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from pydantic import BaseModel

from src.plans import jobs_for_plan
from src.schemas import JobKey, Summary, Transcript

from .derived import (
    generate_hashtags,
    generate_key_moments,
    generate_social_posts,
    generate_titles,
    generate_youtube_timestamps,
)
from .summary import SummaryGenerator

logger = logging.getLogger(__name__)


def to_json(value: Any) -> Any:
    """Convert a job output (model, list of models, or plain value) to JSON-compatible data."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    if isinstance(value, list):
        return [to_json(item) for item in value]
    return value


class SummaryUnavailableError(Exception):
    """The run's summary failed, so jobs derived from it cannot run."""


class SummaryMemo:
    """Thread-safe, compute-once holder for a run's summary.

    A failed generation is cached too: dependents get the same error without
    calling the model again.
    """

    def __init__(
        self,
        generator: SummaryGenerator,
        text: str,
        initial: Optional[Summary] = None,
        error: Optional[Exception] = None,
    ):
        self._generator = generator
        self._text = text
        self._summary = initial
        self._error = error
        self._lock = threading.Lock()

    def get(self) -> Summary:
        with self._lock:
            if self._error is not None:
                raise self._error
            if self._summary is None:
                try:
                    self._summary = self._generator.generate(self._text)
                except Exception as e:
                    self._error = e
                    raise
            return self._summary


@dataclass
class GenerationJob:
    """A named unit of content generation.

    Attributes:
        key: Output the job produces.
        produce: Callable returning the output as a model or list of models.
    """

    key: JobKey
    produce: Callable[[], Any]

    @property
    def step_name(self) -> str:
        return f"generate-{self.key.value}"

    def run(self) -> Any:
        """Run the job and return its JSON-compatible output."""
        return to_json(self.produce())


def build_job(key: JobKey, transcript: Transcript, summary: SummaryMemo) -> GenerationJob:
    """Create the job for a single output key."""
    producers = {
        JobKey.SUMMARY: summary.get,
        JobKey.SOCIAL_POSTS: lambda: generate_social_posts(summary.get()),
        JobKey.TITLES: lambda: generate_titles(summary.get()),
        JobKey.HASHTAGS: generate_hashtags,
        JobKey.KEY_MOMENTS: lambda: generate_key_moments(transcript),
        JobKey.YOUTUBE_TIMESTAMPS: lambda: generate_youtube_timestamps(transcript),
    }
    return GenerationJob(key=key, produce=producers[JobKey(key)])


def build_jobs(plan: Any, transcript: Transcript, summary: SummaryMemo) -> List[GenerationJob]:
    """
    Create the generation jobs a plan is entitled to.

    Args:
        plan: Raw plan value; unknown plans get the free tier.
        transcript: The run's transcript.
        summary: Shared summary memo for jobs derived from the summary.

    Returns:
        List[GenerationJob]: Jobs in plan order, starting with the summary.
    """
    keys = jobs_for_plan(plan)
    logger.debug(f"Plan {plan!r} enables jobs: {[k.value for k in keys]}")
    return [build_job(key, transcript, summary) for key in keys]
