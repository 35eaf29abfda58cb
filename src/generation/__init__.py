"""Content generators: the LLM summary and the jobs derived from it."""

from .derived import format_youtube_timestamp
from .jobs import (
    GenerationJob,
    SummaryMemo,
    SummaryUnavailableError,
    build_job,
    build_jobs,
    to_json,
)
from .summary import SummaryGenerator, build_fallback_tldr, extract_summary_lists

__all__ = [
    "GenerationJob",
    "SummaryGenerator",
    "SummaryMemo",
    "SummaryUnavailableError",
    "build_job",
    "build_jobs",
    "build_fallback_tldr",
    "extract_summary_lists",
    "format_youtube_timestamp",
    "to_json",
]
