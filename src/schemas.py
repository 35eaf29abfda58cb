"""Pydantic models for transcripts, generated content and workflow events.

Field names are snake_case in Python and camelCase on the wire; every model
accepts either form on input and dumps camelCase with `by_alias=True`.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase JSON keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict:
        """Dump to a JSON-compatible dict with camelCase keys and no unset optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Plan(str, Enum):
    """Subscription tier. Each tier includes everything in the tiers below it."""

    FREE = "free"
    PRO = "pro"
    ULTRA = "ultra"


class JobKey(str, Enum):
    """Identifier of one content generation job and the output it produces."""

    SUMMARY = "summary"
    SOCIAL_POSTS = "socialPosts"
    TITLES = "titles"
    HASHTAGS = "hashtags"
    KEY_MOMENTS = "keyMoments"
    YOUTUBE_TIMESTAMPS = "youtubeTimestamps"


# Job error keys that are not generation jobs
TRANSCRIPT_ERROR_KEY = "transcript"
GENERAL_ERROR_KEY = "general"


# --- Transcript ---


class Word(CamelModel):
    word: str
    start: float
    end: float
    confidence: Optional[float] = None


class Segment(CamelModel):
    """A contiguous span of the transcript. Times are in milliseconds."""

    id: int
    start: float
    end: float
    text: str
    words: Optional[List[Word]] = None


class SpeakerSegment(CamelModel):
    speaker: str
    start: float
    end: float
    text: str
    confidence: Optional[float] = None


class Chapter(CamelModel):
    start: float
    end: float
    headline: str
    summary: str
    gist: str


class Transcript(CamelModel):
    """Canonical transcript produced by the transcription client."""

    text: str
    segments: List[Segment] = Field(default_factory=list)
    speakers: Optional[List[SpeakerSegment]] = None
    chapters: Optional[List[Chapter]] = None


# --- Generated content ---


class Summary(CamelModel):
    full: str
    bullets: List[str] = Field(default_factory=list)
    insights: List[str] = Field(default_factory=list)
    tldr: str = ""


class SocialPosts(CamelModel):
    twitter: str
    linkedin: str
    instagram: str
    tiktok: str
    youtube: str
    facebook: str


class Titles(CamelModel):
    youtube_short: List[str]
    youtube_long: List[str]
    podcast_titles: List[str]
    seo_keywords: List[str]


class KeyMoment(CamelModel):
    time: str
    timestamp: int
    text: str
    description: str


class YouTubeTimestamp(CamelModel):
    timestamp: str
    description: str


class GeneratedContent(CamelModel):
    """Any subset of generated outputs, keyed by job."""

    summary: Optional[Summary] = None
    social_posts: Optional[SocialPosts] = None
    titles: Optional[Titles] = None
    hashtags: Optional[List[str]] = None
    key_moments: Optional[List[KeyMoment]] = None
    youtube_timestamps: Optional[List[YouTubeTimestamp]] = None


# --- Events ---


class PodcastUploadedEvent(CamelModel):
    """Payload of the `podcast/uploaded` event.

    Identity fields are optional here so that a malformed event can still be
    parsed and rejected by the orchestrator with a validation error.
    """

    project_id: Optional[str] = None
    user_id: Optional[str] = None
    file_url: Optional[str] = None
    plan: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    file_duration: Optional[int] = None
    file_format: Optional[str] = None
    mime_type: Optional[str] = None


class RetryJobEvent(CamelModel):
    """Payload of the `podcast/retry-job` event."""

    project_id: str
    user_id: str
    job: JobKey
    original_plan: Optional[str] = None
    current_plan: Optional[str] = None
