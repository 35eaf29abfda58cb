"""Template generators derived from the summary or the transcript segments.

None of these call a model; they slice existing text into the output shapes
the dashboard renders.
"""

import math
from typing import List

from src.schemas import KeyMoment, SocialPosts, Summary, Titles, Transcript, YouTubeTimestamp

KEY_MOMENT_COUNT = 5
YOUTUBE_TIMESTAMP_COUNT = 10
DEFAULT_TITLE_SEED = "Podcast episode"


def format_youtube_timestamp(total_seconds: float) -> str:
    """
    Format seconds as a YouTube chapter label.

    Returns `H:MM:SS` when there is at least one hour, otherwise `M:SS`
    (for example 125 -> "2:05" and 3725 -> "1:02:05").
    """
    seconds = int(math.floor(total_seconds))
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def generate_social_posts(summary: Summary) -> SocialPosts:
    preview = summary.tldr or summary.full or ""
    return SocialPosts(
        twitter=preview,
        linkedin=preview,
        instagram=preview,
        tiktok=preview,
        youtube=preview,
        facebook=preview,
    )


def generate_titles(summary: Summary) -> Titles:
    seed = summary.tldr or summary.full or DEFAULT_TITLE_SEED
    return Titles(
        youtube_short=[seed[:80]],
        youtube_long=[seed[:120]],
        podcast_titles=[seed[:100]],
        # TODO: generate SEO keywords with the summary model
        seo_keywords=[],
    )


def generate_hashtags() -> List[str]:
    # TODO: generate hashtag suggestions with the summary model
    return []


def generate_key_moments(transcript: Transcript) -> List[KeyMoment]:
    """Key moments from the first five segments, labelled in whole seconds."""
    moments = []
    for segment in transcript.segments[:KEY_MOMENT_COUNT]:
        seconds = int(math.floor(segment.start / 1000))
        moments.append(
            KeyMoment(
                time=f"{seconds}s",
                timestamp=seconds,
                text=segment.text,
                description=segment.text,
            )
        )
    return moments


def generate_youtube_timestamps(transcript: Transcript) -> List[YouTubeTimestamp]:
    """Chapter labels from the first ten segments."""
    return [
        YouTubeTimestamp(
            timestamp=format_youtube_timestamp(math.floor(segment.start / 1000)),
            description=segment.text,
        )
        for segment in transcript.segments[:YOUTUBE_TIMESTAMP_COUNT]
    ]
