"""Normalization of AssemblyAI transcript responses into the canonical Transcript.

Provider payloads are loosely typed: any item missing a required field, or
carrying a field of the wrong type, is dropped rather than failing the whole
transcript.
"""

import re
from typing import Any, Dict, List, Optional

from src.schemas import Chapter, Segment, SpeakerSegment, Transcript, Word

# A new segment starts when the silence between words exceeds this (ms)
WORD_SEGMENT_GAP_MS = 1500
WORD_SEGMENT_MAX_WORDS = 24

# Terminal punctuation, optionally followed by one closing quote or bracket
SENTENCE_BOUNDARY_RE = re.compile(r"[.!?][\"')\]]?$")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _valid_words(words: Any) -> List[Word]:
    if not isinstance(words, list):
        return []
    return [
        Word(word=w["text"], start=w["start"], end=w["end"])
        for w in words
        if isinstance(w, dict)
        and isinstance(w.get("text"), str)
        and _is_number(w.get("start"))
        and _is_number(w.get("end"))
    ]


def is_sentence_boundary(word: str) -> bool:
    return bool(SENTENCE_BOUNDARY_RE.search(word.strip()))


def segment_words(words: Any) -> List[Segment]:
    """
    Group word timings into segments.

    A new segment starts before a word when the gap since the previous word's
    end exceeds WORD_SEGMENT_GAP_MS, when the previous word ends a sentence,
    or when the current segment already holds WORD_SEGMENT_MAX_WORDS words.

    Parameters:
        words: Raw provider word list; invalid items are skipped.

    Returns:
        List[Segment]: Segments with sequential ids, text joined by single spaces.
    """
    segments: List[Segment] = []
    current: List[Word] = []

    def flush() -> None:
        if not current:
            return
        segments.append(
            Segment(
                id=len(segments),
                start=current[0].start,
                end=current[-1].end,
                text=" ".join(w.word for w in current),
                words=list(current),
            )
        )
        current.clear()

    for word in _valid_words(words):
        if current:
            previous = current[-1]
            if (
                word.start - previous.end > WORD_SEGMENT_GAP_MS
                or is_sentence_boundary(previous.word)
                or len(current) >= WORD_SEGMENT_MAX_WORDS
            ):
                flush()
        current.append(word)

    flush()
    return segments


def map_sentence_segments(segments: Any) -> Optional[List[Segment]]:
    """Map provider sentence segments, or return None when there are no valid ones."""
    if not isinstance(segments, list) or not segments:
        return None

    mapped = []
    for item in segments:
        if not (
            isinstance(item, dict)
            and isinstance(item.get("text"), str)
            and _is_number(item.get("start"))
            and _is_number(item.get("end"))
        ):
            continue
        words = _valid_words(item["words"]) if isinstance(item.get("words"), list) else None
        mapped.append(
            Segment(
                id=len(mapped),
                start=item["start"],
                end=item["end"],
                text=item["text"],
                words=words,
            )
        )
    return mapped or None


def map_utterances(utterances: Any) -> Optional[List[SpeakerSegment]]:
    if not isinstance(utterances, list):
        return None
    mapped = [
        SpeakerSegment(
            speaker=u["speaker"],
            start=u["start"],
            end=u["end"],
            text=u["text"],
            confidence=u["confidence"] if _is_number(u.get("confidence")) else None,
        )
        for u in utterances
        if isinstance(u, dict)
        and isinstance(u.get("speaker"), str)
        and _is_number(u.get("start"))
        and _is_number(u.get("end"))
        and isinstance(u.get("text"), str)
    ]
    return mapped or None


def map_chapters(chapters: Any) -> Optional[List[Chapter]]:
    if not isinstance(chapters, list):
        return None
    mapped = [
        Chapter(
            start=c["start"],
            end=c["end"],
            headline=c["headline"],
            summary=c["summary"],
            gist=c["gist"],
        )
        for c in chapters
        if isinstance(c, dict)
        and _is_number(c.get("start"))
        and _is_number(c.get("end"))
        and isinstance(c.get("headline"), str)
        and isinstance(c.get("summary"), str)
        and isinstance(c.get("gist"), str)
    ]
    return mapped or None


def normalize_transcript(data: Dict[str, Any]) -> Transcript:
    """
    Build the canonical transcript from a completed AssemblyAI response.

    Provider sentence segments are used when present; otherwise segments are
    synthesized from word timings.
    """
    text = data.get("text") if isinstance(data.get("text"), str) else ""
    segments = map_sentence_segments(data.get("segments"))
    if segments is None:
        segments = segment_words(data.get("words"))

    return Transcript(
        text=text,
        segments=segments,
        speakers=map_utterances(data.get("utterances")),
        chapters=map_chapters(data.get("auto_chapters_result")),
    )
