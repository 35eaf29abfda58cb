"""LLM-backed transcript summary with a local fallback.

The summary generator never fails: a blank transcript, a missing API key or
any error while talking to the model yields a local summary whose tl;dr is a
truncated copy of the transcript text.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

from src.config import Config
from src.prompt_manager import PromptManager
from src.schemas import Summary

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = "You produce concise, factual podcast summaries as valid JSON only."
SUMMARY_PROMPT_NAME = "summary"

FALLBACK_TLDR_MAX_LENGTH = 240

_FENCE_START_RE = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_END_RE = re.compile(r"\s*```$")
_BULLET_MARKER_RE = re.compile(r"^[-*]\s*")


def build_fallback_tldr(text: str) -> str:
    """
    Return `text` unchanged when it fits in 240 characters, otherwise a word-boundary truncation ending in "...".
    """
    if len(text) <= FALLBACK_TLDR_MAX_LENGTH:
        return text
    limit = FALLBACK_TLDR_MAX_LENGTH - 3
    cut = text[:limit]
    # Mid-word cut: back up to the previous space
    if not text[limit].isspace() and " " in cut:
        cut = cut.rsplit(" ", 1)[0]
    return cut.rstrip() + "..."


def _string_items(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def extract_summary_lists(content: str) -> Dict[str, Any]:
    """
    Parse the model's reply into bullets, insights and an optional tl;dr.

    Code fences are stripped first. When the reply is not valid JSON a
    line-oriented parse is used: `bullets:` and `insights:` lines switch
    sections, `-`/`*` markers are removed, and lines outside an insights
    section are treated as bullets.
    """
    clean = _FENCE_END_RE.sub("", _FENCE_START_RE.sub("", content.strip())).strip()

    try:
        parsed = json.loads(clean)
    except json.JSONDecodeError:
        parsed = None

    if isinstance(parsed, dict):
        tldr = parsed.get("tldr")
        return {
            "bullets": _string_items(parsed.get("bullets")),
            "insights": _string_items(parsed.get("insights")),
            "tldr": tldr if isinstance(tldr, str) else None,
        }

    bullets: List[str] = []
    insights: List[str] = []
    section: Optional[str] = None
    for raw_line in clean.split("\n"):
        line = raw_line.strip()
        if not line:
            continue
        lowered = line.lower()
        if lowered.startswith("bullets:"):
            section = "bullets"
            continue
        if lowered.startswith("insights:"):
            section = "insights"
            continue
        item = _BULLET_MARKER_RE.sub("", line).strip()
        if not item:
            continue
        if section == "insights":
            insights.append(item)
        else:
            bullets.append(item)

    return {"bullets": bullets, "insights": insights, "tldr": None}


class SummaryGenerator:
    """Summarizes transcript text with Gemini.

    Example:
        generator = SummaryGenerator(config)
        summary = generator.generate(transcript.text)
    """

    def __init__(self, config: Config, client=None, prompt_manager: Optional[PromptManager] = None):
        self.config = config
        self._ai_client = client
        self._prompt_manager = prompt_manager

    def _get_ai_client(self):
        """Lazily initialize the AI client."""
        if self._ai_client is None:
            import google.genai as genai

            self._ai_client = genai.Client(api_key=self.config.GEMINI_API_KEY)
        return self._ai_client

    def _get_prompt_manager(self) -> PromptManager:
        if self._prompt_manager is None:
            self._prompt_manager = PromptManager(config=self.config)
        return self._prompt_manager

    def _request_summary(self, text: str) -> Optional[Dict[str, Any]]:
        """
        Ask the model for summary lists.

        Returns:
            The extracted lists, or None when no API key is configured.

        Raises:
            ValueError: If the model returns no content.
        """
        if not self.config.GEMINI_API_KEY:
            logger.warning("GEMINI_API_KEY is not set; using fallback summary")
            return None

        prompt = self._get_prompt_manager().build_prompt(
            prompt_name=SUMMARY_PROMPT_NAME, transcript=text
        )
        client = self._get_ai_client()
        response = client.models.generate_content(
            model=self.config.GEMINI_SUMMARY_MODEL,
            contents=prompt,
            config={
                "system_instruction": SYSTEM_INSTRUCTION,
                "temperature": self.config.SUMMARY_TEMPERATURE,
                "response_mime_type": "application/json",
                "http_options": {"timeout": self.config.SUMMARY_REQUEST_TIMEOUT * 1000},
            },
        )

        content = response.text
        if not content or not isinstance(content, str):
            raise ValueError("Summary model returned empty content")
        return extract_summary_lists(content)

    def generate(self, text: Optional[str]) -> Summary:
        """
        Summarize transcript text.

        Args:
            text: Full transcript text; None is treated as empty.

        Returns:
            Summary: Model output merged with the fallback tl;dr, or the local fallback.
        """
        text = text or ""
        fallback_tldr = build_fallback_tldr(text)

        if not text.strip():
            return Summary(full=text, bullets=[], insights=[], tldr=fallback_tldr)

        try:
            extracted = self._request_summary(text)
        except Exception as e:
            logger.error(f"Failed to generate AI summary: {e}")
            return Summary(full=text, bullets=[], insights=[], tldr=fallback_tldr)

        extracted = extracted or {}
        tldr = (extracted.get("tldr") or "").strip()
        return Summary(
            full=text,
            bullets=extracted.get("bullets", []),
            insights=extracted.get("insights", []),
            tldr=tldr or fallback_tldr,
        )
