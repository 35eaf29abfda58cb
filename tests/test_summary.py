"""Tests for the LLM summary generator."""

from unittest.mock import Mock

import pytest

from src.generation.summary import (
    SummaryGenerator,
    build_fallback_tldr,
    extract_summary_lists,
)


@pytest.fixture
def config():
    config = Mock()
    config.GEMINI_API_KEY = "test-key"
    config.GEMINI_SUMMARY_MODEL = "gemini-test"
    config.SUMMARY_TEMPERATURE = 0.2
    config.SUMMARY_REQUEST_TIMEOUT = 60
    return config


@pytest.fixture
def prompt_manager():
    manager = Mock()
    manager.build_prompt.return_value = "Summarize: ..."
    return manager


def _client_returning(text):
    client = Mock()
    client.models.generate_content.return_value = Mock(text=text)
    return client


class TestBuildFallbackTldr:
    """Tests for the local tl;dr fallback."""

    def test_short_text_unchanged(self):
        assert build_fallback_tldr("Short episode.") == "Short episode."

    def test_exactly_max_length_unchanged(self):
        text = "a" * 240
        assert build_fallback_tldr(text) == text

    def test_long_text_truncated_at_word_boundary(self):
        text = ("word " * 100).strip()

        tldr = build_fallback_tldr(text)

        assert tldr.endswith("...")
        assert len(tldr) <= 240
        assert not tldr[:-3].endswith(" ")
        assert "wor..." not in tldr

    def test_long_single_token_hard_cut(self):
        text = "x" * 500
        assert build_fallback_tldr(text) == "x" * 237 + "..."


class TestExtractSummaryLists:
    """Tests for parsing the model reply."""

    def test_json_reply(self):
        result = extract_summary_lists(
            '{"bullets": ["a", "b"], "insights": ["c"], "tldr": "short"}'
        )
        assert result == {"bullets": ["a", "b"], "insights": ["c"], "tldr": "short"}

    def test_fenced_json_reply(self):
        result = extract_summary_lists('```json\n{"bullets": ["a"], "insights": []}\n```')

        assert result["bullets"] == ["a"]
        assert result["insights"] == []
        assert result["tldr"] is None

    def test_non_string_items_dropped(self):
        result = extract_summary_lists('{"bullets": ["a", 3, null], "insights": "nope"}')

        assert result["bullets"] == ["a"]
        assert result["insights"] == []

    def test_heuristic_reply(self):
        """Test the line-oriented fallback parse."""
        content = "Bullets:\n- first point\n* second point\nInsights:\n- deep thought\n"

        result = extract_summary_lists(content)

        assert result["bullets"] == ["first point", "second point"]
        assert result["insights"] == ["deep thought"]
        assert result["tldr"] is None

    def test_heuristic_lines_without_headers_are_bullets(self):
        result = extract_summary_lists("- one\n- two")
        assert result["bullets"] == ["one", "two"]


class TestSummaryGenerator:
    """Tests for SummaryGenerator.generate."""

    def test_empty_text_skips_model(self, config, prompt_manager):
        """Test that blank input returns an empty summary without calling the model."""
        client = Mock()
        generator = SummaryGenerator(config, client=client, prompt_manager=prompt_manager)

        summary = generator.generate("")

        assert summary.to_json_dict() == {"full": "", "bullets": [], "insights": [], "tldr": ""}
        client.models.generate_content.assert_not_called()

    def test_none_text_treated_as_empty(self, config, prompt_manager):
        generator = SummaryGenerator(config, client=Mock(), prompt_manager=prompt_manager)
        assert generator.generate(None).full == ""

    def test_model_summary(self, config, prompt_manager):
        client = _client_returning('{"bullets": ["b1"], "insights": ["i1"], "tldr": "  tl;dr  "}')
        generator = SummaryGenerator(config, client=client, prompt_manager=prompt_manager)

        summary = generator.generate("Transcript text")

        assert summary.full == "Transcript text"
        assert summary.bullets == ["b1"]
        assert summary.insights == ["i1"]
        assert summary.tldr == "tl;dr"

        kwargs = client.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemini-test"
        assert kwargs["contents"] == "Summarize: ..."
        assert kwargs["config"]["temperature"] == 0.2
        assert kwargs["config"]["http_options"]["timeout"] == 60000
        prompt_manager.build_prompt.assert_called_once_with(
            prompt_name="summary", transcript="Transcript text"
        )

    def test_missing_tldr_uses_fallback(self, config, prompt_manager):
        client = _client_returning('{"bullets": ["b1"], "insights": []}')
        generator = SummaryGenerator(config, client=client, prompt_manager=prompt_manager)

        assert generator.generate("Transcript text").tldr == "Transcript text"

    def test_model_error_falls_back(self, config, prompt_manager):
        """Test that any model failure yields the local fallback instead of raising."""
        client = Mock()
        client.models.generate_content.side_effect = RuntimeError("503 unavailable")
        generator = SummaryGenerator(config, client=client, prompt_manager=prompt_manager)

        summary = generator.generate("Transcript text")

        assert summary.bullets == []
        assert summary.insights == []
        assert summary.tldr == "Transcript text"

    def test_empty_model_reply_falls_back(self, config, prompt_manager):
        generator = SummaryGenerator(config, client=_client_returning(""), prompt_manager=prompt_manager)

        summary = generator.generate("Transcript text")

        assert summary.bullets == []
        assert summary.tldr == "Transcript text"

    def test_missing_api_key_falls_back(self, config, prompt_manager):
        config.GEMINI_API_KEY = ""
        client = Mock()
        generator = SummaryGenerator(config, client=client, prompt_manager=prompt_manager)

        summary = generator.generate("Transcript text")

        assert summary.tldr == "Transcript text"
        client.models.generate_content.assert_not_called()
