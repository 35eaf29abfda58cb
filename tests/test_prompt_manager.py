"""Tests for prompt template loading."""

from unittest.mock import Mock

import pytest

from src.config import Config
from src.prompt_manager import PromptManager


@pytest.fixture
def prompts_config(tmp_path):
    (tmp_path / "greeting.txt").write_text("Hello $name!\n", encoding="utf-8")
    (tmp_path / "notes.md").write_text("ignored", encoding="utf-8")
    config = Mock()
    config.PROMPTS_DIR = str(tmp_path)
    return config


class TestPromptManager:
    """Tests for PromptManager."""

    def test_loads_txt_templates(self, prompts_config):
        manager = PromptManager(prompts_config)

        assert manager.has_prompt("greeting")
        assert not manager.has_prompt("notes")

    def test_build_prompt(self, prompts_config):
        manager = PromptManager(prompts_config, log_prompts=True)
        assert manager.build_prompt("greeting", name="Airtime") == "Hello Airtime!\n"

    def test_missing_template(self, prompts_config):
        with pytest.raises(KeyError):
            PromptManager(prompts_config).build_prompt("farewell")

    def test_missing_placeholder_value(self, prompts_config):
        with pytest.raises(KeyError):
            PromptManager(prompts_config).build_prompt("greeting")

    def test_missing_directory(self, tmp_path):
        config = Mock()
        config.PROMPTS_DIR = str(tmp_path / "nope")

        assert PromptManager(config).has_prompt("summary") is False

    def test_bundled_summary_prompt(self):
        """Test that the shipped summary prompt accepts a transcript."""
        manager = PromptManager(Config())

        prompt = manager.build_prompt("summary", transcript="TRANSCRIPT BODY")

        assert "TRANSCRIPT BODY" in prompt
