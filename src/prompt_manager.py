import logging
import os
import textwrap
from string import Template

from src.config import Config

logger = logging.getLogger(__name__)


class PromptManager:
    """Loads `string.Template` prompt files from the configured prompts directory."""

    def __init__(self, config: Config, log_prompts=False):
        # Directory containing .txt prompt files
        self.prompts_dir = config.PROMPTS_DIR
        self.log_prompts = log_prompts
        self._templates = {}
        self._load_prompts()

    def _load_prompts(self):
        """
        Loads all .txt files in self.prompts_dir as Template objects
        and stores them in self._templates keyed by filename (minus extension).
        """
        if not os.path.isdir(self.prompts_dir):
            logger.warning(f"Prompts directory not found: {self.prompts_dir}")
            return

        for filename in sorted(os.listdir(self.prompts_dir)):
            if filename.endswith(".txt"):
                filepath = os.path.join(self.prompts_dir, filename)
                with open(filepath, "r", encoding="utf-8") as f:
                    content = textwrap.dedent(f.read())
                template_key = os.path.splitext(filename)[0]
                self._templates[template_key] = Template(content)
                logger.debug(f"Loaded prompt template: {filename}")

    def has_prompt(self, prompt_name):
        return prompt_name in self._templates

    def build_prompt(self, prompt_name, **kwargs):
        """
        Substitutes the given kwargs into the specified prompt template.

        Raises:
            KeyError: If no template with that name was loaded, or a placeholder has no value.
        """
        if prompt_name not in self._templates:
            raise KeyError(f"No prompt template named '{prompt_name}' in {self.prompts_dir}")

        prompt = self._templates[prompt_name].substitute(**kwargs)
        if self.log_prompts:
            logger.debug(f"Built prompt '{prompt_name}' ({len(prompt)} chars)")
        return prompt
