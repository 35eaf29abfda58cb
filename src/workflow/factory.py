"""Wiring for the workflow: clients are built once and passed explicitly."""

import logging
from typing import Optional

from src.config import Config
from src.db.repository import ProjectRepositoryInterface
from src.generation.summary import SummaryGenerator
from src.prompt_manager import PromptManager
from src.transcription.client import AssemblyAIClient
from src.workflow.config import TranscriptionConfig, WorkflowConfig
from src.workflow.events import PODCAST_RETRY_JOB, PODCAST_UPLOADED, EventDispatcher
from src.workflow.orchestrator import PodcastProcessor
from src.workflow.retry_job import RetryJobProcessor

logger = logging.getLogger(__name__)


def create_dispatcher(
    config: Config,
    repository: ProjectRepositoryInterface,
    workflow_config: Optional[WorkflowConfig] = None,
    transcription_config: Optional[TranscriptionConfig] = None,
) -> EventDispatcher:
    """
    Build an EventDispatcher wired to the processing and retry-job workflows.

    Args:
        config: Application configuration (API keys, model, prompts).
        repository: Project state store shared by every workflow.
        workflow_config: Workflow settings; read from the environment when omitted.
        transcription_config: Polling settings; read from the environment when omitted.
    """
    workflow_config = workflow_config or WorkflowConfig.from_env()
    transcription_config = transcription_config or TranscriptionConfig.from_env()

    transcription_client = AssemblyAIClient(
        api_key=config.ASSEMBLYAI_API_KEY,
        base_url=config.ASSEMBLYAI_BASE_URL,
        config=transcription_config,
    )
    summary_generator = SummaryGenerator(
        config, prompt_manager=PromptManager(config=config)
    )

    processor = PodcastProcessor(
        repository=repository,
        transcription_client=transcription_client,
        summary_generator=summary_generator,
        workflow_config=workflow_config,
    )
    retry_processor = RetryJobProcessor(
        repository=repository,
        summary_generator=summary_generator,
        max_step_attempts=workflow_config.step_max_attempts,
    )

    dispatcher = EventDispatcher(workflow_config)
    dispatcher.register(PODCAST_UPLOADED, processor.process)
    dispatcher.register(PODCAST_RETRY_JOB, retry_processor.process)
    logger.info(f"Workflow dispatcher ready for events: {dispatcher.event_names}")
    return dispatcher
