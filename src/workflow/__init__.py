"""Durable workflow for podcast processing.

An uploaded file moves through: transcribe → persist transcript →
plan-gated content generation (in parallel) → persist partial results and
per-job errors → completed or failed.

Only configuration and errors are exported here; import the orchestrator,
retry-job processor and dispatcher from their modules.
"""

from src.workflow.config import TranscriptionConfig, WorkflowConfig
from src.workflow.errors import NonRetriableError, WorkflowValidationError

__all__ = [
    "TranscriptionConfig",
    "WorkflowConfig",
    "NonRetriableError",
    "WorkflowValidationError",
]
