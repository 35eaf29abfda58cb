"""Podcast processing workflow.

Drives one uploaded file through transcription and plan-gated content
generation:

    update-project-status -> update-job-status-transcription ->
    generate-transcription -> save-transcription ->
    update-job-status-generation-running -> generate-<job> (parallel) ->
    save-generated-content -> save-job-errors ->
    update-job-status-generation-completed -> update-project-status-completed

Generator failures are isolated: they are recorded per job and never stop
the other generators. Any other failure marks the project failed and is
re-raised so the dispatcher can retry the run; the retry clears that
failure record before resuming. Each generator's outcome, success or
failure, is committed to the step log so a replay merges the same results.
"""

import logging
import traceback
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Dict, List, Optional, Tuple, Union

from src.db.repository import ProjectRepositoryInterface
from src.generation.jobs import SummaryMemo, SummaryUnavailableError, build_jobs
from src.generation.summary import SummaryGenerator
from src.plans import normalize_plan
from src.schemas import (
    GENERAL_ERROR_KEY,
    TRANSCRIPT_ERROR_KEY,
    GeneratedContent,
    JobKey,
    PodcastUploadedEvent,
    Summary,
    Transcript,
)
from src.transcription.client import AssemblyAIClient
from src.workflow.config import WorkflowConfig
from src.workflow.errors import WorkflowValidationError
from src.workflow.steps import STEP_FULFILLED, StepRunner

logger = logging.getLogger(__name__)

TRANSCRIPT_STEPS = (
    "generate-transcription",
    "save-transcription",
    "update-job-status-transcription",
)


def error_key_for_step(step_name: str) -> str:
    """
    Map a failing step to the job error key shown to the user.

    Transcription steps map to `transcript`, `generate-<job>` steps map to the
    job key, and anything else maps to `general`.
    """
    if step_name in TRANSCRIPT_STEPS:
        return TRANSCRIPT_ERROR_KEY
    for key in JobKey:
        if step_name.startswith(f"generate-{key.value}"):
            return key.value
    logger.warning(f"No job error key for step '{step_name}', using '{GENERAL_ERROR_KEY}'")
    return GENERAL_ERROR_KEY


def _error_message(error: BaseException) -> str:
    return str(error) or error.__class__.__name__


def validate_uploaded_event(event: PodcastUploadedEvent) -> Tuple[str, str, str]:
    """
    Check the identity fields of a `podcast/uploaded` event.

    Returns:
        (project_id, user_id, file_url)

    Raises:
        WorkflowValidationError: If any of them is missing, not a string, or blank.
    """
    missing = [
        name
        for name, value in (
            ("projectId", event.project_id),
            ("fileUrl", event.file_url),
            ("userId", event.user_id),
        )
        if not isinstance(value, str) or not value.strip()
    ]
    if missing:
        raise WorkflowValidationError(
            f"podcast/uploaded event is missing required fields: {', '.join(missing)}"
        )
    return event.project_id, event.user_id, event.file_url


@dataclass
class ProcessingResult:
    """Outcome of a completed processing run.

    Attributes:
        project_id: The processed project.
        generated: Output keys that were produced.
        job_errors: Error message per failed job key.
    """

    project_id: str
    generated: List[str] = field(default_factory=list)
    job_errors: Dict[str, str] = field(default_factory=dict)
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    completed_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> float:
        end = self.completed_at or datetime.now(UTC)
        return (end - self.started_at).total_seconds()


class PodcastProcessor:
    """Runs the processing workflow for `podcast/uploaded` events.

    Example:
        processor = PodcastProcessor(
            repository=repository,
            transcription_client=AssemblyAIClient(api_key=config.ASSEMBLYAI_API_KEY),
            summary_generator=SummaryGenerator(config),
        )
        processor.process(event, run_id="evt-123")
    """

    def __init__(
        self,
        repository: ProjectRepositoryInterface,
        transcription_client: AssemblyAIClient,
        summary_generator: SummaryGenerator,
        workflow_config: Optional[WorkflowConfig] = None,
    ):
        self.repository = repository
        self.transcription_client = transcription_client
        self.summary_generator = summary_generator
        self.workflow_config = workflow_config or WorkflowConfig()

    def process(
        self,
        event: Union[PodcastUploadedEvent, Dict[str, Any]],
        run_id: Optional[str] = None,
    ) -> ProcessingResult:
        """
        Process one uploaded file.

        Args:
            event: The `podcast/uploaded` payload.
            run_id: Identifier shared by every attempt of this run. Steps
                committed by an earlier attempt with the same id are skipped.

        Returns:
            ProcessingResult for the completed run.

        Raises:
            WorkflowValidationError: If the event lacks a project id, file URL or user id.
            Exception: Any failure outside the generator fan-out, after it has
                been recorded on the project.
        """
        if not isinstance(event, PodcastUploadedEvent):
            try:
                event = PodcastUploadedEvent.model_validate(event)
            except ValueError as e:
                raise WorkflowValidationError(f"Invalid podcast/uploaded event: {e}")
        project_id, user_id, file_url = validate_uploaded_event(event)
        plan = normalize_plan(event.plan)

        logger.info(f"Processing project {project_id} for user {user_id} (plan={plan.value}, run={run_id})")

        steps = StepRunner(
            self.repository, run_id, max_attempts=self.workflow_config.step_max_attempts
        )
        result = ProcessingResult(project_id=project_id)
        repo = self.repository
        current_step = "resume-project"

        try:
            # Runs on every attempt, outside the step log
            self._clear_previous_failure(project_id, user_id)

            current_step = "update-project-status"
            steps.run(
                current_step,
                lambda: repo.update_project_status(project_id, user_id, "processing"),
            )

            current_step = "update-job-status-transcription"
            steps.run(
                current_step,
                lambda: repo.update_job_status(project_id, user_id, transcription="processing"),
            )

            current_step = "generate-transcription"
            transcript_data = steps.run(
                current_step,
                lambda: self.transcription_client.transcribe(file_url).to_json_dict(),
            )
            transcript = Transcript.model_validate(transcript_data)

            current_step = "save-transcription"
            steps.run(
                current_step,
                lambda: repo.save_transcript(project_id, user_id, transcript_data),
            )

            current_step = "update-job-status-generation-running"
            steps.run(
                current_step,
                lambda: repo.update_job_status(
                    project_id, user_id, transcription="completed", content_generation="running"
                ),
            )

            current_step = "generate-content"
            outputs, job_errors = self._run_generation_jobs(steps, plan, transcript)
            result.generated = sorted(outputs)
            result.job_errors = job_errors

            if outputs:
                current_step = "save-generated-content"
                content = GeneratedContent.model_validate(outputs).to_json_dict()
                steps.run(
                    current_step,
                    lambda: repo.save_generated_content(project_id, user_id, content),
                )

            if job_errors:
                current_step = "save-job-errors"
                steps.run(
                    current_step,
                    lambda: repo.save_job_errors(project_id, user_id, job_errors),
                )

            current_step = "update-job-status-generation-completed"
            steps.run(
                current_step,
                lambda: repo.update_job_status(project_id, user_id, content_generation="completed"),
            )

            current_step = "update-project-status-completed"
            steps.run(
                current_step,
                lambda: repo.update_project_status(project_id, user_id, "completed"),
            )
        except Exception as e:
            logger.error(f"Processing failed for project {project_id} at step '{current_step}': {e}")
            self._record_failure(project_id, user_id, current_step, e)
            raise

        result.completed_at = datetime.now(UTC)
        logger.info(
            f"Completed project {project_id} in {result.duration_seconds:.1f}s: "
            f"generated={result.generated}, failed={sorted(result.job_errors)}"
        )
        return result

    def _run_generation_jobs(
        self, steps: StepRunner, plan, transcript: Transcript
    ) -> Tuple[Dict[str, Any], Dict[str, str]]:
        """
        Run every plan-gated job concurrently and collect outputs and errors.

        Each job settles independently; a failing job only adds an entry to
        the error map.
        """
        memo = self._summary_memo(steps, transcript)
        jobs = build_jobs(plan, transcript, memo)

        outputs: Dict[str, Any] = {}
        job_errors: Dict[str, str] = {}
        max_workers = max(1, min(len(jobs), self.workflow_config.generation_workers))

        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="generate") as executor:
            futures = {
                executor.submit(steps.run_settled, job.step_name, job.run): job for job in jobs
            }
            for future in as_completed(futures):
                job = futures[future]
                outcome = future.result()
                if outcome["status"] == STEP_FULFILLED:
                    outputs[job.key.value] = outcome["value"]
                else:
                    job_errors[error_key_for_step(job.step_name)] = outcome["error"]
                    logger.error(f"Job '{job.key.value}' failed: {outcome['error']}")

        return outputs, job_errors

    def _summary_memo(self, steps: StepRunner, transcript: Transcript) -> SummaryMemo:
        """Seed the run's summary memo from a summary already settled by an earlier attempt."""
        settled = steps.cached_result(f"generate-{JobKey.SUMMARY.value}")
        if not settled:
            return SummaryMemo(self.summary_generator, transcript.text)
        if settled.get("status") == STEP_FULFILLED:
            return SummaryMemo(
                self.summary_generator,
                transcript.text,
                initial=Summary.model_validate(settled["value"]),
            )
        return SummaryMemo(
            self.summary_generator,
            transcript.text,
            error=SummaryUnavailableError(settled.get("error") or "Summary generation failed"),
        )

    def _clear_previous_failure(self, project_id: str, user_id: str) -> None:
        """Undo the failure record left by an earlier attempt before resuming."""
        project = self.repository.get_project(project_id, user_id)
        if project is None or project.status != "failed":
            return
        failed_step = (project.error or {}).get("step")
        job_error_key = error_key_for_step(failed_step) if failed_step else None
        logger.info(
            f"Resuming failed project {project_id} (failed at step '{failed_step}')"
        )
        self.repository.clear_error(project_id, user_id, job_error_key)

    def _record_failure(
        self, project_id: str, user_id: str, step_name: str, error: BaseException
    ) -> None:
        """
        Record a fatal failure on the project.

        Saves a job error for the failing step, the top-level error and the
        failed status. Failures while recording are logged and dropped so the
        original error is the one that propagates.
        """
        message = _error_message(error)
        details: Dict[str, Any] = {
            "stack": "".join(traceback.format_exception(type(error), error, error.__traceback__)),
        }
        status_code = getattr(error, "status_code", None)
        if isinstance(status_code, int):
            details["statusCode"] = status_code

        try:
            self.repository.save_job_errors(
                project_id, user_id, {error_key_for_step(step_name): message}
            )
        except Exception as e:
            logger.error(f"Failed to save job error for project {project_id}: {e}")

        try:
            self.repository.record_error(project_id, user_id, message, step_name, details)
        except Exception as e:
            logger.error(f"Failed to record error for project {project_id}: {e}")

        try:
            self.repository.update_project_status(project_id, user_id, "failed")
        except Exception as e:
            logger.error(f"Failed to mark project {project_id} failed: {e}")
