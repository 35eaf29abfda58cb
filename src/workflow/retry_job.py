"""Re-run a single content generator for an existing project.

Triggered by `podcast/retry-job` after a point failure, or after a plan
upgrade unlocked an output the original run was not entitled to.
"""

import logging
from typing import Any, Dict, Optional, Union

from src.db.errors import ProjectNotFoundError
from src.db.repository import ProjectRepositoryInterface
from src.generation.jobs import SummaryMemo, build_job
from src.generation.summary import SummaryGenerator
from src.plans import minimum_plan_for_job, normalize_plan, plan_allows_job
from src.schemas import JobKey, RetryJobEvent, Summary, Transcript
from src.workflow.errors import WorkflowValidationError
from src.workflow.steps import StepRunner

logger = logging.getLogger(__name__)

RETRYABLE_JOBS = (
    JobKey.KEY_MOMENTS,
    JobKey.SOCIAL_POSTS,
    JobKey.TITLES,
    JobKey.HASHTAGS,
    JobKey.YOUTUBE_TIMESTAMPS,
)


def build_retry_job_event(project_id: str, user_id: str, job: JobKey, current_plan: Any) -> RetryJobEvent:
    """
    Build a `podcast/retry-job` payload.

    The original plan is inferred as the lowest tier that could have produced the job.
    """
    job = JobKey(job)
    if job not in RETRYABLE_JOBS:
        raise WorkflowValidationError(f"Job '{job.value}' cannot be retried")
    return RetryJobEvent(
        project_id=project_id,
        user_id=user_id,
        job=job,
        original_plan=minimum_plan_for_job(job).value,
        current_plan=normalize_plan(current_plan).value,
    )


class RetryJobProcessor:
    """Regenerates one output and clears its job error."""

    def __init__(
        self,
        repository: ProjectRepositoryInterface,
        summary_generator: SummaryGenerator,
        max_step_attempts: int = 1,
    ):
        self.repository = repository
        self.summary_generator = summary_generator
        self.max_step_attempts = max_step_attempts

    def process(
        self,
        event: Union[RetryJobEvent, Dict[str, Any]],
        run_id: Optional[str] = None,
    ) -> Any:
        """
        Regenerate the requested output.

        Args:
            event: The `podcast/retry-job` payload.
            run_id: Identifier shared by every attempt of this run.

        Returns:
            The regenerated output as stored on the project.

        Raises:
            WorkflowValidationError: If the job is not retryable, the current plan
                does not include it, or the project has no transcript yet.
            ProjectNotFoundError: If the project is not visible to the user.
        """
        if not isinstance(event, RetryJobEvent):
            try:
                event = RetryJobEvent.model_validate(event)
            except ValueError as e:
                raise WorkflowValidationError(f"Invalid podcast/retry-job event: {e}")

        if not event.project_id.strip() or not event.user_id.strip():
            raise WorkflowValidationError("podcast/retry-job event requires projectId and userId")
        if event.job not in RETRYABLE_JOBS:
            raise WorkflowValidationError(f"Job '{event.job.value}' cannot be retried")

        plan = normalize_plan(event.current_plan)
        if not plan_allows_job(plan, event.job):
            raise WorkflowValidationError(
                f"Plan '{plan.value}' does not include '{event.job.value}'"
            )

        project = self.repository.get_project(event.project_id, event.user_id)
        if project is None:
            raise ProjectNotFoundError(event.project_id)
        if not project.transcript:
            raise WorkflowValidationError(
                f"Project {event.project_id} has no transcript to regenerate from"
            )

        original_plan = normalize_plan(event.original_plan)
        if original_plan != plan:
            logger.info(
                f"Retrying '{event.job.value}' for project {event.project_id} "
                f"after plan change {original_plan.value} -> {plan.value}"
            )

        transcript = Transcript.model_validate(project.transcript)
        memo = SummaryMemo(
            self.summary_generator,
            transcript.text,
            initial=Summary.model_validate(project.summary) if project.summary else None,
        )
        job = build_job(event.job, transcript, memo)
        steps = StepRunner(self.repository, run_id, max_attempts=self.max_step_attempts)
        key = event.job.value

        try:
            output = steps.run(job.step_name, job.run)
        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.error(f"Retry of '{key}' failed for project {event.project_id}: {message}")
            self.repository.save_job_errors(event.project_id, event.user_id, {key: message})
            raise

        steps.run(
            "save-generated-content",
            lambda: self.repository.save_generated_content(
                event.project_id, event.user_id, {key: output}
            ),
        )
        steps.run(
            "clear-job-error",
            lambda: self.repository.save_job_errors(event.project_id, event.user_id, {key: None}),
        )
        logger.info(f"Regenerated '{key}' for project {event.project_id}")
        return output
