"""Project operations behind the web API and CLI.

Wraps the repository with the checks and side effects that surround a raw
store mutation: upload limits and event emission on create, blob cleanup on
delete, and retry-job event emission.
"""

import logging
import os
from typing import Any, Callable, Dict, Optional

from src.db.errors import ProjectNotFoundError, ProjectValidationError
from src.db.models import Project
from src.db.repository import ProjectRepositoryInterface
from src.plans import UploadValidationResult, check_upload_limits, normalize_plan, plan_allows_job
from src.schemas import JobKey, PodcastUploadedEvent
from src.services.blob_storage import BlobStorage, BlobStorageError
from src.workflow.events import PODCAST_RETRY_JOB, PODCAST_UPLOADED
from src.workflow.retry_job import build_retry_job_event

logger = logging.getLogger(__name__)

EventSender = Callable[[str, Dict[str, Any]], None]


class UploadLimitExceededError(ProjectValidationError):
    """Raised when an upload exceeds the caller's plan limits."""

    def __init__(self, result: UploadValidationResult):
        self.result = result
        super().__init__(result.message or "Upload limit exceeded")


def file_format_from_name(file_name: str) -> str:
    """Return the file extension without the dot, or "unknown" when there is none."""
    ext = os.path.splitext(file_name)[1]
    return ext[1:].lower() if ext else "unknown"


class ProjectService:
    """Project lifecycle operations for an authenticated user."""

    def __init__(
        self,
        repository: ProjectRepositoryInterface,
        blob_storage: BlobStorage,
        send_event: EventSender,
    ):
        """
        Args:
            repository: Project state store.
            blob_storage: Client used to delete uploaded files.
            send_event: Callable that delivers `(event_name, payload)` to the workflow.
        """
        self.repository = repository
        self.blob_storage = blob_storage
        self.send_event = send_event

    def create_project(
        self,
        user_id: str,
        plan: Any,
        file_url: str,
        file_name: str,
        file_size: int = 0,
        mime_type: str = "",
        file_duration: Optional[int] = None,
    ) -> Project:
        """
        Create a project for an uploaded file and start processing it.

        Raises:
            ProjectValidationError: If the file URL or name is missing.
            UploadLimitExceededError: If the upload exceeds the plan's limits.
        """
        if not file_url or not file_name:
            raise ProjectValidationError("Missing required fields: fileUrl and fileName")

        tier = normalize_plan(plan)
        validation = check_upload_limits(
            self.repository, user_id, tier, file_size or 0, file_duration
        )
        if not validation.allowed:
            logger.info(
                f"Upload rejected for user {user_id}: {validation.reason} ({validation.message})"
            )
            raise UploadLimitExceededError(validation)

        file_format = file_format_from_name(file_name)
        project = self.repository.create_project(
            user_id=user_id,
            input_url=file_url,
            file_name=file_name,
            file_size=file_size or 0,
            file_format=file_format,
            mime_type=mime_type or "",
            file_duration=file_duration,
        )

        event = PodcastUploadedEvent(
            project_id=project.id,
            user_id=user_id,
            plan=tier.value,
            file_url=file_url,
            file_name=file_name,
            file_size=file_size or 0,
            file_duration=file_duration,
            file_format=file_format,
            mime_type=mime_type or "",
        )
        self.send_event(PODCAST_UPLOADED, event.to_json_dict())
        return project

    def delete_project(self, project_id: str, user_id: str) -> None:
        """
        Soft-delete a project and remove its uploaded file.

        A failed blob delete does not fail the call; the blob is recorded as
        orphaned on the project instead.
        """
        input_url = self.repository.delete_project(project_id, user_id)
        if not input_url:
            return

        try:
            self.blob_storage.delete(input_url)
        except BlobStorageError as e:
            logger.error(f"Error deleting blob for project {project_id}: {e}")
            try:
                self.repository.record_orphaned_blob(project_id, user_id, input_url)
            except Exception as record_error:
                logger.error(
                    f"Failed to record orphaned blob for project {project_id}: {record_error}"
                )

    def rename_project(self, project_id: str, user_id: str, display_name: str) -> Project:
        return self.repository.rename_project(project_id, user_id, display_name)

    def retry_job(self, project_id: str, user_id: str, job: JobKey, plan: Any) -> None:
        """
        Request regeneration of a single output.

        Raises:
            ProjectNotFoundError: If the project is not visible to the user.
            ProjectValidationError: If the job is not retryable or not in the caller's plan.
        """
        if self.repository.get_project(project_id, user_id) is None:
            raise ProjectNotFoundError(project_id)
        if not plan_allows_job(plan, job):
            raise ProjectValidationError(
                f"Your plan does not include '{JobKey(job).value}'"
            )
        try:
            event = build_retry_job_event(project_id, user_id, job, plan)
        except ValueError as e:
            raise ProjectValidationError(str(e))
        self.send_event(PODCAST_RETRY_JOB, event.to_json_dict())
