"""Repository pattern implementation for project state persistence.

Provides an abstract interface and SQLAlchemy implementation for the project
state store that backs the processing workflow.
Supports both SQLite (local development) and PostgreSQL (production).
"""

import logging
import random
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import create_engine, func, select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from .errors import (
    ProjectAuthorizationError,
    ProjectNotFoundError,
    ProjectValidationError,
)
from .models import (
    CONTENT_GENERATION_STATUSES,
    PROJECT_STATUSES,
    TRANSCRIPTION_STATUSES,
    Base,
    Project,
    UserProjectCount,
    WorkflowStep,
)

logger = logging.getLogger(__name__)

MAX_DISPLAY_NAME_LENGTH = 200

# Generated content keys mapped to Project columns
CONTENT_FIELDS = {
    "summary": "summary",
    "socialPosts": "social_posts",
    "titles": "titles",
    "hashtags": "hashtags",
    "keyMoments": "key_moments",
    "youtubeTimestamps": "youtube_timestamps",
}

JOB_ERROR_KEYS = (
    "transcript",
    "summary",
    "socialPosts",
    "titles",
    "hashtags",
    "keyMoments",
    "youtubeTimestamps",
    "general",
)

# Optimistic concurrency retry settings for counter updates
COUNTER_MAX_ATTEMPTS = 25
COUNTER_RETRY_BASE_DELAY = 0.01


@dataclass
class ProjectPage:
    """One page of a user's projects.

    Attributes:
        items: Projects on this page, newest first.
        next_cursor: Opaque cursor for the following page, or None when done.
    """

    items: List[Project] = field(default_factory=list)
    next_cursor: Optional[str] = None

    @property
    def is_done(self) -> bool:
        return self.next_cursor is None


class ProjectRepositoryInterface(ABC):
    """Abstract interface for project state persistence.

    Every mutation is scoped to the owning user: implementations must raise
    ProjectNotFoundError for unknown ids and ProjectAuthorizationError when
    the caller is not the owner.
    """

    # --- Project Operations ---

    @abstractmethod
    def create_project(
        self,
        user_id: str,
        input_url: str,
        file_name: str,
        file_size: int,
        file_format: str,
        mime_type: str,
        file_duration: Optional[int] = None,
        display_name: Optional[str] = None,
    ) -> Project:
        """
        Create a project in the uploading state and bump the owner's counters.

        The counter increment happens in the same transaction as the insert.

        Returns:
            Project: The persisted project.
        """
        pass

    @abstractmethod
    def get_project(self, project_id: str, user_id: str) -> Optional[Project]:
        """
        Retrieve a project visible to the given user.

        Returns:
            Project if it exists, is owned by `user_id` and is not soft-deleted; `None` otherwise.
        """
        pass

    @abstractmethod
    def list_user_projects(
        self, user_id: str, limit: int = 20, cursor: Optional[str] = None
    ) -> ProjectPage:
        """
        List a user's non-deleted projects, newest first.

        Parameters:
            user_id (str): Owner of the projects.
            limit (int): Maximum number of projects on the page.
            cursor (Optional[str]): Cursor returned by a previous call, or None for the first page.

        Returns:
            ProjectPage: The page and the cursor for the next one.
        """
        pass

    @abstractmethod
    def rename_project(self, project_id: str, user_id: str, display_name: str) -> Project:
        """
        Set a project's display name.

        The name is trimmed; an empty name or one longer than 200 characters
        raises ProjectValidationError before anything is written.
        """
        pass

    @abstractmethod
    def delete_project(self, project_id: str, user_id: str) -> str:
        """
        Soft-delete a project.

        Idempotent: deleting an already deleted project changes nothing and
        does not decrement the active counter again.

        Returns:
            str: The project's input URL so the caller can clean up the blob.
        """
        pass

    @abstractmethod
    def record_orphaned_blob(self, project_id: str, user_id: str, blob_url: str) -> None:
        """Mark a project's blob as orphaned after a failed storage delete."""
        pass

    # --- Workflow State Operations ---

    @abstractmethod
    def update_project_status(self, project_id: str, user_id: str, status: str) -> None:
        """
        Set the lifecycle status. `completed` also stamps `completed_at`.
        """
        pass

    @abstractmethod
    def update_job_status(
        self,
        project_id: str,
        user_id: str,
        transcription: Optional[str] = None,
        content_generation: Optional[str] = None,
    ) -> None:
        """
        Merge the given fields into the project's job status.

        Fields passed as None are left untouched.
        """
        pass

    @abstractmethod
    def save_transcript(self, project_id: str, user_id: str, transcript: Dict[str, Any]) -> None:
        """Replace the stored transcript."""
        pass

    @abstractmethod
    def save_generated_content(
        self, project_id: str, user_id: str, content: Dict[str, Any]
    ) -> None:
        """
        Merge-patch any subset of generated outputs onto the project.

        Parameters:
            content (Dict[str, Any]): Outputs keyed by job key (`summary`, `socialPosts`, `titles`, `hashtags`, `keyMoments`, `youtubeTimestamps`). Keys not present are left untouched.

        Raises:
            ProjectValidationError: If an unknown key is given.
        """
        pass

    @abstractmethod
    def save_job_errors(
        self, project_id: str, user_id: str, errors: Dict[str, Optional[str]]
    ) -> None:
        """
        Merge per-job error messages into the project's job error map.

        A None message clears that key.
        """
        pass

    @abstractmethod
    def record_error(
        self,
        project_id: str,
        user_id: str,
        message: str,
        step: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Record a top-level error and mark the project failed.

        Parameters:
            message (str): Human readable error message.
            step (str): Name of the step that failed.
            details (Optional[Dict[str, Any]]): Optional `stack` and `statusCode`.
        """
        pass

    @abstractmethod
    def clear_error(
        self, project_id: str, user_id: str, job_error_key: Optional[str] = None
    ) -> None:
        """
        Undo a recorded fatal failure so the workflow can resume.

        Clears the top-level error and, when given, the job error under
        `job_error_key`, then sets the status back to `processing`.
        """
        pass

    # --- Counter Operations ---

    @abstractmethod
    def get_user_project_count(self, user_id: str, include_deleted: bool = False) -> int:
        """
        Return the user's project count.

        Returns:
            int: Total projects ever created when `include_deleted` is true, otherwise active projects.
        """
        pass

    @abstractmethod
    def backfill_project_counters(self) -> int:
        """
        Recompute every user's counters from project rows.

        Returns:
            int: Number of users whose counters were written.
        """
        pass

    # --- Workflow Step Log Operations ---

    @abstractmethod
    def get_step(self, run_id: str, step_name: str) -> Optional[WorkflowStep]:
        """Return the committed step record for a run, if any."""
        pass

    @abstractmethod
    def save_step(
        self, run_id: str, step_name: str, result: Any, attempts: int = 1
    ) -> WorkflowStep:
        """
        Commit a step result.

        If the step was already committed for this run the existing record is
        returned unchanged.
        """
        pass

    # --- Connection Management ---

    @abstractmethod
    def close(self) -> None:
        """Release database connections."""
        pass


class SQLAlchemyProjectRepository(ProjectRepositoryInterface):
    """SQLAlchemy-based implementation of the project repository.

    Supports SQLite for local development and PostgreSQL for production.
    """

    def __init__(
        self,
        database_url: str,
        pool_size: int = 5,
        max_overflow: int = 10,
        echo: bool = False,
    ):
        """
        Initialize the repository and configure its SQLAlchemy engine and session factory.

        Parameters:
            database_url (str): SQLAlchemy-compatible database URL.
            pool_size (int): Connection pool size for non-SQLite databases.
            max_overflow (int): Maximum overflow connections for non-SQLite databases.
            echo (bool): If true, enable SQLAlchemy SQL statement logging.
        """
        self.database_url = database_url

        # SQLite doesn't support connection pooling
        if database_url.startswith("sqlite"):
            self.engine = create_engine(
                database_url,
                echo=echo,
                connect_args={"check_same_thread": False, "timeout": 30},
            )
        else:
            self.engine = create_engine(
                database_url,
                pool_size=pool_size,
                max_overflow=max_overflow,
                echo=echo,
            )

        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

        logger.info(f"Database initialized: {database_url.split('@')[-1] if '@' in database_url else database_url}")

    def create_tables(self) -> None:
        """Create all ORM tables that do not exist yet."""
        Base.metadata.create_all(self.engine)

    def _get_session(self) -> Session:
        """
        Obtain a new SQLAlchemy database session from the repository's session factory.

        Returns:
            A fresh `Session` instance bound to the repository's engine.
        """
        return self.SessionLocal()

    def _get_owned_project(self, session: Session, project_id: str, user_id: str) -> Project:
        """
        Load a project for mutation, enforcing ownership.

        Raises:
            ProjectNotFoundError: If no project has the given id.
            ProjectAuthorizationError: If the project belongs to another user.
        """
        project = session.get(Project, project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        if project.user_id != user_id:
            raise ProjectAuthorizationError(project_id)
        return project

    def _count_projects(self, session: Session, user_id: str) -> tuple[int, int]:
        """Count (total, active) projects for a user from project rows."""
        total = session.scalar(
            select(func.count()).select_from(Project).where(Project.user_id == user_id)
        )
        active = session.scalar(
            select(func.count())
            .select_from(Project)
            .where(Project.user_id == user_id, Project.deleted_at.is_(None))
        )
        return total or 0, active or 0

    def _get_or_backfill_counter(self, session: Session, user_id: str) -> UserProjectCount:
        """
        Return the user's counter row, creating it from project rows if missing.

        The new row is added to the session but not flushed; a concurrent
        creator surfaces as an IntegrityError at commit time.
        """
        counter = session.scalar(
            select(UserProjectCount).where(UserProjectCount.user_id == user_id)
        )
        if counter is None:
            total, active = self._count_projects(session, user_id)
            counter = UserProjectCount(user_id=user_id, total_count=total, active_count=active)
            session.add(counter)
            logger.info(f"Backfilled project counters for user {user_id}: total={total}, active={active}")
        return counter

    def _run_counter_transaction(self, operation, description: str):
        """
        Run `operation(session)` and commit, retrying on write conflicts.

        Counter rows are versioned, so a concurrent update raises StaleDataError
        and a concurrent first insert raises IntegrityError. Both are retried
        with a short randomized backoff, as are SQLite lock timeouts.
        """
        last_error: Optional[Exception] = None
        for attempt in range(1, COUNTER_MAX_ATTEMPTS + 1):
            with self._get_session() as session:
                try:
                    result = operation(session)
                    session.commit()
                    return result
                except (StaleDataError, IntegrityError, OperationalError) as e:
                    session.rollback()
                    last_error = e
                    logger.debug(f"{description}: write conflict on attempt {attempt}: {e}")
            time.sleep(random.uniform(0, COUNTER_RETRY_BASE_DELAY * attempt))

        logger.error(f"{description}: giving up after {COUNTER_MAX_ATTEMPTS} attempts")
        raise last_error

    # --- Project Operations ---

    def create_project(
        self,
        user_id: str,
        input_url: str,
        file_name: str,
        file_size: int,
        file_format: str,
        mime_type: str,
        file_duration: Optional[int] = None,
        display_name: Optional[str] = None,
    ) -> Project:
        """
        Create a project in the uploading state and increment the owner's counters.

        The display name defaults to the file name.

        Returns:
            Project: The newly created project with its id populated.
        """

        def _create(session: Session) -> Project:
            counter = self._get_or_backfill_counter(session, user_id)
            project = Project(
                user_id=user_id,
                input_url=input_url,
                file_name=file_name,
                display_name=display_name or file_name,
                file_size=file_size,
                file_duration=file_duration,
                file_format=file_format,
                mime_type=mime_type,
                status="uploading",
                job_status={"transcription": "uploading", "contentGeneration": "pending"},
            )
            session.add(project)
            counter.total_count += 1
            counter.active_count += 1
            return project

        project = self._run_counter_transaction(_create, f"create_project for {user_id}")
        logger.info(f"Created project: {file_name} ({project.id})")
        return project

    def get_project(self, project_id: str, user_id: str) -> Optional[Project]:
        """
        Retrieve a project by id, scoped to its owner.

        Returns:
            Project | None: The project if found, owned by `user_id` and not deleted, `None` otherwise.
        """
        with self._get_session() as session:
            project = session.get(Project, project_id)
            if project is None or project.user_id != user_id or project.is_deleted:
                return None
            return project

    def list_user_projects(
        self, user_id: str, limit: int = 20, cursor: Optional[str] = None
    ) -> ProjectPage:
        """
        List the user's non-deleted projects ordered by creation time, newest first.

        The cursor is the offset of the next page encoded as a string.

        Raises:
            ProjectValidationError: If the cursor or limit is invalid.
        """
        if limit < 1:
            raise ProjectValidationError("limit must be at least 1")
        offset = 0
        if cursor:
            try:
                offset = int(cursor)
            except ValueError:
                raise ProjectValidationError(f"Invalid cursor: {cursor!r}")
            if offset < 0:
                raise ProjectValidationError(f"Invalid cursor: {cursor!r}")

        with self._get_session() as session:
            stmt = (
                select(Project)
                .where(Project.user_id == user_id, Project.deleted_at.is_(None))
                .order_by(Project.created_at.desc(), Project.id.desc())
                .offset(offset)
                .limit(limit + 1)
            )
            rows = list(session.scalars(stmt).all())

        has_more = len(rows) > limit
        return ProjectPage(
            items=rows[:limit],
            next_cursor=str(offset + limit) if has_more else None,
        )

    def rename_project(self, project_id: str, user_id: str, display_name: str) -> Project:
        """
        Set the project's display name after trimming surrounding whitespace.

        Raises:
            ProjectValidationError: If the trimmed name is empty or longer than 200 characters.
        """
        name = (display_name or "").strip()
        if not name:
            raise ProjectValidationError("Display name cannot be empty")
        if len(name) > MAX_DISPLAY_NAME_LENGTH:
            raise ProjectValidationError(
                f"Display name must be {MAX_DISPLAY_NAME_LENGTH} characters or fewer"
            )

        with self._get_session() as session:
            project = self._get_owned_project(session, project_id, user_id)
            project.display_name = name
            project.updated_at = datetime.now(UTC)
            session.commit()
            session.refresh(project)
            return project

    def delete_project(self, project_id: str, user_id: str) -> str:
        """
        Soft-delete a project and decrement the owner's active counter once.

        Returns:
            str: The project's input URL.
        """

        def _delete(session: Session) -> str:
            project = self._get_owned_project(session, project_id, user_id)
            if project.is_deleted:
                return project.input_url
            counter = self._get_or_backfill_counter(session, user_id)
            project.deleted_at = datetime.now(UTC)
            project.updated_at = datetime.now(UTC)
            if counter.active_count > 0:
                counter.active_count -= 1
            return project.input_url

        input_url = self._run_counter_transaction(_delete, f"delete_project {project_id}")
        logger.info(f"Soft-deleted project {project_id}")
        return input_url

    def record_orphaned_blob(self, project_id: str, user_id: str, blob_url: str) -> None:
        with self._get_session() as session:
            project = self._get_owned_project(session, project_id, user_id)
            project.orphaned_blob = True
            project.orphaned_blob_url = blob_url
            project.updated_at = datetime.now(UTC)
            session.commit()
        logger.warning(f"Recorded orphaned blob for project {project_id}: {blob_url}")

    # --- Workflow State Operations ---

    def update_project_status(self, project_id: str, user_id: str, status: str) -> None:
        if status not in PROJECT_STATUSES:
            raise ProjectValidationError(f"Invalid project status: {status!r}")

        with self._get_session() as session:
            project = self._get_owned_project(session, project_id, user_id)
            now = datetime.now(UTC)
            project.status = status
            project.updated_at = now
            if status == "completed":
                project.completed_at = now
            session.commit()

    def update_job_status(
        self,
        project_id: str,
        user_id: str,
        transcription: Optional[str] = None,
        content_generation: Optional[str] = None,
    ) -> None:
        if transcription is not None and transcription not in TRANSCRIPTION_STATUSES:
            raise ProjectValidationError(f"Invalid transcription status: {transcription!r}")
        if content_generation is not None and content_generation not in CONTENT_GENERATION_STATUSES:
            raise ProjectValidationError(
                f"Invalid content generation status: {content_generation!r}"
            )

        with self._get_session() as session:
            project = self._get_owned_project(session, project_id, user_id)
            job_status = dict(project.job_status or {})
            if transcription is not None:
                job_status["transcription"] = transcription
            if content_generation is not None:
                job_status["contentGeneration"] = content_generation
            project.job_status = job_status
            project.updated_at = datetime.now(UTC)
            session.commit()

    def save_transcript(self, project_id: str, user_id: str, transcript: Dict[str, Any]) -> None:
        with self._get_session() as session:
            project = self._get_owned_project(session, project_id, user_id)
            project.transcript = transcript
            project.updated_at = datetime.now(UTC)
            session.commit()
        logger.info(f"Saved transcript for project {project_id}")

    def save_generated_content(
        self, project_id: str, user_id: str, content: Dict[str, Any]
    ) -> None:
        unknown = set(content) - set(CONTENT_FIELDS)
        if unknown:
            raise ProjectValidationError(
                f"Unknown generated content keys: {', '.join(sorted(unknown))}"
            )

        with self._get_session() as session:
            project = self._get_owned_project(session, project_id, user_id)
            for key, value in content.items():
                setattr(project, CONTENT_FIELDS[key], value)
            project.updated_at = datetime.now(UTC)
            session.commit()
        logger.info(f"Saved generated content for project {project_id}: {sorted(content)}")

    def save_job_errors(
        self, project_id: str, user_id: str, errors: Dict[str, Optional[str]]
    ) -> None:
        unknown = set(errors) - set(JOB_ERROR_KEYS)
        if unknown:
            raise ProjectValidationError(f"Unknown job error keys: {', '.join(sorted(unknown))}")

        with self._get_session() as session:
            project = self._get_owned_project(session, project_id, user_id)
            merged = dict(project.job_errors or {})
            for key, message in errors.items():
                if message is None:
                    merged.pop(key, None)
                else:
                    merged[key] = message
            project.job_errors = merged or None
            project.updated_at = datetime.now(UTC)
            session.commit()

    def record_error(
        self,
        project_id: str,
        user_id: str,
        message: str,
        step: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        with self._get_session() as session:
            project = self._get_owned_project(session, project_id, user_id)
            now = datetime.now(UTC)
            error: Dict[str, Any] = {
                "message": message,
                "step": step,
                "timestamp": int(now.timestamp() * 1000),
            }
            if details:
                error["details"] = {k: v for k, v in details.items() if v is not None}
            project.error = error
            project.status = "failed"
            project.updated_at = now
            session.commit()
        logger.info(f"Recorded error for project {project_id} at step {step}")

    def clear_error(
        self, project_id: str, user_id: str, job_error_key: Optional[str] = None
    ) -> None:
        with self._get_session() as session:
            project = self._get_owned_project(session, project_id, user_id)
            project.error = None
            if job_error_key is not None and project.job_errors:
                remaining = {k: v for k, v in project.job_errors.items() if k != job_error_key}
                project.job_errors = remaining or None
            project.status = "processing"
            project.completed_at = None
            project.updated_at = datetime.now(UTC)
            session.commit()
        logger.info(f"Cleared error for project {project_id}")

    # --- Counter Operations ---

    def get_user_project_count(self, user_id: str, include_deleted: bool = False) -> int:
        """
        Read the user's counter, computing it from project rows when no counter row exists yet.
        """
        with self._get_session() as session:
            counter = session.scalar(
                select(UserProjectCount).where(UserProjectCount.user_id == user_id)
            )
            if counter is not None:
                return counter.total_count if include_deleted else counter.active_count
            total, active = self._count_projects(session, user_id)
            return total if include_deleted else active

    def backfill_project_counters(self) -> int:
        with self._get_session() as session:
            user_ids = list(session.scalars(select(Project.user_id).distinct()).all())

        for user_id in user_ids:

            def _backfill(session: Session, user_id: str = user_id) -> None:
                total, active = self._count_projects(session, user_id)
                counter = session.scalar(
                    select(UserProjectCount).where(UserProjectCount.user_id == user_id)
                )
                if counter is None:
                    session.add(
                        UserProjectCount(user_id=user_id, total_count=total, active_count=active)
                    )
                else:
                    counter.total_count = total
                    counter.active_count = active

            self._run_counter_transaction(_backfill, f"backfill counters for {user_id}")

        logger.info(f"Backfilled project counters for {len(user_ids)} users")
        return len(user_ids)

    # --- Workflow Step Log Operations ---

    def get_step(self, run_id: str, step_name: str) -> Optional[WorkflowStep]:
        with self._get_session() as session:
            stmt = select(WorkflowStep).where(
                WorkflowStep.run_id == run_id, WorkflowStep.step_name == step_name
            )
            return session.scalar(stmt)

    def save_step(
        self, run_id: str, step_name: str, result: Any, attempts: int = 1
    ) -> WorkflowStep:
        try:
            with self._get_session() as session:
                step = WorkflowStep(
                    run_id=run_id,
                    step_name=step_name,
                    status="completed",
                    result=result,
                    attempts=attempts,
                )
                session.add(step)
                session.commit()
                return step
        except IntegrityError:
            # Another worker committed the same step first
            existing = self.get_step(run_id, step_name)
            if existing:
                return existing
            raise

    # --- Connection Management ---

    def close(self) -> None:
        """
        Dispose the SQLAlchemy engine and release database connections and resources.
        """
        self.engine.dispose()
        logger.info("Database connection closed")
