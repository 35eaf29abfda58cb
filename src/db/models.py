"""SQLAlchemy ORM models for projects, user counters and the workflow step log."""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import JSON

# Lifecycle status values
PROJECT_STATUSES = ("pending", "uploading", "processing", "completed", "failed")
TRANSCRIPTION_STATUSES = ("pending", "uploading", "processing", "completed", "failed")
CONTENT_GENERATION_STATUSES = ("pending", "running", "completed", "failed")


def default_job_status() -> Dict[str, str]:
    """Job status for a freshly uploaded project."""
    return {"transcription": "uploading", "contentGeneration": "pending"}


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class Project(Base):
    """Uploaded podcast project.

    Holds the uploaded file metadata, lifecycle and per-job status, and every
    output the processing workflow produces. Outputs are stored as JSON
    documents and written with field-scoped merge patches so that partial
    results from independent generators can coexist with per-job errors.
    """

    __tablename__ = "projects"

    # Primary key
    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)

    # Input metadata
    input_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    file_name: Mapped[str] = mapped_column(String(512), nullable=False)
    display_name: Mapped[Optional[str]] = mapped_column(String(200))
    file_size: Mapped[int] = mapped_column(Integer, default=0)
    file_duration: Mapped[Optional[int]] = mapped_column(Integer)  # seconds
    file_format: Mapped[str] = mapped_column(String(32), default="")
    mime_type: Mapped[str] = mapped_column(String(128), default="")

    # Lifecycle
    status: Mapped[str] = mapped_column(String(32), default="uploading")
    # {"transcription": ..., "contentGeneration": ...}
    job_status: Mapped[Dict[str, str]] = mapped_column(JSON, default=default_job_status)

    # Outputs
    transcript: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)
    summary: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)
    social_posts: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)
    titles: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)
    hashtags: Mapped[Optional[List[str]]] = mapped_column(JSON)
    key_moments: Mapped[Optional[List[Dict[str, Any]]]] = mapped_column(JSON)
    youtube_timestamps: Mapped[Optional[List[Dict[str, Any]]]] = mapped_column(JSON)

    # Errors
    job_errors: Mapped[Optional[Dict[str, str]]] = mapped_column(JSON)
    error: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)

    # Blob cleanup tracking
    orphaned_blob: Mapped[bool] = mapped_column(Boolean, default=False)
    orphaned_blob_url: Mapped[Optional[str]] = mapped_column(Text)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    __table_args__ = (
        Index("ix_projects_user_id", "user_id"),
        Index("ix_projects_user_created", "user_id", "created_at"),
        Index("ix_projects_deleted_at", "deleted_at"),
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self) -> str:
        return f"<Project(id={self.id}, user_id={self.user_id!r}, status={self.status!r})>"


class UserProjectCount(Base):
    """Denormalized per-user project counters.

    `total_count` counts every project ever created (including soft-deleted
    ones) and `active_count` counts projects that are not deleted. Rows are
    updated in the same transaction as the project write; the version column
    makes concurrent writers fail with a stale-data error and retry.
    """

    __tablename__ = "user_project_counts"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    total_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    active_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (UniqueConstraint("user_id", name="uq_user_project_counts_user"),)

    def __repr__(self) -> str:
        return (
            f"<UserProjectCount(user_id={self.user_id!r}, "
            f"total={self.total_count}, active={self.active_count})>"
        )


class WorkflowStep(Base):
    """Durable record of a completed workflow step.

    A step is identified by the workflow run id plus its name. Once a row
    exists the step is never executed again for that run; its stored result
    is returned instead.
    """

    __tablename__ = "workflow_steps"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    run_id: Mapped[str] = mapped_column(String(255), nullable=False)
    step_name: Mapped[str] = mapped_column(String(128), nullable=False)
    status: Mapped[str] = mapped_column(String(32), default="completed")
    result: Mapped[Optional[Any]] = mapped_column(JSON)
    attempts: Mapped[int] = mapped_column(Integer, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("run_id", "step_name", name="uq_workflow_steps_run_step"),
        Index("ix_workflow_steps_run_id", "run_id"),
    )

    def __repr__(self) -> str:
        return f"<WorkflowStep(run_id={self.run_id!r}, step={self.step_name!r})>"
