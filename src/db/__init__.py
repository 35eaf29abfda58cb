"""Database module for project state persistence.

Provides:
- SQLAlchemy ORM models (Project, UserProjectCount, WorkflowStep)
- Repository interface and implementation
- Factory functions for creating repositories
"""

from .errors import (
    ProjectAuthorizationError,
    ProjectNotFoundError,
    ProjectStoreError,
    ProjectValidationError,
)
from .factory import create_repository, create_repository_from_config
from .models import Base, Project, UserProjectCount, WorkflowStep
from .repository import ProjectPage, ProjectRepositoryInterface, SQLAlchemyProjectRepository

__all__ = [
    "Base",
    "Project",
    "UserProjectCount",
    "WorkflowStep",
    "ProjectPage",
    "ProjectRepositoryInterface",
    "SQLAlchemyProjectRepository",
    "ProjectStoreError",
    "ProjectNotFoundError",
    "ProjectAuthorizationError",
    "ProjectValidationError",
    "create_repository",
    "create_repository_from_config",
]
