"""Exceptions raised by the project state store."""


class ProjectStoreError(Exception):
    """Base class for project store errors."""


class ProjectNotFoundError(ProjectStoreError):
    """Raised when a project id does not exist."""

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Project not found: {project_id}")


class ProjectAuthorizationError(ProjectStoreError):
    """Raised when the caller does not own the project."""

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__("Unauthorized: You don't own this project")


class ProjectValidationError(ProjectStoreError, ValueError):
    """Raised when a mutation is rejected before any write happens."""
