"""Exceptions that control workflow retry behavior."""


class NonRetriableError(Exception):
    """An error that re-running the workflow cannot fix.

    The event dispatcher stops retrying a run as soon as one of these is raised.
    """


class WorkflowValidationError(NonRetriableError, ValueError):
    """Raised when an event payload is missing required fields."""

