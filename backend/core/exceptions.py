"""Custom exceptions for the workflow engine."""


class AppException(Exception):
    """Base exception for the workflow engine service."""

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code.

        Args:
            message: Exception message
            status_code: HTTP status code
        """
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundError(AppException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found"):
        """Initialize NotFoundError with 404 status code."""
        super().__init__(message, 404)


class BadRequestError(AppException):
    """Malformed request exception."""

    def __init__(self, message: str = "Bad request"):
        """Initialize BadRequestError with 400 status code."""
        super().__init__(message, 400)


class ValidationError(AppException):
    """Validation error exception."""

    def __init__(self, message: str = "Validation failed"):
        """Initialize ValidationError with 422 status code."""
        super().__init__(message, 422)


class ConflictError(AppException):
    """Resource conflict exception."""

    def __init__(self, message: str = "Resource conflict"):
        """Initialize ConflictError with 409 status code."""
        super().__init__(message, 409)


# ─── Workflow engine taxonomy ──────────────────────────────────


class WorkflowError(AppException):
    """Base class for errors raised while driving an execution."""


class DefinitionError(WorkflowError):
    """Malformed workflow graph (missing start, dangling connection, dead end).

    Fatal for the execution it is raised in.
    """

    def __init__(self, message: str = "Invalid workflow definition"):
        super().__init__(message, 422)


class StoreError(WorkflowError):
    """Persistence failure. Fatal for the execution it is raised in."""

    def __init__(self, message: str = "Execution store failure"):
        super().__init__(message, 500)


class DispatchError(WorkflowError):
    """Notification send failure. Recorded on the notification row only."""

    def __init__(self, message: str = "Notification dispatch failed"):
        super().__init__(message, 502)


class ResumeConflictError(ConflictError):
    """Resume attempted on an approval that is no longer pending or has expired."""
