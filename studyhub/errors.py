"""Exception hierarchy for StudyHub.

Every error a service can raise derives from :class:`StudyHubError` and
carries the HTTP status it maps to. The API layer installs one exception
handler for the whole hierarchy.
"""

from typing import Any


class StudyHubError(Exception):
    """Base class for all StudyHub errors.

    Attributes:
        message: Client-safe message
        status_code: HTTP status the error maps to
    """

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class UnauthorizedError(StudyHubError):
    """Missing or invalid identity. Always terminal for the request."""

    status_code = 401
    default_message = "Unauthorized"


class NotFoundError(StudyHubError):
    """Record is absent or owned by another user.

    The two causes look the same to the caller.
    """

    status_code = 404
    default_message = "Not found"

    def __init__(self, entity: str = "Record"):
        super().__init__(f"{entity} not found")


class ValidationError(StudyHubError):
    """Missing or malformed input.

    Attributes:
        details: Optional per-field error details
    """

    status_code = 400
    default_message = "Invalid request"

    def __init__(self, message: str | None = None, details: list[dict[str, Any]] | None = None):
        super().__init__(message)
        self.details = details or []


class ExportError(StudyHubError):
    """Report rendering failed."""

    status_code = 500
    default_message = "Export failed"


class BackupError(StudyHubError):
    """Snapshot could not be written, found or read."""

    default_message = "Backup failed"


__all__ = [
    "StudyHubError",
    "UnauthorizedError",
    "NotFoundError",
    "ValidationError",
    "ExportError",
    "BackupError",
]
