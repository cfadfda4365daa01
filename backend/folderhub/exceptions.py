"""Domain errors raised by services and rendered by the API error handlers."""


class FolderHubError(Exception):
    """Base class for all expected, user-facing failures."""

    status_code = 500
    title = "Internal server error"


class NotFoundError(FolderHubError):
    """Raised when a folder, file or user does not exist."""

    status_code = 404
    title = "Resource not found"


class PermissionDeniedError(FolderHubError):
    """Raised when the current user may not act on a resource."""

    status_code = 403
    title = "Access denied"


class InvalidDataError(FolderHubError):
    """Raised when a request is well-formed but semantically invalid."""

    status_code = 400
    title = "Invalid data"


class ConflictError(FolderHubError):
    """Raised when a name or username is already taken."""

    status_code = 409
    title = "Conflict"


class StorageError(FolderHubError):
    """Raised when the filesystem operation behind a request fails."""

    status_code = 500
    title = "Storage error"
