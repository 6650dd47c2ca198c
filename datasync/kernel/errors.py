"""
Datasync Kernel — Error taxonomy

Every failure that crosses the RemoteStore boundary is one of these.
Adapters translate transport/driver exceptions into them; the coordinator
uses `category` to pick rollback behaviour and notification wording.
"""

from __future__ import annotations


class RemoteStoreError(Exception):
    """Base class for categorized remote failures."""

    category = "unknown"
    retryable = False

    def __init__(self, message: str = "", *, status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


class NetworkError(RemoteStoreError):
    """Transport-level failure. The user may retry."""

    category = "network"
    retryable = True


class ServerError(RemoteStoreError):
    """The remote store failed while handling a well-formed request."""

    category = "server"
    retryable = True


class NotFoundError(RemoteStoreError):
    """The record no longer exists remotely."""

    category = "not_found"


class ValidationError(RemoteStoreError):
    """Input rejected. Surfaced for correction, never retried silently."""

    category = "validation"


class UnknownError(RemoteStoreError):
    """Anything else."""

    category = "unknown"


class ViewClosed(RuntimeError):
    """A write was attempted on a view that has been torn down."""


def categorize(exc: BaseException) -> RemoteStoreError:
    """Return exc itself if already categorized, otherwise wrap it as UnknownError."""
    if isinstance(exc, RemoteStoreError):
        return exc
    message = str(exc) or type(exc).__name__
    return UnknownError(message)


_DETAILS: dict[str, str] = {
    "network": "Network error. Check your connection and try again.",
    "server": "The server could not process the request. Try again later.",
    "not_found": "It no longer exists on the server.",
}


def describe(error: RemoteStoreError) -> str:
    """User-facing detail line for a categorized error."""
    if error.category in _DETAILS:
        return _DETAILS[error.category]
    if error.category == "validation":
        return f"The input was rejected: {error.message}" if error.message else "The input was rejected."
    return f"Unexpected error: {error.message}" if error.message else "Unexpected error."
