"""Error taxonomy shared by every layer."""
from __future__ import annotations


class DmsError(Exception):
    """Base class for failures raised by the migration engine."""


class NotFoundError(DmsError):
    """Raised when a document, page, item or site cannot be located."""


class ConflictError(DmsError):
    """Raised when an operation is not allowed in the current state."""


class InvalidTransition(ConflictError):
    """Raised when a page or approval state change is not permitted."""


class EditLockedError(ConflictError):
    """Raised when content is edited while it is not on its latest approved version."""


class ConfirmationRequired(ConflictError):
    """Raised when a commit would add a version to an existing file without confirmation."""

    def __init__(self, warning: str) -> None:
        super().__init__(warning)
        self.warning = warning


class ValidationFailed(DmsError):
    """Raised when required fields are missing or malformed.

    ``errors`` maps the field key to a human readable message so callers can
    report every failure at once.
    """

    def __init__(self, errors: dict[str, str]) -> None:
        message = "; ".join(f"{field}: {text}" for field, text in errors.items())
        super().__init__(message or "validation failed")
        self.errors = dict(errors)


class RepositoryError(DmsError):
    """Raised when the remote repository rejects a call; the message is kept verbatim."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


__all__ = [
    "ConfirmationRequired",
    "ConflictError",
    "DmsError",
    "EditLockedError",
    "InvalidTransition",
    "NotFoundError",
    "RepositoryError",
    "ValidationFailed",
]
