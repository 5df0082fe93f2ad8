"""Error taxonomy for the upload pipeline."""
from typing import Any, Optional


class BookyError(Exception):
    """Base class for all booky errors."""


class FileValidationError(BookyError):
    """File rejected before any network transfer (size, type or signature)."""


class TransportError(BookyError):
    """Byte transfer to the storage backend failed."""


class CatalogError(BookyError):
    """Creating the book record failed after a successful transfer."""


class DuplicateBookError(CatalogError):
    """A book with the same title already exists for the owner."""

    def __init__(self, title: str):
        super().__init__(f'A book titled "{title}" already exists in your library')
        self.title = title


class AuthError(BookyError):
    """No owner identity could be resolved; the whole batch is aborted."""


class InvalidTransitionError(BookyError):
    """Queue item state change that the state machine does not allow."""


class APIError(RuntimeError):
    """HTTP error returned by the hosted backend."""

    def __init__(self, status_code: int, method: str, endpoint: str, detail: Optional[Any] = None):
        super().__init__(f"API error {status_code} on {method} {endpoint}: {detail}")
        self.status_code = status_code
        self.detail = detail
