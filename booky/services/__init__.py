"""Services for booky upload queue."""
from .api_client import HTTPAPIClient
from .compression import CompressionResult, PdfCompressor
from .identity import SessionIdentityResolver, StaticIdentityResolver
from .notifications import LoggingNotificationSink, NullNotificationSink
from .repository import BookRepository
from .storage import StorageService
from .validator import FileValidator, validate_file

__all__ = [
    "HTTPAPIClient",
    "CompressionResult",
    "PdfCompressor",
    "SessionIdentityResolver",
    "StaticIdentityResolver",
    "LoggingNotificationSink",
    "NullNotificationSink",
    "BookRepository",
    "StorageService",
    "FileValidator",
    "validate_file",
]
