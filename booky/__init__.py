"""
Booky - sequential upload queue for the ProperBooky e-book library.

Validates PDF/EPUB files, uploads them one at a time to the hosted object
store, registers each as a book, and reports per-item progress.

Usage:
    from booky import (
        BackendSettings, BookRepository, HTTPAPIClient, QueueOrchestrator,
        SessionIdentityResolver, SourceFile, StorageService,
    )

    settings = BackendSettings.from_env()
    async with HTTPAPIClient(settings) as client:
        orchestrator = QueueOrchestrator(
            storage=StorageService(client, settings.url),
            identity=SessionIdentityResolver(client),
            catalog=BookRepository(client),
        )
        orchestrator.enqueue_files([SourceFile.from_path("dune.epub")])
        result = await orchestrator.process_queue()
        print(result.summary)
"""
from .errors import (
    AuthError,
    BookyError,
    CatalogError,
    DuplicateBookError,
    FileValidationError,
    InvalidTransitionError,
    TransportError,
)
from .models import (
    BackendSettings,
    BatchResult,
    BookFormat,
    FileProgress,
    QueueItem,
    QueueStatus,
    SourceFile,
    UploadConfig,
    UploadResult,
)
from .orchestrator import EnqueueResult, QueueOrchestrator, UploadQueue
from .services import (
    BookRepository,
    FileValidator,
    HTTPAPIClient,
    LoggingNotificationSink,
    PdfCompressor,
    SessionIdentityResolver,
    StaticIdentityResolver,
    StorageService,
    validate_file,
)

__version__ = "0.1.0"
__all__ = [
    # Main
    "QueueOrchestrator",
    "UploadQueue",
    "EnqueueResult",
    # Models
    "BackendSettings",
    "BatchResult",
    "BookFormat",
    "FileProgress",
    "QueueItem",
    "QueueStatus",
    "SourceFile",
    "UploadConfig",
    "UploadResult",
    # Errors
    "AuthError",
    "BookyError",
    "CatalogError",
    "DuplicateBookError",
    "FileValidationError",
    "InvalidTransitionError",
    "TransportError",
    # Services
    "BookRepository",
    "FileValidator",
    "HTTPAPIClient",
    "LoggingNotificationSink",
    "PdfCompressor",
    "SessionIdentityResolver",
    "StaticIdentityResolver",
    "StorageService",
    "validate_file",
]
