"""
Models for booky upload queue.

Dataclasses for the upload pipeline: source files, queue items,
progress reports, results and configuration.
"""
import mimetypes
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple


MB = 1024 * 1024

MEDIA_TYPES = {
    ".pdf": "application/pdf",
    ".epub": "application/epub+zip",
}


class BookFormat(Enum):
    """Canonical book formats accepted by the library."""
    PDF = "pdf"
    EPUB = "epub"


class QueueStatus(Enum):
    """Lifecycle status of a queue item."""
    QUEUED = "queued"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (QueueStatus.COMPLETED, QueueStatus.ERROR)


@dataclass(frozen=True)
class SourceFile:
    """
    Immutable reference to a book payload.

    Either ``path`` (read lazily from disk) or ``data`` (in memory) is set.
    """
    name: str
    media_type: str
    size: int
    path: Optional[Path] = None
    data: Optional[bytes] = field(default=None, repr=False)

    def __post_init__(self):
        if self.path is None and self.data is None:
            raise ValueError("SourceFile needs either a path or data")

    @classmethod
    def from_path(cls, path, media_type: Optional[str] = None) -> "SourceFile":
        path = Path(path)
        if media_type is None:
            media_type = guess_media_type(path.name)
        return cls(
            name=path.name,
            media_type=media_type,
            size=path.stat().st_size,
            path=path,
        )

    @classmethod
    def from_bytes(cls, name: str, data: bytes, media_type: Optional[str] = None) -> "SourceFile":
        return cls(
            name=name,
            media_type=media_type or guess_media_type(name),
            size=len(data),
            data=data,
        )

    @property
    def stem(self) -> str:
        """File name without its last extension."""
        return os.path.splitext(self.name)[0]

    def read_head(self, n: int) -> bytes:
        """Read the first ``n`` bytes of the payload."""
        if self.data is not None:
            return self.data[:n]
        with open(self.path, "rb") as f:
            return f.read(n)

    def read_bytes(self) -> bytes:
        if self.data is not None:
            return self.data
        return self.path.read_bytes()


def guess_media_type(filename: str) -> str:
    """Guess media type from file name, book formats first."""
    suffix = Path(filename).suffix.lower()
    if suffix in MEDIA_TYPES:
        return MEDIA_TYPES[suffix]
    guessed, _ = mimetypes.guess_type(filename)
    return guessed or "application/octet-stream"


@dataclass(frozen=True)
class FileProgress:
    """Transport progress for a single file."""
    bytes_transferred: int
    total_bytes: int
    progress: float

    @classmethod
    def of(cls, transferred: int, total: int) -> "FileProgress":
        percent = 100.0 if total <= 0 else min(transferred / total * 100, 100.0)
        return cls(bytes_transferred=transferred, total_bytes=total, progress=percent)


@dataclass(frozen=True)
class UploadResult:
    """Immutable result of a successful transport (and catalog registration)."""
    format: BookFormat
    file_url: str
    storage_path: str
    size: int
    compressed: bool = False
    book_id: Optional[str] = None


@dataclass
class QueueItem:
    """
    One file's upload lifecycle record.

    Mutated in place only by the queue store on behalf of the orchestrator.
    """
    id: str
    source: SourceFile
    progress: int = 0
    status: QueueStatus = QueueStatus.QUEUED
    error: Optional[str] = None
    result: Optional[UploadResult] = None

    def __post_init__(self):
        if not 0 <= self.progress <= 100:
            raise ValueError(f"progress out of range: {self.progress}")
        if self.error is not None and self.status is not QueueStatus.ERROR:
            raise ValueError(f"error message set on {self.status.value} item")

    @property
    def name(self) -> str:
        return self.source.name

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


@dataclass(frozen=True)
class BatchResult:
    """Aggregate outcome of one drain pass."""
    total: int
    completed: int
    failed: int
    cancelled: int = 0
    item_ids: Tuple[str, ...] = ()

    @property
    def all_success(self) -> bool:
        return self.failed == 0

    @property
    def summary(self) -> str:
        return f"Successfully uploaded {self.completed} of {self.total} files"


@dataclass(frozen=True)
class UploadConfig:
    """Immutable configuration for upload operations."""
    bucket: str = "books"
    max_file_size: int = 100 * MB
    compress_pdfs: bool = True
    strict_epub: bool = False
    item_timeout: Optional[float] = None  # seconds, None = wait forever
    chunk_size: int = 256 * 1024
    cache_control: str = "3600"

    @property
    def max_file_size_mb(self) -> int:
        return self.max_file_size // MB


@dataclass(frozen=True)
class BackendSettings:
    """Connection settings for the hosted backend."""
    url: str
    api_key: str
    access_token: Optional[str] = None
    timeout: int = 60

    @classmethod
    def from_env(cls) -> "BackendSettings":
        url = os.getenv("BOOKY_SUPABASE_URL")
        api_key = os.getenv("BOOKY_SUPABASE_KEY")
        if not url or not api_key:
            raise ValueError("BOOKY_SUPABASE_URL and BOOKY_SUPABASE_KEY must be set")
        return cls(
            url=url.rstrip("/"),
            api_key=api_key,
            access_token=os.getenv("BOOKY_ACCESS_TOKEN") or None,
        )

    @property
    def headers(self) -> dict:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token or self.api_key}",
        }
