"""
Storage Service - Single Responsibility: move book bytes to object storage.

Implements the upload transport on top of the hosted storage REST API.
"""
import logging
import re
import secrets
import time
from typing import AsyncIterator, Optional

import httpx

from ..errors import APIError, TransportError
from ..models import BookFormat, FileProgress, SourceFile, UploadConfig, UploadResult
from ..protocols import ProgressCallback
from .api_client import HTTPAPIClient
from .compression import PdfCompressor
from .validator import FileValidator

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^a-z0-9]")


def build_storage_name(filename: str, fmt: BookFormat, now_ms: Optional[int] = None) -> str:
    """
    Build a collision resistant object name for ``filename``.

    ``{millis}-{token}-{sanitized stem}.{ext}``: the stem is lower-cased and
    every character outside ``[a-z0-9]`` becomes ``-``.
    """
    stem = filename.rsplit(".", 1)[0] if "." in filename else filename
    slug = _UNSAFE_CHARS.sub("-", stem.lower()) or "book"
    millis = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{millis}-{secrets.token_hex(3)}-{slug}.{fmt.value}"


class StorageService:
    """
    Service for uploading book files to the storage backend.

    Upsert is disabled: an existing object at the generated key makes the
    backend reject the write, which surfaces as a TransportError.
    """

    def __init__(
        self,
        client: HTTPAPIClient,
        base_url: str,
        config: Optional[UploadConfig] = None,
        validator: Optional[FileValidator] = None,
        compressor: Optional[PdfCompressor] = None,
    ):
        """
        Initialize storage service.

        Args:
            client: HTTP client bound to the backend
            base_url: Public backend URL used to build object URLs
            config: Upload configuration
            validator: File validator (defaults to one built from config)
            compressor: PDF compressor (defaults to PdfCompressor())
        """
        self._client = client
        self._base_url = base_url.rstrip("/")
        self._config = config or UploadConfig()
        self._validator = validator or FileValidator(self._config)
        self._compressor = compressor or PdfCompressor()

    @property
    def bucket(self) -> str:
        return self._config.bucket

    def public_url(self, path: str) -> str:
        return f"{self._base_url}/storage/v1/object/public/{self.bucket}/{path}"

    async def upload(
        self,
        file: SourceFile,
        owner_id: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> UploadResult:
        """
        Upload book file to storage.

        Args:
            file: Validated source file
            owner_id: Owner id, used as the top level folder
            on_progress: Optional callback receiving FileProgress

        Returns:
            UploadResult with the public URL

        Raises:
            FileValidationError: file fails validation
            TransportError: backend rejected the write or the network failed
        """
        fmt = self._validator.validate(file)

        try:
            data = file.read_bytes()
        except OSError as e:
            raise TransportError(f"Could not read {file.name}: {e}") from e

        compressed = False
        if fmt is BookFormat.PDF and self._config.compress_pdfs:
            outcome = await self._compressor.compress_async(data)
            data, compressed = outcome.data, outcome.compressed

        path = f"{owner_id}/{build_storage_name(file.name, fmt)}"
        headers = {
            "Content-Type": file.media_type,
            "Content-Length": str(len(data)),
            "cache-control": f"max-age={self._config.cache_control}",
            "x-upsert": "false",
        }

        logger.info(f"Uploading {file.name} -> {self.bucket}/{path} ({len(data)} bytes)")
        try:
            await self._client.upload(
                f"/storage/v1/object/{self.bucket}/{path}",
                content=self._stream(data, on_progress),
                headers=headers,
            )
        except APIError as e:
            logger.error(f"Storage rejected {path}: {e}")
            raise TransportError(f"Failed to upload file: {e.detail}") from e
        except httpx.HTTPError as e:
            logger.error(f"Network error uploading {path}: {e}")
            raise TransportError(f"Failed to upload file: {e}") from e

        return UploadResult(
            format=fmt,
            file_url=self.public_url(path),
            storage_path=path,
            size=len(data),
            compressed=compressed,
        )

    async def _stream(
        self,
        data: bytes,
        on_progress: Optional[ProgressCallback],
    ) -> AsyncIterator[bytes]:
        total = len(data)
        sent = 0
        chunk_size = self._config.chunk_size
        for start in range(0, total, chunk_size):
            chunk = data[start:start + chunk_size]
            yield chunk
            sent += len(chunk)
            if on_progress:
                on_progress(FileProgress.of(sent, total))
        if total == 0 and on_progress:
            on_progress(FileProgress.of(0, 0))

    async def test_connection(self) -> bool:
        """Return True when the bucket can be listed."""
        try:
            await self._client.post(
                f"/storage/v1/object/list/{self.bucket}",
                json={"prefix": "", "limit": 1},
            )
            return True
        except Exception as e:
            logger.error(f"Storage connection test failed: {e}")
            return False

    async def delete(self, file_url: str) -> None:
        """
        Delete an uploaded object given its public URL.

        The object path is the last two URL segments (``owner/name``).
        """
        path = "/".join(file_url.rstrip("/").split("/")[-2:])
        try:
            await self._client.delete(
                f"/storage/v1/object/{self.bucket}",
                json={"prefixes": [path]},
            )
        except APIError as e:
            raise TransportError(f"Failed to delete {path}: {e.detail}") from e
        logger.info(f"Deleted {self.bucket}/{path}")
