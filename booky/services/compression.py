"""
Compression Service - best-effort PDF stream recompression.

Never raises: a failed recompression hands back the original bytes so the
upload can go ahead unchanged.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

import fitz  # PyMuPDF

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompressionResult:
    """Outcome of a recompression attempt; ``data`` is always uploadable."""
    data: bytes = field(repr=False)
    original_size: int
    compressed: bool = False
    error: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def saved_bytes(self) -> int:
        return self.original_size - self.size

    @classmethod
    def unchanged(cls, data: bytes, error: Optional[str] = None) -> "CompressionResult":
        return cls(data=data, original_size=len(data), compressed=False, error=error)


class PdfCompressor:
    """Rewrites PDF object streams with deflate and garbage collection."""

    def __init__(self, garbage: int = 3):
        self._garbage = garbage

    def compress(self, data: bytes) -> CompressionResult:
        """
        Recompress PDF bytes.

        Args:
            data: Original PDF payload

        Returns:
            CompressionResult with the smaller of original and rewritten bytes
        """
        try:
            with fitz.open(stream=data, filetype="pdf") as doc:
                rewritten = doc.tobytes(garbage=self._garbage, deflate=True)
        except Exception as e:
            logger.warning(f"PDF recompression failed, uploading original: {e}")
            return CompressionResult.unchanged(data, error=str(e))

        if len(rewritten) >= len(data):
            logger.debug("Recompressed PDF is not smaller, keeping original")
            return CompressionResult.unchanged(data)

        logger.debug(f"Recompressed PDF {len(data)} -> {len(rewritten)} bytes")
        return CompressionResult(data=rewritten, original_size=len(data), compressed=True)

    async def compress_async(self, data: bytes) -> CompressionResult:
        """Recompress off the event loop."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.compress, data)
