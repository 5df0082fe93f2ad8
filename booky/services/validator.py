"""
Validator Service - Single Responsibility: reject unacceptable files early.

Checks size, declared media type and content signature before any
network transfer is attempted.
"""
import io
import logging
import zipfile
import zlib
from typing import Optional

from ..errors import FileValidationError
from ..models import BookFormat, SourceFile, UploadConfig

logger = logging.getLogger(__name__)

ALLOWED_TYPES = {
    "application/pdf": BookFormat.PDF,
    "application/epub+zip": BookFormat.EPUB,
}
PDF_SIGNATURE = b"%PDF-"
ZIP_SIGNATURE = b"PK\x03\x04"
EPUB_MIMETYPE = b"application/epub+zip"


def format_for(media_type: str) -> BookFormat:
    """Map an allowed media type to its canonical book format."""
    try:
        return ALLOWED_TYPES[media_type]
    except KeyError:
        raise FileValidationError("Invalid file type") from None


class FileValidator:
    """Validates book files against size, type and signature constraints."""

    def __init__(self, config: Optional[UploadConfig] = None):
        self._config = config or UploadConfig()

    def validate(self, file: SourceFile) -> BookFormat:
        """
        Validate file, raising on the first failed constraint.

        Args:
            file: File to check

        Returns:
            Canonical format of the accepted file

        Raises:
            FileValidationError: with a human readable reason
        """
        if file.size > self._config.max_file_size:
            raise FileValidationError(
                f"File size must be less than {self._config.max_file_size_mb}MB"
            )

        if file.media_type not in ALLOWED_TYPES:
            raise FileValidationError(
                "Invalid file type. Only PDF and EPUB files are allowed."
            )

        fmt = format_for(file.media_type)
        if fmt is BookFormat.PDF:
            self._check_pdf(file)
        else:
            self._check_epub(file)

        logger.debug(f"Validated {file.name} ({fmt.value}, {file.size} bytes)")
        return fmt

    def is_valid(self, file: SourceFile) -> bool:
        try:
            self.validate(file)
        except FileValidationError:
            return False
        return True

    @staticmethod
    def _check_pdf(file: SourceFile) -> None:
        try:
            head = file.read_head(len(PDF_SIGNATURE))
        except OSError as e:
            raise FileValidationError(f"Could not read {file.name}: {e}") from e
        if head != PDF_SIGNATURE:
            raise FileValidationError("Invalid PDF file")

    def _check_epub(self, file: SourceFile) -> None:
        if not file.name.lower().endswith(".epub"):
            raise FileValidationError("Invalid EPUB file")
        if self._config.strict_epub:
            self._check_epub_container(file)

    @staticmethod
    def _check_epub_container(file: SourceFile) -> None:
        """ZIP magic plus a ``mimetype`` entry naming the EPUB media type."""
        try:
            if file.read_head(len(ZIP_SIGNATURE)) != ZIP_SIGNATURE:
                raise FileValidationError("Invalid EPUB file")
            source = io.BytesIO(file.data) if file.data is not None else file.path
            with zipfile.ZipFile(source) as archive:
                mimetype = archive.read("mimetype").strip()
        except (
            OSError,
            KeyError,
            EOFError,
            RuntimeError,
            NotImplementedError,
            zipfile.BadZipFile,
            zipfile.LargeZipFile,
            zlib.error,
        ) as e:
            raise FileValidationError("Invalid EPUB file") from e
        if mimetype != EPUB_MIMETYPE:
            raise FileValidationError("Invalid EPUB file")


def validate_file(file: SourceFile, config: Optional[UploadConfig] = None) -> BookFormat:
    """Validate ``file`` with a default (or given) configuration."""
    return FileValidator(config).validate(file)
