"""Shared fixtures for booky tests."""
import io
import zipfile

import pytest

from booky.models import SourceFile


def make_pdf(name: str = "book.pdf", body: bytes = b"1.7\n%fake body\n") -> SourceFile:
    return SourceFile.from_bytes(name, b"%PDF-" + body, "application/pdf")


def make_epub(name: str = "book.epub", mimetype: bytes = b"application/epub+zip") -> SourceFile:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("mimetype", mimetype)
        archive.writestr("META-INF/container.xml", "<container/>")
    return SourceFile.from_bytes(name, buffer.getvalue(), "application/epub+zip")


@pytest.fixture
def pdf_file():
    return make_pdf()


@pytest.fixture
def epub_file():
    return make_epub()
