"""
Book Repository - Single Responsibility: persist book records to the catalog.

Implements Repository Pattern over the hosted database REST API.
"""
import logging
from typing import Any, Dict, Optional

from ..errors import APIError, CatalogError, DuplicateBookError
from ..models import SourceFile, UploadResult
from ..protocols import IAPIClient, ICatalog

logger = logging.getLogger(__name__)

BOOKS_ENDPOINT = "/rest/v1/books"


class BookRepository(ICatalog):
    """
    Repository for book records.

    Rejects a second book with the same title for the same owner.
    """

    def __init__(self, api_client: IAPIClient):
        """
        Initialize repository.

        Args:
            api_client: HTTP client for API calls
        """
        self._api = api_client

    @staticmethod
    def prepare_book(owner_id: str, file: SourceFile, upload: UploadResult) -> Dict[str, Any]:
        """Build the book row for an uploaded file."""
        return {
            "title": file.stem,
            "author": None,
            "format": upload.format.value,
            "file_url": upload.file_url,
            "status": "unread",
            "progress": 0,
            "user_id": owner_id,
            "metadata": {"size": upload.size},
        }

    async def find_by_title(self, owner_id: str, title: str) -> Optional[Dict[str, Any]]:
        """Return the owner's book with exactly this title, if any."""
        try:
            response = await self._api.get(BOOKS_ENDPOINT, params={
                "select": "id,title",
                "user_id": f"eq.{owner_id}",
                "title": f"eq.{title}",
                "limit": "1",
            })
        except APIError as e:
            raise CatalogError(f"Failed to look up book: {e.detail}") from e
        rows = response.json()
        return rows[0] if rows else None

    async def add_book(self, owner_id: str, file: SourceFile, upload: UploadResult) -> Dict[str, Any]:
        """
        Create the book record for an uploaded file.

        Args:
            owner_id: Owner id
            file: Source file (title comes from its name)
            upload: Transport result

        Returns:
            Created book row

        Raises:
            DuplicateBookError: title already in the owner's library
            CatalogError: insert failed
        """
        book = self.prepare_book(owner_id, file, upload)

        if await self.find_by_title(owner_id, book["title"]):
            raise DuplicateBookError(book["title"])

        try:
            response = await self._api.post(
                BOOKS_ENDPOINT,
                json=[book],
                headers={"Prefer": "return=representation"},
                # a timed-out insert may have committed
                retry=False,
            )
        except APIError as e:
            if e.status_code == 409:
                raise DuplicateBookError(book["title"]) from e
            raise CatalogError(f"Failed to create book: {e.detail}") from e

        rows = response.json()
        created = rows[0] if isinstance(rows, list) and rows else book
        logger.info(f"Registered book {created.get('id', '?')}: {book['title']}")
        return created
