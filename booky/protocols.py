"""
Protocols (Interfaces) for the upload queue collaborators.

The orchestrator depends on these, never on concrete HTTP services.
"""
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Protocol, runtime_checkable

from .models import FileProgress, SourceFile, UploadResult


ProgressCallback = Callable[[FileProgress], None]


@runtime_checkable
class IAPIClient(Protocol):
    """Interface for API operations."""

    async def post(
        self,
        endpoint: str,
        json: Any,
        headers: Optional[Dict] = None,
        retry: bool = True,
    ) -> Any:
        """POST request to API."""
        ...

    async def get(self, endpoint: str, params: Optional[Dict] = None) -> Any:
        """GET request to API."""
        ...


@runtime_checkable
class IStorageBackend(Protocol):
    """Interface for the upload transport."""

    async def upload(
        self,
        file: SourceFile,
        owner_id: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> UploadResult:
        """Transfer file bytes and return a retrievable reference."""
        ...


class ICatalog(ABC):
    """Interface for the book catalog (Repository Pattern)."""

    @abstractmethod
    async def add_book(self, owner_id: str, file: SourceFile, upload: UploadResult) -> Dict[str, Any]:
        """Register an uploaded file as a book and return the created record."""
        pass


class IIdentityResolver(ABC):
    """Interface for resolving the current owner identity."""

    @abstractmethod
    async def resolve(self) -> Optional[str]:
        """Return the owner id, or None when nobody is signed in."""
        pass


class INotificationSink(ABC):
    """
    Interface for progress/result presentation (toasts, console, logs).

    Purely advisory: the orchestrator ignores failures raised here.
    """

    @abstractmethod
    def show(
        self,
        title: str,
        description: str = "",
        variant: str = "default",
        duration: Optional[float] = None,
    ) -> str:
        """Show a message and return its handle."""
        pass

    @abstractmethod
    def update(
        self,
        handle: str,
        title: str,
        description: str = "",
        variant: str = "default",
        duration: Optional[float] = None,
    ) -> None:
        """Update a previously shown message."""
        pass

    @abstractmethod
    def dismiss(self, handle: str) -> None:
        """Remove a message."""
        pass

    def error(self, message: str) -> str:
        return self.show("Error", message, variant="destructive", duration=5.0)

    def progress(self, title: str, percent: float) -> str:
        return self.show(title, f"{round(percent)}%")
