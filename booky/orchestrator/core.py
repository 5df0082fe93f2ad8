"""Core orchestrator - drains the upload queue one item at a time."""
import asyncio
import dataclasses
import logging
from typing import Iterable, Optional

from ..errors import AuthError, FileValidationError, InvalidTransitionError
from ..models import BatchResult, FileProgress, QueueItem, QueueStatus, SourceFile, UploadConfig, UploadResult
from ..protocols import ICatalog, IIdentityResolver, INotificationSink, IStorageBackend
from ..services.notifications import NullNotificationSink
from ..services.validator import FileValidator
from .models import EnqueueResult
from .store import UploadQueue

logger = logging.getLogger(__name__)

LOGIN_REQUIRED = "You must be logged in to upload files"


class QueueOrchestrator:
    """
    Orchestrates sequential uploads of queued book files.

    Items are processed strictly in insertion order. One item's failure is
    recorded on the item and never aborts the batch. At most one drain runs
    per instance; independent instances do not block each other.

    Usage:
        orchestrator = QueueOrchestrator(storage, identity, catalog, sink)
        orchestrator.enqueue_files([SourceFile.from_path(p) for p in paths])
        result = await orchestrator.process_queue()
        print(result.summary)
    """

    def __init__(
        self,
        storage: IStorageBackend,
        identity: IIdentityResolver,
        catalog: Optional[ICatalog] = None,
        notifications: Optional[INotificationSink] = None,
        config: Optional[UploadConfig] = None,
        queue: Optional[UploadQueue] = None,
    ):
        """
        Initialize orchestrator with dependencies.

        Args:
            storage: Upload transport
            identity: Owner identity resolver
            catalog: Book catalog; uploads are not registered when None
            notifications: Progress/result sink (defaults to a null sink)
            config: Upload configuration
            queue: Queue store (a fresh one by default)
        """
        self._storage = storage
        self._identity = identity
        self._catalog = catalog
        self._notifications = notifications or NullNotificationSink()
        self._config = config or UploadConfig()
        self._validator = FileValidator(self._config)
        self._queue = queue if queue is not None else UploadQueue()
        self._uploading = False

    @property
    def queue(self) -> UploadQueue:
        return self._queue

    @property
    def is_uploading(self) -> bool:
        return self._uploading

    def enqueue_files(self, files: Iterable[SourceFile]) -> EnqueueResult:
        """Validate files and enqueue the accepted ones."""
        result = EnqueueResult()
        accepted = []
        for file in files:
            try:
                self._validator.validate(file)
            except FileValidationError as e:
                logger.warning(f"Rejected {file.name}: {e}")
                result.rejected.append((file, str(e)))
                continue
            accepted.append(file)
        result.ids = self._queue.enqueue(accepted)
        return result

    def remove(self, item_id: str) -> bool:
        return self._queue.remove(item_id)

    def clear(self) -> None:
        if self._uploading:
            logger.warning("Clearing queue while a drain is in progress")
        self._queue.clear()

    def requeue(self, item_id: str) -> str:
        return self._queue.requeue(item_id)

    async def process_queue(self) -> Optional[BatchResult]:
        """
        Drain the queue.

        Returns:
            BatchResult, or None when another drain is already running

        Raises:
            AuthError: no owner identity; nothing was uploaded
        """
        if self._uploading:
            logger.debug("Drain already in progress, ignoring")
            return None
        self._uploading = True

        try:
            owner_id = await self._resolve_owner()

            batch = self._queue.ids()
            logger.info(f"Starting drain of {len(batch)} item(s) for {owner_id}")
            batch_handle = self._notify(
                "show", "Uploading Books", "Starting upload...", duration=None
            )

            completed = failed = cancelled = 0
            for item_id in batch:
                item = self._queue.get(item_id)
                if item is None:
                    cancelled += 1
                    continue
                if item.status is QueueStatus.COMPLETED:
                    completed += 1
                    continue
                if item.status is QueueStatus.ERROR:
                    # terminal; retried only through requeue()
                    failed += 1
                    continue

                if await self._process_item(item, owner_id):
                    completed += 1
                else:
                    failed += 1

            result = BatchResult(
                total=completed + failed,
                completed=completed,
                failed=failed,
                cancelled=cancelled,
                item_ids=tuple(batch),
            )
            logger.info(f"Drain finished: {result.summary} ({failed} failed, {cancelled} removed)")
            self._notify(
                "update", batch_handle, "Upload Complete", result.summary, duration=3.0
            )
            return result
        finally:
            self._uploading = False

    async def _resolve_owner(self) -> str:
        try:
            owner_id = await self._identity.resolve()
        except AuthError as e:
            self._notify("error", str(e) or LOGIN_REQUIRED)
            raise
        if not owner_id:
            self._notify("error", LOGIN_REQUIRED)
            raise AuthError(LOGIN_REQUIRED)
        return owner_id

    async def _process_item(self, item: QueueItem, owner_id: str) -> bool:
        """Upload one item. Returns True when it completed."""
        name = item.name
        self._queue.update_status(item.id, QueueStatus.UPLOADING)
        handle = self._notify("progress", f"Uploading {name}", 0)

        def on_progress(progress: FileProgress) -> None:
            try:
                percent = self._queue.update_progress(item.id, progress.progress)
            except (KeyError, InvalidTransitionError):
                logger.debug(f"Dropping progress for {name}: item no longer uploading")
                return
            self._notify("update", handle, f"Uploading {name}", f"{percent}%", duration=None)

        try:
            upload = await self._with_timeout(self._upload_and_register(item, owner_id, on_progress))
        except asyncio.CancelledError:
            raise
        except asyncio.TimeoutError:
            message = f"Upload timed out after {self._config.item_timeout:g}s"
            self._fail(item, handle, message)
            return False
        except Exception as e:
            self._fail(item, handle, str(e) or "Upload failed")
            return False

        self._set_status(item, QueueStatus.COMPLETED, result=upload)
        logger.info(f"Uploaded {name} -> {upload.file_url}")
        self._notify(
            "update", handle, f"{name} uploaded successfully", "100%", duration=3.0
        )
        return True

    async def _upload_and_register(self, item: QueueItem, owner_id: str, on_progress) -> UploadResult:
        upload = await self._storage.upload(item.source, owner_id, on_progress)
        if self._catalog is not None:
            book = await self._catalog.add_book(owner_id, item.source, upload)
            book_id = book.get("id")
            upload = dataclasses.replace(upload, book_id=str(book_id) if book_id is not None else None)
        return upload

    async def _with_timeout(self, coro):
        if self._config.item_timeout is None:
            return await coro
        return await asyncio.wait_for(coro, self._config.item_timeout)

    def _fail(self, item: QueueItem, handle: Optional[str], message: str) -> None:
        logger.error(f"Upload failed for {item.name}: {message}")
        self._set_status(item, QueueStatus.ERROR, error=message)
        if handle:
            self._notify("dismiss", handle)
        self._notify("error", f"Failed to upload {item.name}: {message}")

    def _set_status(self, item: QueueItem, status: QueueStatus, **kwargs) -> None:
        try:
            self._queue.update_status(item.id, status, **kwargs)
        except KeyError:
            logger.debug(f"{item.name} was removed while uploading, outcome not recorded")

    def _notify(self, method: str, *args, **kwargs):
        """Call the notification sink; its failures never reach the drain."""
        try:
            return getattr(self._notifications, method)(*args, **kwargs)
        except Exception as e:
            logger.warning(f"Notification sink failed on {method}: {e}")
            return None
