"""Queue store - in-memory, ordered collection of upload items."""
import dataclasses
import logging
import uuid
from typing import Dict, Iterable, List, Optional

from ..errors import InvalidTransitionError
from ..models import QueueItem, QueueStatus, SourceFile, UploadResult

logger = logging.getLogger(__name__)

# Allowed status transitions; terminal states have none.
TRANSITIONS = {
    QueueStatus.QUEUED: {QueueStatus.UPLOADING},
    QueueStatus.UPLOADING: {QueueStatus.COMPLETED, QueueStatus.ERROR},
    QueueStatus.COMPLETED: set(),
    QueueStatus.ERROR: set(),
}


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


class UploadQueue:
    """
    Ordered upload items keyed by id.

    Readers get copies; only the orchestrator calls the update methods.
    """

    def __init__(self):
        self._items: Dict[str, QueueItem] = {}

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._items

    def enqueue(self, files: Iterable[SourceFile]) -> List[str]:
        """Append one queued item per file, in order. Returns the new ids."""
        ids = []
        for file in files:
            item = QueueItem(id=_new_id(), source=file)
            self._items[item.id] = item
            ids.append(item.id)
        logger.debug(f"Enqueued {len(ids)} file(s), queue size {len(self._items)}")
        return ids

    def remove(self, item_id: str) -> bool:
        """Delete item if present. Returns whether something was removed."""
        return self._items.pop(item_id, None) is not None

    def clear(self) -> None:
        self._items.clear()

    def requeue(self, item_id: str) -> str:
        """
        Replace a failed item with a fresh queued copy at the same position.

        Returns:
            Id of the new item

        Raises:
            KeyError: unknown id
            InvalidTransitionError: item is not in error state
        """
        item = self._require(item_id)
        if item.status is not QueueStatus.ERROR:
            raise InvalidTransitionError(
                f"Only failed items can be requeued ({item.name} is {item.status.value})"
            )
        fresh = QueueItem(id=_new_id(), source=item.source)
        self._items = {
            (fresh.id if key == item_id else key): (fresh if key == item_id else value)
            for key, value in self._items.items()
        }
        logger.debug(f"Requeued {item.name}: {item_id} -> {fresh.id}")
        return fresh.id

    # Read side

    def get(self, item_id: str) -> Optional[QueueItem]:
        item = self._items.get(item_id)
        return dataclasses.replace(item) if item else None

    def items(self) -> List[QueueItem]:
        return [dataclasses.replace(item) for item in self._items.values()]

    def ids(self) -> List[str]:
        return list(self._items)

    def counts(self) -> Dict[QueueStatus, int]:
        counts = {status: 0 for status in QueueStatus}
        for item in self._items.values():
            counts[item.status] += 1
        return counts

    # Orchestrator side

    def update_status(
        self,
        item_id: str,
        status: QueueStatus,
        error: Optional[str] = None,
        result: Optional[UploadResult] = None,
    ) -> None:
        """
        Move item to ``status``.

        Completing forces progress to 100. ``error`` is kept only for the
        error status.
        """
        item = self._require(item_id)
        if status not in TRANSITIONS[item.status]:
            raise InvalidTransitionError(
                f"{item.name}: {item.status.value} -> {status.value} is not allowed"
            )
        item.status = status
        item.error = (error or "Upload failed") if status is QueueStatus.ERROR else None
        if status is QueueStatus.COMPLETED:
            item.progress = 100
            item.result = result

    def update_progress(self, item_id: str, progress: float) -> int:
        """
        Record progress for an uploading item.

        Clamped to [0, 100] and never lowered. Returns the stored value.
        """
        item = self._require(item_id)
        if item.status is not QueueStatus.UPLOADING:
            raise InvalidTransitionError(
                f"{item.name}: progress update while {item.status.value}"
            )
        # floored: 100 is reserved for completion
        value = min(max(int(progress), 0), 100)
        item.progress = max(item.progress, value)
        return item.progress

    def _require(self, item_id: str) -> QueueItem:
        try:
            return self._items[item_id]
        except KeyError:
            raise KeyError(f"No queue item with id {item_id}") from None
