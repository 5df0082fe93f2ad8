"""Tests for the sequential queue orchestrator."""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from booky.errors import AuthError, CatalogError, DuplicateBookError, TransportError
from booky.models import BookFormat, FileProgress, QueueStatus, SourceFile, UploadConfig, UploadResult
from booky.orchestrator import QueueOrchestrator
from booky.services.identity import StaticIdentityResolver

from conftest import make_epub, make_pdf


def _result(file: SourceFile) -> UploadResult:
    return UploadResult(
        format=BookFormat.PDF,
        file_url=f"https://cdn.test/{file.name}",
        storage_path=f"user-1/{file.name}",
        size=file.size,
    )


class FakeStorage:
    """Records calls in order; fails for configured file names."""

    def __init__(self, fail=(), progress=(25, 50, 75, 100)):
        self.calls = []
        self.fail = set(fail)
        self.progress = progress

    async def upload(self, file, owner_id, on_progress=None):
        self.calls.append(file.name)
        for percent in self.progress:
            await asyncio.sleep(0)
            if on_progress:
                on_progress(FileProgress(percent, 100, float(percent)))
        if file.name in self.fail:
            raise TransportError(f"Failed to upload file: {file.name} rejected")
        return _result(file)


def _build(storage=None, owner="user-1", catalog=None, config=None):
    storage = storage or FakeStorage()
    sink = MagicMock()
    sink.show.return_value = "batch"
    sink.progress.return_value = "item"
    orchestrator = QueueOrchestrator(
        storage=storage,
        identity=StaticIdentityResolver(owner),
        catalog=catalog,
        notifications=sink,
        config=config,
    )
    return orchestrator, storage, sink


@pytest.mark.asyncio
async def test_every_item_ends_terminal():
    orchestrator, storage, _ = _build(FakeStorage(fail={"b.pdf"}))
    orchestrator.enqueue_files([make_pdf("a.pdf"), make_pdf("b.pdf"), make_epub("c.epub")])

    await orchestrator.process_queue()

    statuses = {item.status for item in orchestrator.queue.items()}
    assert statuses <= {QueueStatus.COMPLETED, QueueStatus.ERROR}


@pytest.mark.asyncio
async def test_partial_failure_keeps_order_and_continues():
    orchestrator, storage, sink = _build(FakeStorage(fail={"b.pdf"}))
    a, b, c = orchestrator.enqueue_files(
        [make_pdf("a.pdf"), make_pdf("b.pdf"), make_pdf("c.pdf")]
    ).ids

    result = await orchestrator.process_queue()

    queue = orchestrator.queue
    assert queue.get(a).status is QueueStatus.COMPLETED
    assert queue.get(b).status is QueueStatus.ERROR
    assert "b.pdf rejected" in queue.get(b).error
    assert queue.get(c).status is QueueStatus.COMPLETED
    assert storage.calls == ["a.pdf", "b.pdf", "c.pdf"]

    assert result.completed == 2
    assert result.total == 3
    assert result.failed == 1
    assert result.summary == "Successfully uploaded 2 of 3 files"
    sink.update.assert_any_call(
        "batch", "Upload Complete", "Successfully uploaded 2 of 3 files", duration=3.0
    )
    sink.error.assert_called_once()
    assert "b.pdf" in sink.error.call_args[0][0]


@pytest.mark.asyncio
async def test_bad_pdf_never_reaches_transport():
    orchestrator, storage, _ = _build()
    fake = SourceFile.from_bytes("fake.pdf", b"GIF89a....", "application/pdf")

    enqueued = orchestrator.enqueue_files([fake, make_pdf("real.pdf")])
    await orchestrator.process_queue()

    assert len(enqueued.ids) == 1
    assert enqueued.rejected == [(fake, "Invalid PDF file")]
    assert storage.calls == ["real.pdf"]


@pytest.mark.asyncio
async def test_second_drain_while_running_is_ignored():
    release = asyncio.Event()
    storage = MagicMock()
    calls = []

    async def slow_upload(file, owner_id, on_progress=None):
        calls.append(file.name)
        await release.wait()
        return _result(file)

    storage.upload = slow_upload
    orchestrator, _, _ = _build(storage)
    orchestrator.enqueue_files([make_pdf("a.pdf"), make_pdf("b.pdf")])

    first = asyncio.create_task(orchestrator.process_queue())
    while not calls:
        await asyncio.sleep(0)

    assert orchestrator.is_uploading is True
    assert await orchestrator.process_queue() is None
    assert calls == ["a.pdf"]

    release.set()
    result = await first

    assert calls == ["a.pdf", "b.pdf"]
    assert result.completed == 2
    assert orchestrator.is_uploading is False


@pytest.mark.asyncio
async def test_independent_orchestrators_do_not_block_each_other():
    release = asyncio.Event()

    class Blocking(FakeStorage):
        async def upload(self, file, owner_id, on_progress=None):
            self.calls.append(file.name)
            await release.wait()
            return _result(file)

    first, first_storage, _ = _build(Blocking())
    second, second_storage, _ = _build()
    first.enqueue_files([make_pdf("a.pdf")])
    second.enqueue_files([make_pdf("b.pdf")])

    pending = asyncio.create_task(first.process_queue())
    while not first_storage.calls:
        await asyncio.sleep(0)

    result = await second.process_queue()
    assert result.completed == 1
    assert second_storage.calls == ["b.pdf"]

    release.set()
    await pending


@pytest.mark.asyncio
async def test_missing_identity_aborts_batch():
    orchestrator, storage, sink = _build(owner=None)
    orchestrator.enqueue_files([make_pdf("a.pdf"), make_pdf("b.pdf")])

    with pytest.raises(AuthError):
        await orchestrator.process_queue()

    assert storage.calls == []
    sink.error.assert_called_once_with("You must be logged in to upload files")
    sink.show.assert_not_called()
    assert all(item.status is QueueStatus.QUEUED for item in orchestrator.queue.items())
    assert orchestrator.is_uploading is False


@pytest.mark.asyncio
async def test_progress_is_monotonic_and_ends_at_100():
    observed = []

    class Jittery(FakeStorage):
        async def upload(self, file, owner_id, on_progress=None):
            for percent in (10, 40, 30, 70.6, 70, 99.6):
                on_progress(FileProgress(int(percent), 100, float(percent)))
                observed.append(orchestrator.queue.get(item_id).progress)
            return _result(file)

    orchestrator, _, sink = _build(Jittery())
    (item_id,) = orchestrator.enqueue_files([make_pdf()]).ids

    await orchestrator.process_queue()

    assert observed == sorted(observed)
    assert observed == [10, 40, 40, 70, 70, 99]
    item = orchestrator.queue.get(item_id)
    assert item.status is QueueStatus.COMPLETED
    assert item.progress == 100
    sink.update.assert_any_call("item", "Uploading book.pdf", "40%", duration=None)
    finished = [c for c in sink.update.call_args_list if c.args[0] == "item" and c.args[2] == "100%"]
    assert len(finished) == 1
    assert finished[0].args[1] == "book.pdf uploaded successfully"
    sink.update.assert_any_call("item", "book.pdf uploaded successfully", "100%", duration=3.0)


@pytest.mark.asyncio
async def test_catalog_failure_marks_item_error():
    catalog = AsyncMock()
    catalog.add_book.side_effect = [
        {"id": 7},
        DuplicateBookError("b"),
        CatalogError("insert failed"),
    ]
    orchestrator, storage, _ = _build(catalog=catalog)
    a, b, c = orchestrator.enqueue_files(
        [make_pdf("a.pdf"), make_pdf("b.pdf"), make_pdf("c.pdf")]
    ).ids

    result = await orchestrator.process_queue()

    queue = orchestrator.queue
    assert queue.get(a).status is QueueStatus.COMPLETED
    assert queue.get(a).result.book_id == "7"
    assert queue.get(b).error == 'A book titled "b" already exists in your library'
    assert queue.get(c).error == "insert failed"
    assert storage.calls == ["a.pdf", "b.pdf", "c.pdf"]
    assert result.completed == 1
    assert catalog.add_book.await_args_list[0].args[0] == "user-1"


@pytest.mark.asyncio
async def test_unexpected_exception_is_isolated():
    storage = AsyncMock()
    storage.upload.side_effect = [RuntimeError("socket closed"), _result(make_pdf("b.pdf"))]
    orchestrator, _, _ = _build(storage)
    a, b = orchestrator.enqueue_files([make_pdf("a.pdf"), make_pdf("b.pdf")]).ids

    result = await orchestrator.process_queue()

    assert orchestrator.queue.get(a).error == "socket closed"
    assert orchestrator.queue.get(b).status is QueueStatus.COMPLETED
    assert result.failed == 1


@pytest.mark.asyncio
async def test_item_timeout_moves_on():
    class Hanging(FakeStorage):
        async def upload(self, file, owner_id, on_progress=None):
            self.calls.append(file.name)
            if file.name == "slow.pdf":
                await asyncio.sleep(10)
            return _result(file)

    orchestrator, storage, _ = _build(Hanging(), config=UploadConfig(item_timeout=0.05))
    slow, fast = orchestrator.enqueue_files([make_pdf("slow.pdf"), make_pdf("fast.pdf")]).ids

    result = await orchestrator.process_queue()

    assert orchestrator.queue.get(slow).status is QueueStatus.ERROR
    assert orchestrator.queue.get(slow).error == "Upload timed out after 0.05s"
    assert orchestrator.queue.get(fast).status is QueueStatus.COMPLETED
    assert result.completed == 1


@pytest.mark.asyncio
async def test_notification_failures_never_abort():
    orchestrator, storage, sink = _build(FakeStorage(fail={"b.pdf"}))
    sink.show.side_effect = RuntimeError("toast crashed")
    sink.progress.side_effect = RuntimeError("toast crashed")
    sink.update.side_effect = RuntimeError("toast crashed")
    sink.error.side_effect = RuntimeError("toast crashed")
    orchestrator.enqueue_files([make_pdf("a.pdf"), make_pdf("b.pdf")])

    result = await orchestrator.process_queue()

    assert result.completed == 1
    assert result.failed == 1


@pytest.mark.asyncio
async def test_removed_queued_item_is_skipped():
    orchestrator, storage, _ = _build()
    a, b = orchestrator.enqueue_files([make_pdf("a.pdf"), make_pdf("b.pdf")]).ids

    class RemovingStorage(FakeStorage):
        async def upload(self, file, owner_id, on_progress=None):
            orchestrator.remove(b)
            return await super().upload(file, owner_id, on_progress)

    orchestrator._storage = RemovingStorage()
    result = await orchestrator.process_queue()

    assert orchestrator._storage.calls == ["a.pdf"]
    assert result.cancelled == 1
    assert result.total == 1
    assert orchestrator.queue.ids() == [a]


@pytest.mark.asyncio
async def test_removing_in_flight_item_drops_late_progress():
    orchestrator, _, sink = _build()
    (item_id,) = orchestrator.enqueue_files([make_pdf("a.pdf")]).ids

    class RemoveMidUpload(FakeStorage):
        async def upload(self, file, owner_id, on_progress=None):
            on_progress(FileProgress(10, 100, 10.0))
            orchestrator.remove(item_id)
            on_progress(FileProgress(90, 100, 90.0))
            return _result(file)

    orchestrator._storage = RemoveMidUpload()
    result = await orchestrator.process_queue()

    assert item_id not in orchestrator.queue
    assert result.completed == 1
    progress_updates = [c for c in sink.update.call_args_list if c.args[2] == "90%"]
    assert progress_updates == []


@pytest.mark.asyncio
async def test_completed_and_failed_items_are_not_reprocessed():
    orchestrator, storage, _ = _build(FakeStorage(fail={"b.pdf"}))
    orchestrator.enqueue_files([make_pdf("a.pdf"), make_pdf("b.pdf")])
    await orchestrator.process_queue()

    orchestrator.enqueue_files([make_pdf("c.pdf")])
    result = await orchestrator.process_queue()

    assert storage.calls == ["a.pdf", "b.pdf", "c.pdf"]
    assert result.completed == 2
    assert result.failed == 1


@pytest.mark.asyncio
async def test_requeue_retries_failed_item():
    storage = FakeStorage(fail={"b.pdf"})
    orchestrator, _, _ = _build(storage)
    _, b = orchestrator.enqueue_files([make_pdf("a.pdf"), make_pdf("b.pdf")]).ids
    await orchestrator.process_queue()

    storage.fail.clear()
    retry_id = orchestrator.requeue(b)
    result = await orchestrator.process_queue()

    assert storage.calls == ["a.pdf", "b.pdf", "b.pdf"]
    assert orchestrator.queue.get(retry_id).status is QueueStatus.COMPLETED
    assert result.all_success is True
    assert result.completed == 2


@pytest.mark.asyncio
async def test_orchestrator_does_not_auto_clear():
    orchestrator, _, _ = _build()
    orchestrator.enqueue_files([make_pdf("a.pdf")])
    await orchestrator.process_queue()
    assert len(orchestrator.queue) == 1

    orchestrator.clear()
    assert len(orchestrator.queue) == 0
