"""Concurrent batch operations over a storage backend.

Every item of a batch ends either in ``succeeded`` or in ``failed``; one
failing item never stops the others.
"""

import threading
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, Optional

from diskspec.exceptions import CancellationError, StorageNotImplementedError, StorageOperationFailedError
from diskspec.storage.protocol import get_advanced
from diskspec.storage.types import DEFAULT_MAX_KEYS, ListOptions, UploadOptions
from diskspec.typing import ItemT, ResultT
from diskspec.utils.logging import get_logger

if TYPE_CHECKING:
    from diskspec.storage.protocol import StorageProtocol
    from diskspec.storage.types import UploadResult
    from diskspec.typing import BinaryStream

__all__ = (
    "BatchFailure",
    "BatchResult",
    "BatchSuccess",
    "BatchUploadItem",
    "batch_delete",
    "batch_upload",
    "delete_all_by_prefix",
    "run_batch",
)

logger = get_logger("storage.batch")

# Interval at which a blocked admission re-checks the cancellation event.
_ADMISSION_POLL_INTERVAL = 0.05


@dataclass
class BatchUploadItem:
    key: str
    stream: "BinaryStream"
    options: Optional[UploadOptions] = None


@dataclass
class BatchSuccess(Generic[ItemT, ResultT]):
    item: ItemT
    result: ResultT


@dataclass
class BatchFailure(Generic[ItemT]):
    item: ItemT
    error: BaseException


@dataclass
class BatchResult(Generic[ItemT, ResultT]):
    """Outcome of a batch; order within each list is completion order."""

    succeeded: "list[BatchSuccess[ItemT, ResultT]]" = field(default_factory=list)
    failed: "list[BatchFailure[ItemT]]" = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)

    @property
    def ok(self) -> bool:
        return not self.failed


def _admit(semaphore: threading.BoundedSemaphore, cancel_event: "Optional[threading.Event]") -> bool:
    """Wait for a free slot; False when cancellation fired first."""
    if cancel_event is None:
        semaphore.acquire()
        return True
    while not semaphore.acquire(timeout=_ADMISSION_POLL_INTERVAL):
        if cancel_event.is_set():
            return False
    if cancel_event.is_set():
        semaphore.release()
        return False
    return True


def run_batch(
    items: "Sequence[ItemT]",
    operation: "Callable[[ItemT], ResultT]",
    concurrency: int = 0,
    cancel_event: "Optional[threading.Event]" = None,
) -> "BatchResult[ItemT, ResultT]":
    """Apply ``operation`` to every item with at most ``concurrency`` calls in flight.

    Items are admitted in order. Before each admission the cancellation event
    is checked; an item admitted after it fired is recorded as a
    :class:`~diskspec.exceptions.CancellationError` failure without calling
    ``operation``. Items already running are allowed to finish. Anything an
    operation raises, ``BaseException`` subclasses included, is recorded as
    that item's failure.

    Args:
        items: Items to process.
        operation: Called once per admitted item, from a worker thread.
        concurrency: Maximum number of concurrent calls; ``<= 0`` means one per item.
        cancel_event: Stops admitting new items once set.

    Returns:
        The per-item outcomes, returned once every item has finished.
    """
    result: BatchResult[ItemT, ResultT] = BatchResult()
    if not items:
        return result

    limit = concurrency if concurrency > 0 else len(items)
    semaphore = threading.BoundedSemaphore(limit)
    result_lock = threading.Lock()

    def _run(item: ItemT) -> None:
        try:
            value = operation(item)
        except BaseException as exc:  # noqa: BLE001
            with result_lock:
                result.failed.append(BatchFailure(item, exc))
        else:
            with result_lock:
                result.succeeded.append(BatchSuccess(item, value))
        finally:
            semaphore.release()

    with ThreadPoolExecutor(max_workers=min(limit, len(items)), thread_name_prefix="diskspec-batch") as executor:
        for item in items:
            if (cancel_event is not None and cancel_event.is_set()) or not _admit(semaphore, cancel_event):
                with result_lock:
                    result.failed.append(BatchFailure(item, CancellationError()))
                continue
            executor.submit(_run, item)

    logger.debug("Batch finished: %d succeeded, %d failed", len(result.succeeded), len(result.failed))
    return result


def batch_upload(
    storage: "StorageProtocol",
    items: "Iterable[BatchUploadItem]",
    concurrency: int = 0,
    cancel_event: "Optional[threading.Event]" = None,
) -> "BatchResult[BatchUploadItem, UploadResult]":
    """Upload many objects concurrently."""

    def _upload(item: BatchUploadItem) -> "UploadResult":
        return storage.upload(item.key, item.stream, item.options)

    return run_batch(list(items), _upload, concurrency, cancel_event)


def batch_delete(
    storage: "StorageProtocol",
    keys: "Iterable[str]",
    concurrency: int = 0,
    cancel_event: "Optional[threading.Event]" = None,
) -> "BatchResult[str, None]":
    """Delete many objects concurrently."""
    return run_batch(list(keys), storage.delete, concurrency, cancel_event)


def delete_all_by_prefix(
    storage: "StorageProtocol",
    prefix: str,
    concurrency: int = 0,
    cancel_event: "Optional[threading.Event]" = None,
) -> "BatchResult[str, Any]":
    """Delete every object whose key starts with ``prefix``.

    All pages of the listing are collected first, then deleted in one batch.
    A truncated page without ``next_marker`` continues after its last key.

    Raises:
        StorageNotImplementedError: If the backend cannot list objects.
        StorageOperationFailedError: If a truncated page gives no way to continue.
    """
    advanced = get_advanced(storage)
    if advanced is None:
        raise StorageNotImplementedError("listing is required to delete by prefix", operation="delete_all", key=prefix)

    keys: list[str] = []
    marker = ""
    while True:
        page = advanced.list(prefix, ListOptions(max_keys=DEFAULT_MAX_KEYS, marker=marker))
        keys.extend(info.key for info in page.files)
        if not page.is_truncated:
            break
        next_marker = page.next_marker or (page.files[-1].key if page.files else "")
        if not next_marker or next_marker == marker:
            raise StorageOperationFailedError(
                "truncated listing page without a way to continue", operation="delete_all", key=prefix
            )
        marker = next_marker

    if not keys:
        return BatchResult()
    logger.debug("Deleting %d objects under prefix %r", len(keys), prefix)
    return batch_delete(storage, keys, concurrency, cancel_event)
