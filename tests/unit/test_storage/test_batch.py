"""Tests for concurrent batch operations."""

from __future__ import annotations

import io
import threading
import time

import pytest

from diskspec.exceptions import CancellationError, StorageNotImplementedError, StorageOperationFailedError
from diskspec.storage.batch import BatchUploadItem, batch_delete, batch_upload, delete_all_by_prefix, run_batch
from diskspec.storage.types import ListOptions, ListResult


def test_run_batch_isolates_failures() -> None:
    """Test one failing item does not affect the others."""

    def operation(item: int) -> int:
        if item % 3 == 0:
            raise ValueError(f"bad {item}")
        return item * 2

    result = run_batch(list(range(10)), operation, concurrency=3)

    assert result.total == 10
    assert sorted(s.item for s in result.succeeded) == [1, 2, 4, 5, 7, 8]
    assert sorted(f.item for f in result.failed) == [0, 3, 6, 9]
    assert all(isinstance(f.error, ValueError) for f in result.failed)
    assert all(s.result == s.item * 2 for s in result.succeeded)
    assert not result.ok


def test_run_batch_empty() -> None:
    """Test an empty batch returns immediately."""
    result = run_batch([], lambda item: item)

    assert result.total == 0
    assert result.ok


@pytest.mark.parametrize("concurrency", [1, 2, 4])
def test_run_batch_respects_concurrency(concurrency: int) -> None:
    """Test no more than ``concurrency`` operations run at once."""
    active = 0
    peak = 0
    lock = threading.Lock()

    def operation(item: int) -> int:
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        time.sleep(0.01)
        with lock:
            active -= 1
        return item

    result = run_batch(list(range(12)), operation, concurrency=concurrency)

    assert len(result.succeeded) == 12
    assert 1 <= peak <= concurrency


def test_run_batch_cancelled_before_start() -> None:
    """Test a batch cancelled up front never calls the operation."""
    cancel = threading.Event()
    cancel.set()
    calls = []

    result = run_batch(list(range(5)), calls.append, concurrency=2, cancel_event=cancel)

    assert calls == []
    assert result.succeeded == []
    assert len(result.failed) == 5
    assert all(isinstance(f.error, CancellationError) for f in result.failed)


def test_run_batch_cancelled_midway() -> None:
    """Test items admitted after cancellation fail while running ones finish."""
    cancel = threading.Event()
    started = []
    lock = threading.Lock()

    def operation(item: int) -> int:
        with lock:
            started.append(item)
        if item == 0:
            cancel.set()
        time.sleep(0.02)
        return item

    result = run_batch(list(range(20)), operation, concurrency=1, cancel_event=cancel)

    assert result.total == 20
    assert [s.item for s in result.succeeded] == started
    assert 0 in started
    assert all(isinstance(f.error, CancellationError) for f in result.failed)
    assert len(result.failed) >= 1


def test_batch_upload(memory_storage) -> None:
    """Test uploading many objects."""
    items = [BatchUploadItem(key=f"k{i}", stream=io.BytesIO(b"x" * i)) for i in range(5)]

    result = batch_upload(memory_storage, items, concurrency=2)

    assert result.ok
    assert sorted(memory_storage.objects) == ["k0", "k1", "k2", "k3", "k4"]
    assert {s.item.key: s.result.size for s in result.succeeded} == {f"k{i}": i for i in range(5)}


def test_batch_delete(memory_storage) -> None:
    """Test deleting many objects."""
    memory_storage.objects.update({"a": b"1", "b": b"2", "c": b"3"})

    result = batch_delete(memory_storage, ["a", "b"])

    assert result.total == 2
    assert memory_storage.objects == {"c": b"3"}


def test_delete_all_by_prefix_paginates(advanced_storage) -> None:
    """Test every page of the listing is deleted exactly once."""
    keys = [f"logs/{i:05d}.txt" for i in range(2500)]
    advanced_storage.objects.update({key: b"" for key in keys})
    advanced_storage.objects["other/keep.txt"] = b"keep"

    result = delete_all_by_prefix(advanced_storage, "logs/", concurrency=8)

    assert result.total == 2500
    assert result.ok
    assert len(advanced_storage.list_calls) == 3
    assert [options.marker for options in advanced_storage.list_calls] == ["", keys[999], keys[1999]]
    assert all(options.max_keys == 1000 for options in advanced_storage.list_calls)
    assert sorted(advanced_storage.deleted) == keys
    assert advanced_storage.objects == {"other/keep.txt": b"keep"}


def test_delete_all_by_prefix_empty_listing(advanced_storage) -> None:
    """Test nothing is deleted when the prefix matches nothing."""
    result = delete_all_by_prefix(advanced_storage, "none/")

    assert result.total == 0
    assert advanced_storage.deleted == []


def test_delete_all_by_prefix_requires_listing(memory_storage) -> None:
    """Test a backend without listing cannot delete by prefix."""
    with pytest.raises(StorageNotImplementedError):
        delete_all_by_prefix(memory_storage, "logs/")


def test_delete_all_by_prefix_continues_without_next_marker(advanced_storage) -> None:
    """Test a truncated page without a marker continues after its last key."""
    keys = [f"logs/{i:05d}.txt" for i in range(2500)]
    advanced_storage.objects.update({key: b"" for key in keys})
    paged_list = advanced_storage.list

    def list_without_marker(prefix: str = "", options: ListOptions | None = None) -> ListResult:
        page = paged_list(prefix, options)
        page.next_marker = ""
        return page

    advanced_storage.list = list_without_marker

    result = delete_all_by_prefix(advanced_storage, "logs/")

    assert result.ok
    assert result.total == 2500
    assert advanced_storage.objects == {}
    assert [options.marker for options in advanced_storage.list_calls] == ["", keys[999], keys[1999]]


def test_delete_all_by_prefix_rejects_truncated_empty_page(advanced_storage) -> None:
    """Test a truncated page with nothing to continue from is an error."""
    advanced_storage.list = lambda prefix="", options=None: ListResult(is_truncated=True)

    with pytest.raises(StorageOperationFailedError):
        delete_all_by_prefix(advanced_storage, "logs/")

    assert advanced_storage.deleted == []


class _Abort(BaseException):
    pass


def test_run_batch_records_base_exceptions() -> None:
    """Test an operation raising a BaseException still accounts for its item."""

    def operation(item: int) -> int:
        if item == 1:
            raise _Abort
        return item

    result = run_batch([0, 1, 2], operation, concurrency=2)

    assert result.total == 3
    assert [f.item for f in result.failed] == [1]
    assert isinstance(result.failed[0].error, _Abort)
