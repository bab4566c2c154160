"""Tests for the backend base classes."""

import io
import logging

import pytest

from diskspec.exceptions import InvalidKeyError, StorageClosedError, StorageOperationFailedError
from diskspec.storage.backends.base import AdvancedObjectStoreBase
from diskspec.storage.types import FileInfo, ListOptions, ListResult, UploadResult


class DictStore(AdvancedObjectStoreBase):
    """Minimal backend relying on every default the base class provides."""

    driver = "dict"

    def __init__(self) -> None:
        super().__init__()
        self.data: dict[str, bytes] = {}
        self.closed_hooks = 0

    def _upload(self, key, stream, options):
        self.data[key] = stream.read()
        return UploadResult(key=key, size=len(self.data[key]))

    def _download(self, key):
        return io.BytesIO(self.data[key])

    def _delete(self, key):
        self.data.pop(key, None)

    def _exists(self, key):
        return key in self.data

    def _url(self, key):
        return f"dict://{key}"

    def _list(self, prefix, options):
        page, marker, truncated = self._list_keys(sorted(k for k in self.data if k.startswith(prefix)), options)
        return ListResult(files=[FileInfo(key=k) for k in page], next_marker=marker, is_truncated=truncated)

    def _copy(self, source, destination):
        self.data[destination] = self.data[source]

    def _size(self, key):
        return len(self.data[key])

    def _metadata(self, key):
        return FileInfo(key=key, size=len(self.data[key]))

    def _close(self):
        self.closed_hooks += 1


def test_move_defaults_to_copy_then_delete() -> None:
    """Test the move fallback."""
    store = DictStore()
    store.upload("a", io.BytesIO(b"1"))

    store.move("a", "b")

    assert store.data == {"b": b"1"}


def test_signed_url_defaults_to_url() -> None:
    """Test the signed URL fallback."""
    assert DictStore().signed_url("a", 60) == "dict://a"


def test_unexpected_errors_are_wrapped() -> None:
    """Test backend exceptions become storage errors tagged with the operation."""
    store = DictStore()

    with pytest.raises(StorageOperationFailedError) as exc_info:
        store.download("missing")

    assert exc_info.value.operation == "download"
    assert exc_info.value.key == "missing"
    assert isinstance(exc_info.value.__cause__, KeyError)


def test_empty_key_is_rejected() -> None:
    """Test key validation."""
    with pytest.raises(InvalidKeyError):
        DictStore().exists("")


def test_list_keys_pagination() -> None:
    """Test the shared pagination helper."""
    store = DictStore()
    keys = ["a", "b", "c"]

    assert store._list_keys(keys, ListOptions(max_keys=2)) == (["a", "b"], "b", True)
    assert store._list_keys(keys, ListOptions(max_keys=2, marker="b")) == (["c"], "", False)
    assert store._list_keys(keys, ListOptions(max_keys=0)) == (keys, "", False)


def test_close_runs_hook_once() -> None:
    """Test close is idempotent and later calls fail."""
    store = DictStore()

    with store:
        store.upload("a", io.BytesIO(b"1"))
    store.close()

    assert store.closed_hooks == 1
    with pytest.raises(StorageClosedError):
        store.upload("b", io.BytesIO(b"2"))


def test_operations_are_logged(caplog: pytest.LogCaptureFixture) -> None:
    """Test operation timing is logged at debug level."""
    store = DictStore()

    with caplog.at_level(logging.DEBUG, logger="diskspec.storage.dict"):
        store.exists("a")

    assert any("exists 'a' took" in r.getMessage() for r in caplog.records)
