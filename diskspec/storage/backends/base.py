# ruff: noqa: PLR0904
"""Base classes for storage backends.

Public methods check the closed state, translate errors into the storage
taxonomy (tagged with driver, operation and key) and log at DEBUG; concrete
backends implement the underscored hooks only.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import timedelta
from typing import TYPE_CHECKING

from diskspec.exceptions import InvalidKeyError, StorageClosedError, StorageError, wrap_storage_errors
from diskspec.storage.helpers import ProgressReader, stream_size
from diskspec.storage.types import ListOptions, UploadOptions
from diskspec.utils.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Generator

    from diskspec.storage.types import FileInfo, ListResult, UploadResult
    from diskspec.typing import BinaryStream

__all__ = ("AdvancedObjectStoreBase", "ObjectStoreBase")


class ObjectStoreBase(ABC):
    """Base class implementing the core storage contract around backend hooks."""

    driver: str = "base"

    def __init__(self) -> None:
        self._closed = False
        self.logger = get_logger(f"storage.{self.driver}")

    @property
    def closed(self) -> bool:
        return self._closed

    @contextmanager
    def _operation(self, operation: str, key: str = "") -> Generator[None, None, None]:
        if self._closed:
            raise StorageClosedError(driver=self.driver, operation=operation, key=key)
        start = time.perf_counter()
        try:
            with wrap_storage_errors(self.driver, operation, key):
                yield
        except StorageError as exc:
            self.logger.debug("%s failed for %r: %s", operation, key, exc)
            raise
        self.logger.debug("%s %r took %.3fs", operation, key, time.perf_counter() - start)

    def _check_key(self, key: str, operation: str) -> str:
        clean = key.strip().lstrip("/")
        if not clean:
            raise InvalidKeyError("key cannot be empty", driver=self.driver, operation=operation, key=key)
        return clean

    def upload(self, key: str, stream: BinaryStream, options: UploadOptions | None = None) -> UploadResult:
        options = options or UploadOptions()
        with self._operation("upload", key):
            clean = self._check_key(key, "upload")
            if options.progress is not None:
                stream = ProgressReader(stream, stream_size(stream), options.progress)  # type: ignore[assignment]
            return self._upload(clean, stream, options)

    def download(self, key: str) -> BinaryStream:
        with self._operation("download", key):
            return self._download(self._check_key(key, "download"))

    def delete(self, key: str) -> None:
        with self._operation("delete", key):
            self._delete(self._check_key(key, "delete"))

    def exists(self, key: str) -> bool:
        with self._operation("exists", key):
            return self._exists(self._check_key(key, "exists"))

    def url(self, key: str) -> str:
        with self._operation("url", key):
            return self._url(self._check_key(key, "url"))

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        with wrap_storage_errors(self.driver, "close"):
            self._close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} driver={self.driver!r}>"

    def __enter__(self) -> ObjectStoreBase:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @abstractmethod
    def _upload(self, key: str, stream: BinaryStream, options: UploadOptions) -> UploadResult: ...

    @abstractmethod
    def _download(self, key: str) -> BinaryStream: ...

    @abstractmethod
    def _delete(self, key: str) -> None: ...

    @abstractmethod
    def _exists(self, key: str) -> bool: ...

    @abstractmethod
    def _url(self, key: str) -> str: ...

    def _close(self) -> None:
        return


class AdvancedObjectStoreBase(ObjectStoreBase):
    """Base class adding the advanced storage contract.

    ``move`` falls back to copy followed by delete unless ``_move`` is overridden.
    """

    def signed_url(self, key: str, expires: int | float | timedelta) -> str:
        seconds = expires.total_seconds() if isinstance(expires, timedelta) else float(expires)
        with self._operation("signed_url", key):
            return self._signed_url(self._check_key(key, "signed_url"), seconds)

    def list(self, prefix: str = "", options: ListOptions | None = None) -> ListResult:
        with self._operation("list", prefix):
            return self._list(prefix.lstrip("/"), options or ListOptions())

    def copy(self, source: str, destination: str) -> None:
        with self._operation("copy", f"{source} -> {destination}"):
            self._copy(self._check_key(source, "copy"), self._check_key(destination, "copy"))

    def move(self, source: str, destination: str) -> None:
        with self._operation("move", f"{source} -> {destination}"):
            self._move(self._check_key(source, "move"), self._check_key(destination, "move"))

    def size(self, key: str) -> int:
        with self._operation("size", key):
            return self._size(self._check_key(key, "size"))

    def metadata(self, key: str) -> FileInfo:
        with self._operation("metadata", key):
            return self._metadata(self._check_key(key, "metadata"))

    def _signed_url(self, key: str, expires: float) -> str:
        return self._url(key)

    @abstractmethod
    def _list(self, prefix: str, options: ListOptions) -> ListResult: ...

    @abstractmethod
    def _copy(self, source: str, destination: str) -> None: ...

    def _move(self, source: str, destination: str) -> None:
        self._copy(source, destination)
        self._delete(source)

    @abstractmethod
    def _size(self, key: str) -> int: ...

    @abstractmethod
    def _metadata(self, key: str) -> FileInfo: ...

    def _list_keys(self, keys: list[str], options: ListOptions) -> tuple[list[str], str, bool]:
        """Page through a sorted key listing using the marker and page size of ``options``."""
        if options.marker:
            keys = [k for k in keys if k > options.marker]
        if options.max_keys <= 0 or len(keys) <= options.max_keys:
            return keys, "", False
        page = keys[: options.max_keys]
        return page, page[-1], True
