"""In-memory backends shared by the storage tests."""

from __future__ import annotations

import io
import threading
from datetime import datetime, timezone
from typing import Any

import pytest

from diskspec.exceptions import NotFoundError
from diskspec.storage.registry import DriverRegistry
from diskspec.storage.types import FileInfo, ListOptions, ListResult, UploadOptions, UploadResult


class MemoryStorage:
    """Dictionary-backed storage offering only the core operations."""

    def __init__(self, options: dict[str, Any] | None = None) -> None:
        self.options = dict(options or {})
        self.objects: dict[str, bytes] = {}
        self.deleted: list[str] = []
        self.close_calls = 0
        self.close_error: Exception | None = None
        self._lock = threading.Lock()

    def upload(self, key: str, stream: Any, options: UploadOptions | None = None) -> UploadResult:
        data = stream.read()
        with self._lock:
            self.objects[key] = data
        return UploadResult(key=key, size=len(data))

    def download(self, key: str) -> io.BytesIO:
        with self._lock:
            if key not in self.objects:
                raise NotFoundError(driver="memory", operation="download", key=key)
            return io.BytesIO(self.objects[key])

    def delete(self, key: str) -> None:
        with self._lock:
            self.objects.pop(key, None)
            self.deleted.append(key)

    def exists(self, key: str) -> bool:
        return key in self.objects

    def url(self, key: str) -> str:
        return f"memory://{key}"

    def close(self) -> None:
        self.close_calls += 1
        if self.close_error is not None:
            raise self.close_error


class AdvancedMemoryStorage(MemoryStorage):
    """MemoryStorage with listing and the other advanced operations."""

    def __init__(self, options: dict[str, Any] | None = None) -> None:
        super().__init__(options)
        self.list_calls: list[ListOptions] = []

    def signed_url(self, key: str, expires: Any) -> str:
        return f"memory://{key}?expires={expires}"

    def list(self, prefix: str = "", options: ListOptions | None = None) -> ListResult:
        options = options or ListOptions()
        self.list_calls.append(options)
        keys = sorted(k for k in self.objects if k.startswith(prefix) and k > options.marker)
        page = keys[: options.max_keys]
        truncated = len(keys) > options.max_keys
        return ListResult(
            files=[FileInfo(key=k, size=len(self.objects[k])) for k in page],
            next_marker=page[-1] if truncated else "",
            is_truncated=truncated,
        )

    def copy(self, source: str, destination: str) -> None:
        self.objects[destination] = self.objects[source]

    def move(self, source: str, destination: str) -> None:
        self.objects[destination] = self.objects.pop(source)

    def size(self, key: str) -> int:
        return len(self.objects[key])

    def metadata(self, key: str) -> FileInfo:
        return FileInfo(key=key, size=len(self.objects[key]), last_modified=datetime.now(timezone.utc))


@pytest.fixture
def memory_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def advanced_storage() -> AdvancedMemoryStorage:
    return AdvancedMemoryStorage()


@pytest.fixture
def registry() -> DriverRegistry:
    """A fresh registry binding ``memory`` and ``advanced`` to the in-memory fakes."""
    registry = DriverRegistry()
    registry.register("memory", MemoryStorage)
    registry.register("advanced", AdvancedMemoryStorage)
    return registry
