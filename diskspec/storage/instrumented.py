"""Logging decorator for storage backends.

Enabled per manager with ``StorageManager(..., log_operations=True)``.
"""

import logging
import time
from typing import TYPE_CHECKING, Any, Optional

from diskspec.utils.logging import get_logger, log_with_context

if TYPE_CHECKING:
    from diskspec.storage.protocol import StorageProtocol
    from diskspec.storage.types import UploadOptions, UploadResult
    from diskspec.typing import BinaryStream

__all__ = ("LoggingStorage", "wrap_with_logging")


class LoggingStorage:
    """Wrap a backend and log every transfer with disk name, key and duration.

    Successful calls log at DEBUG, failures at ERROR before the exception
    propagates. Attributes other than the logged operations are looked up on
    the wrapped backend, so advanced capabilities stay available.
    """

    __slots__ = ("_logger", "_name", "_storage")

    def __init__(self, storage: "StorageProtocol", name: str, logger: "Optional[logging.Logger]" = None) -> None:
        self._storage = storage
        self._name = name
        self._logger = logger or get_logger("storage.operations")

    @property
    def wrapped(self) -> "StorageProtocol":
        return self._storage

    @property
    def name(self) -> str:
        return self._name

    def _log(self, operation: str, key: str, start: float, error: Optional[BaseException] = None, **extra: Any) -> None:
        duration_ms = round((time.perf_counter() - start) * 1000, 3)
        if error is None:
            log_with_context(
                self._logger,
                logging.DEBUG,
                f"storage {operation} disk={self._name} key={key} ({duration_ms}ms)",
                disk=self._name,
                operation=operation,
                key=key,
                duration_ms=duration_ms,
                **extra,
            )
            return
        log_with_context(
            self._logger,
            logging.ERROR,
            f"storage {operation} failed disk={self._name} key={key} ({duration_ms}ms): {error}",
            disk=self._name,
            operation=operation,
            key=key,
            duration_ms=duration_ms,
            error=str(error),
        )

    def upload(self, key: str, stream: "BinaryStream", options: "Optional[UploadOptions]" = None) -> "UploadResult":
        start = time.perf_counter()
        try:
            result = self._storage.upload(key, stream, options)
        except Exception as exc:
            self._log("upload", key, start, exc)
            raise
        self._log("upload", key, start, size=result.size)
        return result

    def download(self, key: str) -> "BinaryStream":
        start = time.perf_counter()
        try:
            reader = self._storage.download(key)
        except Exception as exc:
            self._log("download", key, start, exc)
            raise
        self._log("download", key, start)
        return reader

    def delete(self, key: str) -> None:
        start = time.perf_counter()
        try:
            self._storage.delete(key)
        except Exception as exc:
            self._log("delete", key, start, exc)
            raise
        self._log("delete", key, start)

    def exists(self, key: str) -> bool:
        return self._storage.exists(key)

    def url(self, key: str) -> str:
        return self._storage.url(key)

    def close(self) -> None:
        self._storage.close()

    def __getattr__(self, name: str) -> Any:
        return getattr(self._storage, name)

    def __repr__(self) -> str:
        return f"<LoggingStorage disk={self._name!r} storage={self._storage!r}>"


def wrap_with_logging(
    storage: "StorageProtocol", name: str, logger: "Optional[logging.Logger]" = None
) -> LoggingStorage:
    """Wrap ``storage`` in a :class:`LoggingStorage` unless it already is one."""
    if isinstance(storage, LoggingStorage):
        return storage
    return LoggingStorage(storage, name, logger)
