"""Helpers used around backend operations.

- :func:`retry` re-runs a callable with exponential backoff.
- :class:`ProgressReader` reports bytes read from a stream.
- :func:`detect_content_type`, :func:`generate_key` and the file transfer
  shortcuts cover the usual upload chores.
"""

import mimetypes
import shutil
import threading
import time
import uuid
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import IO, TYPE_CHECKING, Any, Final, Optional, TypeVar, Union

from diskspec.exceptions import CancellationError, InvalidArgumentError, MaxRetriesExceededError
from diskspec.storage.types import UploadOptions
from diskspec.utils.logging import get_logger

if TYPE_CHECKING:
    from diskspec.storage.protocol import StorageProtocol
    from diskspec.storage.types import ProgressCallback, UploadResult

__all__ = (
    "DEFAULT_CONTENT_TYPE",
    "ProgressReader",
    "SizedReader",
    "detect_content_type",
    "download_to_file",
    "generate_key",
    "generate_key_flat",
    "retry",
    "stream_size",
    "upload_file",
)

logger = get_logger("storage.helpers")

T = TypeVar("T")

DEFAULT_CONTENT_TYPE: Final[str] = "application/octet-stream"
RETRY_BASE_DELAY: Final[float] = 0.1
RETRY_MAX_DELAY: Final[float] = 5.0
COPY_CHUNK_SIZE: Final[int] = 64 * 1024

# Types mimetypes misses or reports inconsistently across platforms.
COMMON_CONTENT_TYPES: Final["dict[str, str]"] = {
    ".md": "text/markdown",
    ".yaml": "text/yaml",
    ".yml": "text/yaml",
    ".ts": "text/typescript",
    ".tsx": "text/typescript",
    ".vue": "text/x-vue",
    ".go": "text/x-go",
    ".rs": "text/x-rust",
    ".webp": "image/webp",
    ".avif": "image/avif",
    ".heic": "image/heic",
    ".heif": "image/heif",
    ".woff": "font/woff",
    ".woff2": "font/woff2",
}


def retry(
    max_attempts: int,
    fn: "Callable[[], T]",
    *,
    cancel_event: "Optional[threading.Event]" = None,
    base_delay: float = RETRY_BASE_DELAY,
    max_delay: float = RETRY_MAX_DELAY,
) -> T:
    """Call ``fn`` until it succeeds, at most ``max_attempts`` times.

    The wait after a failure starts at ``base_delay`` and doubles each time, capped
    at ``max_delay``, before trying again. No wait follows the last attempt.

    Args:
        max_attempts: Number of attempts, at least 1.
        fn: The operation to run.
        cancel_event: Aborts the wait between attempts when set.
        base_delay: Delay after the first failure, in seconds.
        max_delay: Ceiling for the delay, in seconds.

    Raises:
        InvalidArgumentError: If ``max_attempts`` is not positive.
        CancellationError: If ``cancel_event`` fires while waiting.
        MaxRetriesExceededError: If every attempt failed; chained to the last error.

    Returns:
        The value returned by the successful call.
    """
    if max_attempts <= 0:
        msg = f"storage: max_attempts must be positive, got {max_attempts}"
        raise InvalidArgumentError(msg)

    attempt = 0
    while True:
        try:
            return fn()
        except Exception as exc:
            attempt += 1
            logger.debug("Attempt %d/%d failed: %s", attempt, max_attempts, exc)
            if attempt >= max_attempts:
                raise MaxRetriesExceededError(max_attempts, exc) from exc
            delay = min(base_delay * (2 ** (attempt - 1)), max_delay)
            if cancel_event is not None:
                if cancel_event.wait(delay):
                    raise CancellationError from exc
            elif delay > 0:
                time.sleep(delay)


class ProgressReader:
    """Read-through stream wrapper reporting cumulative bytes read.

    The callback runs after every read that returned data, with the total
    read so far and the declared ``total``. Empty reads never trigger it.
    """

    __slots__ = ("_callback", "_read", "_stream", "total")

    def __init__(self, stream: "IO[bytes]", total: int, callback: "ProgressCallback") -> None:
        self._stream = stream
        self._callback = callback
        self._read = 0
        self.total = total

    @property
    def bytes_read(self) -> int:
        return self._read

    def read(self, size: int = -1) -> bytes:
        data = self._stream.read(size)
        if data:
            self._read += len(data)
            self._callback(self._read, self.total)
        return data

    def readable(self) -> bool:
        return True

    def close(self) -> None:
        self._stream.close()

    def __enter__(self) -> "ProgressReader":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __iter__(self) -> "ProgressReader":
        return self

    def __next__(self) -> bytes:
        chunk = self.read(COPY_CHUNK_SIZE)
        if not chunk:
            raise StopIteration
        return chunk


class SizedReader:
    """Stream wrapper that knows the total size of its content."""

    __slots__ = ("_stream", "size")

    def __init__(self, stream: "IO[bytes]", size: int) -> None:
        self._stream = stream
        self.size = size

    def read(self, size: int = -1) -> bytes:
        return self._stream.read(size)

    def readable(self) -> bool:
        return True

    def close(self) -> None:
        self._stream.close()

    def __enter__(self) -> "SizedReader":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def stream_size(stream: Any) -> int:
    """Best-effort total size of a stream, -1 when unknown.

    Uses a declared ``size`` attribute, ``len()`` of in-memory buffers, or the
    remaining length of a seekable stream.
    """
    size = getattr(stream, "size", None)
    if isinstance(size, int):
        return size
    getbuffer = getattr(stream, "getbuffer", None)
    if getbuffer is not None:
        return len(getbuffer()) - stream.tell()
    try:
        position = stream.tell()
        end = stream.seek(0, 2)
        stream.seek(position)
    except (AttributeError, OSError, ValueError):
        return -1
    return end - position


def detect_content_type(filename: str) -> str:
    """Guess the content type of a file from its extension."""
    ext = PurePosixPath(filename).suffix.lower()
    if not ext:
        return DEFAULT_CONTENT_TYPE
    if ext in COMMON_CONTENT_TYPES:
        return COMMON_CONTENT_TYPES[ext]
    content_type, _ = mimetypes.guess_type(f"file{ext}", strict=False)
    return content_type or DEFAULT_CONTENT_TYPE


def generate_key(prefix: str, filename: str, *, now: Optional[datetime] = None) -> str:
    """Build a unique key ``prefix/YYYY/MM/DD/<uuid><ext>`` for an uploaded file."""
    ext = PurePosixPath(filename).suffix
    moment = now or datetime.now(timezone.utc)
    parts = []
    if prefix.strip("/"):
        parts.append(prefix.strip("/"))
    parts.append(moment.strftime("%Y/%m/%d"))
    parts.append(f"{uuid.uuid4().hex}{ext}")
    return "/".join(parts)


def generate_key_flat(prefix: str, filename: str) -> str:
    """Build a unique key ``prefix/<uuid><ext>`` without date directories."""
    name = f"{uuid.uuid4().hex}{PurePosixPath(filename).suffix}"
    clean_prefix = prefix.strip("/")
    return f"{clean_prefix}/{name}" if clean_prefix else name


def upload_file(
    storage: "StorageProtocol", key: str, path: "Union[str, Path]", options: "Optional[UploadOptions]" = None
) -> "UploadResult":
    """Upload a local file, sniffing its content type when none is given."""
    file_path = Path(path)
    options = options or UploadOptions()
    if not options.content_type:
        options = replace(options, content_type=detect_content_type(file_path.name))
    with file_path.open("rb") as f:
        return storage.upload(key, SizedReader(f, file_path.stat().st_size), options)


def download_to_file(storage: "StorageProtocol", key: str, path: "Union[str, Path]") -> Path:
    """Download an object to a local file, creating parent directories."""
    file_path = Path(path)
    reader = storage.download(key)
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with file_path.open("wb") as f:
            shutil.copyfileobj(reader, f, COPY_CHUNK_SIZE)
    finally:
        reader.close()
    return file_path
