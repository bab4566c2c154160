"""Process-wide default manager and shortcut functions.

Lifecycle::

    from diskspec.storage import default as storage

    storage.setup_from_file("config.yaml", key="storage")  # once at startup
    storage.put_text("hello.txt", "hi")                    # default disk
    storage.disk("media").put_bytes("a.png", data)         # named disk
    storage.teardown()                                     # closes every backend

Calling a shortcut before ``setup`` raises
:class:`~diskspec.exceptions.NotInitializedError`. Calling ``setup`` again
replaces the manager and closes the previous one.
"""

import io
import threading
from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional, Union

from diskspec.exceptions import NotInitializedError
from diskspec.storage.config import StorageConfig, config_from_mapping, load_config, load_config_embedded
from diskspec.storage.helpers import SizedReader, download_to_file, upload_file
from diskspec.storage.manager import StorageManager
from diskspec.storage.types import UploadOptions
from diskspec.utils.logging import get_logger

if TYPE_CHECKING:
    from diskspec.storage.protocol import StorageProtocol
    from diskspec.storage.registry import DriverRegistry
    from diskspec.storage.types import UploadResult
    from diskspec.typing import BinaryStream

__all__ = (
    "DefaultManagerHolder",
    "Disk",
    "default_holder",
    "delete",
    "disk",
    "download_file",
    "exists",
    "get",
    "get_bytes",
    "get_manager",
    "get_text",
    "put",
    "put_bytes",
    "put_file",
    "put_text",
    "setup",
    "setup_from_file",
    "teardown",
    "url",
)

logger = get_logger("storage.default")


class DefaultManagerHolder:
    """Thread-safe slot for one :class:`StorageManager`."""

    __slots__ = ("_lock", "_manager")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._manager: Optional[StorageManager] = None

    @property
    def initialized(self) -> bool:
        return self._manager is not None

    def setup(
        self,
        config: "Union[StorageConfig, Mapping[str, Any]]",
        registry: "Optional[DriverRegistry]" = None,
        *,
        log_operations: bool = False,
    ) -> StorageManager:
        """Install a manager built from ``config``, closing the one it replaces."""
        if not isinstance(config, StorageConfig):
            config = config_from_mapping(config)
        return self.install(StorageManager(config, registry, log_operations=log_operations))

    def setup_from_file(
        self,
        path: "Union[str, Path]",
        key: Optional[str] = None,
        registry: "Optional[DriverRegistry]" = None,
        *,
        log_operations: bool = False,
    ) -> StorageManager:
        """Install a manager from a configuration file, optionally embedded under ``key``."""
        config = load_config(path) if key is None else load_config_embedded(path, key)
        return self.setup(config, registry, log_operations=log_operations)

    def install(self, manager: StorageManager) -> StorageManager:
        """Install an existing manager, closing the one it replaces."""
        with self._lock:
            previous, self._manager = self._manager, manager
        if previous is not None and previous is not manager:
            logger.debug("Replacing default storage manager")
            previous.close()
        return manager

    def get(self) -> StorageManager:
        """Return the installed manager.

        Raises:
            NotInitializedError: If nothing has been set up.
        """
        manager = self._manager
        if manager is None:
            raise NotInitializedError
        return manager

    def teardown(self) -> None:
        """Close and remove the installed manager. No-op when nothing is installed."""
        with self._lock:
            manager, self._manager = self._manager, None
        if manager is not None:
            manager.close()


class Disk:
    """Shortcut handle for one disk of the default manager.

    The backend is resolved on every call, so a handle stays valid across
    ``setup`` and ``teardown``.
    """

    __slots__ = ("_holder", "name")

    def __init__(self, name: str = "", holder: "Optional[DefaultManagerHolder]" = None) -> None:
        self.name = name
        self._holder = holder or default_holder

    def storage(self) -> "StorageProtocol":
        """The backend behind this disk, for calls not covered by the shortcuts."""
        return self._holder.get().disk(self.name)

    def put(self, key: str, stream: "BinaryStream", options: "Optional[UploadOptions]" = None) -> "UploadResult":
        return self.storage().upload(key, stream, options)

    def put_bytes(self, key: str, data: bytes, options: "Optional[UploadOptions]" = None) -> "UploadResult":
        return self.put(key, SizedReader(io.BytesIO(data), len(data)), options)  # type: ignore[arg-type]

    def put_text(
        self, key: str, text: str, options: "Optional[UploadOptions]" = None, encoding: str = "utf-8"
    ) -> "UploadResult":
        return self.put_bytes(key, text.encode(encoding), options or UploadOptions(content_type="text/plain"))

    def put_file(
        self, key: str, path: "Union[str, Path]", options: "Optional[UploadOptions]" = None
    ) -> "UploadResult":
        return upload_file(self.storage(), key, path, options)

    def get(self, key: str) -> "BinaryStream":
        return self.storage().download(key)

    def get_bytes(self, key: str) -> bytes:
        reader = self.get(key)
        try:
            return reader.read()
        finally:
            reader.close()

    def get_text(self, key: str, encoding: str = "utf-8") -> str:
        return self.get_bytes(key).decode(encoding)

    def download_file(self, key: str, path: "Union[str, Path]") -> Path:
        return download_to_file(self.storage(), key, path)

    def delete(self, key: str) -> None:
        self.storage().delete(key)

    def exists(self, key: str) -> bool:
        return self.storage().exists(key)

    def url(self, key: str) -> str:
        return self.storage().url(key)

    def __repr__(self) -> str:
        return f"<Disk name={self.name or '<default>'!r}>"


default_holder = DefaultManagerHolder()
_default_disk = Disk()


def setup(
    config: "Union[StorageConfig, Mapping[str, Any]]",
    registry: "Optional[DriverRegistry]" = None,
    *,
    log_operations: bool = False,
) -> StorageManager:
    return default_holder.setup(config, registry, log_operations=log_operations)


def setup_from_file(
    path: "Union[str, Path]",
    key: Optional[str] = None,
    registry: "Optional[DriverRegistry]" = None,
    *,
    log_operations: bool = False,
) -> StorageManager:
    return default_holder.setup_from_file(path, key, registry, log_operations=log_operations)


def teardown() -> None:
    default_holder.teardown()


def get_manager() -> StorageManager:
    return default_holder.get()


def disk(name: str = "") -> Disk:
    """Handle for a named disk of the default manager (empty name: the default disk)."""
    return Disk(name)


def put(key: str, stream: "BinaryStream", options: "Optional[UploadOptions]" = None) -> "UploadResult":
    return _default_disk.put(key, stream, options)


def put_bytes(key: str, data: bytes, options: "Optional[UploadOptions]" = None) -> "UploadResult":
    return _default_disk.put_bytes(key, data, options)


def put_text(key: str, text: str, options: "Optional[UploadOptions]" = None) -> "UploadResult":
    return _default_disk.put_text(key, text, options)


def put_file(key: str, path: "Union[str, Path]", options: "Optional[UploadOptions]" = None) -> "UploadResult":
    return _default_disk.put_file(key, path, options)


def get(key: str) -> "BinaryStream":
    return _default_disk.get(key)


def get_bytes(key: str) -> bytes:
    return _default_disk.get_bytes(key)


def get_text(key: str) -> str:
    return _default_disk.get_text(key)


def download_file(key: str, path: "Union[str, Path]") -> Path:
    return _default_disk.download_file(key, path)


def delete(key: str) -> None:
    _default_disk.delete(key)


def exists(key: str) -> bool:
    return _default_disk.exists(key)


def url(key: str) -> str:
    return _default_disk.url(key)
