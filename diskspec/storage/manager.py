"""Multi-disk storage manager.

The manager owns one backend per configured disk, built on first use by the
driver registered for the disk's ``driver`` name.
"""

from typing import TYPE_CHECKING, Optional

from mypy_extensions import mypyc_attr

from diskspec.exceptions import DiskNotConfiguredError, DiskOpenError, NoDefaultConfiguredError, StorageCloseError
from diskspec.storage.instrumented import wrap_with_logging
from diskspec.utils.logging import get_logger
from diskspec.utils.sync_tools import ReadWriteLock

if TYPE_CHECKING:
    from diskspec.storage.config import StorageConfig
    from diskspec.storage.protocol import StorageProtocol
    from diskspec.storage.registry import DriverRegistry

__all__ = ("StorageManager",)

logger = get_logger("storage.manager")


@mypyc_attr(allow_interpreted_subclasses=True)
class StorageManager:
    """Lazily builds and caches one backend per disk.

    Concurrent first requests for the same disk build it exactly once: the
    cache is read under a shared lock and, on a miss, checked again under the
    exclusive lock before the driver factory runs. A failed construction
    caches nothing, so the next request tries again.

    Example:
        manager = StorageManager(load_config("storage.yaml"))
        manager.disk().upload("a.txt", io.BytesIO(b"hi"))
        manager.close()
    """

    __slots__ = ("_config", "_lock", "_log_operations", "_registry", "_storages")

    def __init__(
        self, config: "StorageConfig", registry: "Optional[DriverRegistry]" = None, *, log_operations: bool = False
    ) -> None:
        if registry is None:
            from diskspec.storage import driver_registry

            registry = driver_registry
        self._config = config
        self._registry = registry
        self._log_operations = log_operations
        self._storages: dict[str, StorageProtocol] = {}
        self._lock = ReadWriteLock()

    @property
    def config(self) -> "StorageConfig":
        return self._config

    @property
    def registry(self) -> "DriverRegistry":
        return self._registry

    def disk(self, name: str = "") -> "StorageProtocol":
        """Return the backend of a disk, building it on first use.

        Args:
            name: Disk name; empty selects the configured default.

        Raises:
            NoDefaultConfiguredError: If ``name`` is empty and there is no default.
            DiskNotConfiguredError: If the disk is not in the configuration.
            UnknownDriverError: If no factory is registered for the disk's driver.
            DiskOpenError: If the factory raised; chained to the factory error.
        """
        if not name:
            name = self._config.default
            if not name:
                raise NoDefaultConfiguredError

        with self._lock.read():
            storage = self._storages.get(name)
        if storage is not None:
            return storage

        with self._lock.write():
            storage = self._storages.get(name)
            if storage is not None:
                return storage

            disk_config = self._config.get(name)
            if disk_config is None:
                raise DiskNotConfiguredError(name)
            factory = self._registry.lookup(disk_config.driver)
            try:
                storage = factory(dict(disk_config.options))
            except Exception as exc:
                logger.debug("Failed to open disk %r with driver %r: %s", name, disk_config.driver, exc)
                raise DiskOpenError(name, exc) from exc

            if self._log_operations:
                storage = wrap_with_logging(storage, name)
            self._storages[name] = storage
        logger.debug("Opened disk %r with driver %r", name, disk_config.driver)
        return storage

    def disks(self) -> "list[str]":
        """Configured disk names, sorted."""
        return sorted(self._config.disks)

    def opened(self) -> "list[str]":
        """Names of the disks whose backend has been built, sorted."""
        with self._lock.read():
            return sorted(self._storages)

    def close(self) -> None:
        """Close every built backend and empty the cache.

        Every backend is closed even when some fail; the failures are then
        raised together. Closing again with an empty cache is a no-op.

        Raises:
            StorageCloseError: If any backend failed to close.
        """
        with self._lock.write():
            storages, self._storages = self._storages, {}

        errors: dict[str, BaseException] = {}
        for name, storage in storages.items():
            try:
                storage.close()
            except Exception as exc:  # noqa: BLE001
                logger.debug("Failed to close disk %r: %s", name, exc)
                errors[name] = exc
        if errors:
            raise StorageCloseError(errors)

    def __enter__(self) -> "StorageManager":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<StorageManager default={self._config.default!r} disks={self.disks()} opened={self.opened()}>"
