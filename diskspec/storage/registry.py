"""Driver registry mapping driver names to backend factories.

A driver is a callable taking the option mapping of a disk and returning a
backend. The registry only stores factories; it never builds or caches
backends, which is the job of :class:`~diskspec.storage.manager.StorageManager`.

Examples:
    registry = DriverRegistry()
    registry.register("memory", lambda options: MemoryStore(**options))
    backend = registry.open("memory", {"bucket": "media"})
"""

from typing import TYPE_CHECKING, Any, Optional

from mypy_extensions import mypyc_attr

from diskspec.exceptions import DuplicateDriverError, InvalidArgumentError, UnknownDriverError
from diskspec.utils.logging import get_logger
from diskspec.utils.sync_tools import ReadWriteLock

if TYPE_CHECKING:
    from collections.abc import Mapping

    from diskspec.storage.protocol import StorageProtocol
    from diskspec.typing import DriverFactory

__all__ = ("DriverRegistry",)

logger = get_logger("storage.registry")


@mypyc_attr(allow_interpreted_subclasses=True)
class DriverRegistry:
    """Thread-safe table of driver factories.

    Lookups take the lock in shared mode, registrations in exclusive mode.
    A name can be bound only once for the lifetime of the registry unless it
    is explicitly unregistered.
    """

    __slots__ = ("_factories", "_lock")

    def __init__(self) -> None:
        self._factories: dict[str, DriverFactory] = {}
        self._lock = ReadWriteLock()

    def register(self, name: str, factory: "Optional[DriverFactory]") -> None:
        """Bind a factory to a driver name.

        Args:
            name: Driver name used in the ``driver`` field of a disk.
            factory: Callable building a backend from the disk options.

        Raises:
            InvalidArgumentError: If the name is empty or the factory is missing.
            DuplicateDriverError: If the name is already bound.
        """
        if not name:
            msg = "storage: driver name cannot be empty"
            raise InvalidArgumentError(msg)
        if factory is None or not callable(factory):
            msg = f"storage: factory for driver {name!r} is nil"
            raise InvalidArgumentError(msg)

        with self._lock.write():
            if name in self._factories:
                raise DuplicateDriverError(name)
            self._factories[name] = factory
        logger.debug("Registered storage driver: %s", name)

    def unregister(self, name: str) -> bool:
        """Remove a driver binding.

        Returns:
            True if the name was bound.
        """
        with self._lock.write():
            return self._factories.pop(name, None) is not None

    def lookup(self, name: str) -> "DriverFactory":
        """Return the factory bound to ``name``.

        Raises:
            UnknownDriverError: If nothing is registered under the name.
        """
        with self._lock.read():
            factory = self._factories.get(name)
        if factory is None:
            raise UnknownDriverError(name)
        return factory

    def open(self, name: str, options: "Optional[Mapping[str, Any]]" = None) -> "StorageProtocol":
        """Build a backend with the driver registered under ``name``.

        The factory receives a fresh copy of the options and its exceptions
        propagate unchanged.
        """
        factory = self.lookup(name)
        return factory(dict(options or {}))

    def names(self) -> "frozenset[str]":
        """Names of all registered drivers."""
        with self._lock.read():
            return frozenset(self._factories)

    def __contains__(self, name: object) -> bool:
        with self._lock.read():
            return name in self._factories

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._factories)

    def __repr__(self) -> str:
        return f"<DriverRegistry drivers={sorted(self.names())}>"
