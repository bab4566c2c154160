"""Built-in storage backends.

Only the factories are imported eagerly; backend modules load on first use so
optional dependencies such as ``fsspec`` are needed only by disks that use them.
"""

from typing import TYPE_CHECKING, Any, Final

from diskspec.utils.module_loader import import_string

if TYPE_CHECKING:
    from diskspec.storage.protocol import StorageProtocol
    from diskspec.storage.registry import DriverRegistry
    from diskspec.typing import DriverFactory

__all__ = ("BUILTIN_DRIVERS", "register_builtin_drivers")

BUILTIN_DRIVERS: Final["dict[str, str]"] = {
    "local": "diskspec.storage.backends.local:create_local_store",
    "fsspec": "diskspec.storage.backends.fsspec:create_fsspec_store",
    "s3": "diskspec.storage.backends.fsspec:create_s3_store",
    "gcs": "diskspec.storage.backends.fsspec:create_gcs_store",
    "azure": "diskspec.storage.backends.fsspec:create_azure_store",
    "memory": "diskspec.storage.backends.fsspec:create_memory_store",
}


def _lazy_factory(path: str) -> "DriverFactory":
    def factory(options: "dict[str, Any]") -> "StorageProtocol":
        return import_string(path)(options)  # type: ignore[no-any-return]

    factory.__qualname__ = f"lazy[{path}]"
    return factory


def register_builtin_drivers(registry: "DriverRegistry") -> None:
    """Register the built-in drivers, leaving names that are already bound alone."""
    for name, path in BUILTIN_DRIVERS.items():
        if name not in registry:
            registry.register(name, _lazy_factory(path))
