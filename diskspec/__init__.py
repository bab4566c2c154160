"""diskspec: named storage disks over pluggable backends."""

from diskspec import exceptions, storage
from diskspec.__metadata__ import __version__
from diskspec.exceptions import DiskSpecError, StorageError
from diskspec.storage import (
    DriverRegistry,
    StorageConfig,
    StorageManager,
    driver_registry,
    load_config,
    load_config_embedded,
)
from diskspec.utils.logging import configure_logging, debug_enabled

if debug_enabled():
    configure_logging(level="DEBUG", format_style="simple")

__all__ = (
    "DiskSpecError",
    "DriverRegistry",
    "StorageConfig",
    "StorageError",
    "StorageManager",
    "__version__",
    "driver_registry",
    "exceptions",
    "load_config",
    "load_config_embedded",
    "storage",
)
