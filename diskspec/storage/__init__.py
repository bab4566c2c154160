"""Storage abstraction over named disks.

Backends are built by driver factories held in a :class:`DriverRegistry`;
:data:`driver_registry` is the process-wide registry with the built-in drivers
(``local``, ``fsspec``, ``s3``, ``gcs``, ``azure``, ``memory``) already bound.
"""

from diskspec.storage.backends import register_builtin_drivers
from diskspec.storage.registry import DriverRegistry

driver_registry = DriverRegistry()
register_builtin_drivers(driver_registry)

from diskspec.storage import default  # noqa: E402
from diskspec.storage.batch import (  # noqa: E402
    BatchFailure,
    BatchResult,
    BatchSuccess,
    BatchUploadItem,
    batch_delete,
    batch_upload,
    delete_all_by_prefix,
    run_batch,
)
from diskspec.storage.config import (  # noqa: E402
    DiskConfig,
    StorageConfig,
    config_from_mapping,
    expand_env_vars,
    extract_embedded,
    load_config,
    load_config_data,
    load_config_embedded,
)
from diskspec.storage.helpers import (  # noqa: E402
    ProgressReader,
    detect_content_type,
    download_to_file,
    generate_key,
    generate_key_flat,
    retry,
    upload_file,
)
from diskspec.storage.instrumented import LoggingStorage, wrap_with_logging  # noqa: E402
from diskspec.storage.manager import StorageManager  # noqa: E402
from diskspec.storage.protocol import (  # noqa: E402
    AdvancedStorageProtocol,
    StorageProtocol,
    get_advanced,
    supports_advanced,
)
from diskspec.storage.types import (  # noqa: E402
    FileInfo,
    ListOptions,
    ListResult,
    UploadOptions,
    UploadResult,
)

__all__ = (
    "AdvancedStorageProtocol",
    "BatchFailure",
    "BatchResult",
    "BatchSuccess",
    "BatchUploadItem",
    "DiskConfig",
    "DriverRegistry",
    "FileInfo",
    "ListOptions",
    "ListResult",
    "LoggingStorage",
    "ProgressReader",
    "StorageConfig",
    "StorageManager",
    "StorageProtocol",
    "UploadOptions",
    "UploadResult",
    "batch_delete",
    "batch_upload",
    "config_from_mapping",
    "default",
    "delete_all_by_prefix",
    "detect_content_type",
    "download_to_file",
    "driver_registry",
    "expand_env_vars",
    "extract_embedded",
    "generate_key",
    "generate_key_flat",
    "get_advanced",
    "load_config",
    "load_config_data",
    "load_config_embedded",
    "register_builtin_drivers",
    "retry",
    "run_batch",
    "supports_advanced",
    "upload_file",
    "wrap_with_logging",
)
