from datetime import timedelta
from typing import TYPE_CHECKING, Any, Optional, Protocol, Union, cast

if TYPE_CHECKING:
    from diskspec.storage.types import FileInfo, ListOptions, ListResult, UploadOptions, UploadResult
    from diskspec.typing import BinaryStream

__all__ = (
    "ADVANCED_METHODS",
    "AdvancedStorageProtocol",
    "StorageProtocol",
    "get_advanced",
    "supports_advanced",
)


class StorageProtocol(Protocol):
    """Capability contract every backend implements."""

    def upload(self, key: str, stream: "BinaryStream", options: "Optional[UploadOptions]" = None) -> "UploadResult":
        """Store the content of ``stream`` under ``key``."""
        ...

    def download(self, key: str) -> "BinaryStream":
        """Open the object for reading. Raises NotFoundError when absent."""
        ...

    def delete(self, key: str) -> None:
        """Delete the object. Deleting an absent key is not an error."""
        ...

    def exists(self, key: str) -> bool:
        """Check if an object exists."""
        ...

    def url(self, key: str) -> str:
        """Public URL of the object. Raises when the backend has no public URL."""
        ...

    def close(self) -> None:
        """Release backend resources. Calling it again is a no-op."""
        ...


class AdvancedStorageProtocol(StorageProtocol, Protocol):
    """Optional extended capabilities, discovered with :func:`get_advanced`."""

    def signed_url(self, key: str, expires: "Union[int, float, timedelta]") -> str:
        """Temporary URL granting access to a private object."""
        ...

    def list(self, prefix: str = "", options: "Optional[ListOptions]" = None) -> "ListResult":
        """List one page of objects under ``prefix``."""
        ...

    def copy(self, source: str, destination: str) -> None:
        """Copy an object."""
        ...

    def move(self, source: str, destination: str) -> None:
        """Move an object (copy then delete unless the backend moves atomically)."""
        ...

    def size(self, key: str) -> int:
        """Size of the object in bytes."""
        ...

    def metadata(self, key: str) -> "FileInfo":
        """Object metadata."""
        ...


ADVANCED_METHODS: "tuple[str, ...]" = ("signed_url", "list", "copy", "move", "size", "metadata")


def supports_advanced(storage: Any) -> bool:
    """Check whether a backend offers every advanced capability.

    Plain attribute lookup is used so delegating wrappers report exactly what
    the wrapped backend offers.
    """
    return all(callable(getattr(storage, name, None)) for name in ADVANCED_METHODS)


def get_advanced(storage: "StorageProtocol") -> "Optional[AdvancedStorageProtocol]":
    """Return the backend typed as advanced storage, or None when it is not.

    Example:
        advanced = get_advanced(manager.disk("media"))
        if advanced is not None:
            url = advanced.signed_url("report.pdf", 3600)
    """
    if supports_advanced(storage):
        return cast("AdvancedStorageProtocol", storage)
    return None
