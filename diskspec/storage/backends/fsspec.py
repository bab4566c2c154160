"""Storage backend for any fsspec file system.

Serves the ``fsspec`` driver (explicit ``protocol`` option) and the protocol
shortcuts ``s3``, ``gcs``, ``azure`` and ``memory``. The vendor packages
(``s3fs``, ``gcsfs``, ``adlfs``) are needed for the respective protocols.

Options:
    protocol: fsspec protocol name (``fsspec`` driver only).
    bucket / container: Bucket or container prepended to every key.
    base_path: Prefix inside the bucket.
    base_url: Public URL prefix; without it ``url`` raises.
    storage_options: Mapping passed to ``fsspec.filesystem``. Any other option is passed as well.
"""

import shutil
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional, Union
from urllib.parse import quote

from diskspec.exceptions import ImproperConfigurationError, MissingDependencyError, NotFoundError
from diskspec.storage.backends.base import AdvancedObjectStoreBase
from diskspec.storage.helpers import COPY_CHUNK_SIZE
from diskspec.storage.types import FileInfo, ListResult, UploadResult
from diskspec.typing import FSSPEC_INSTALLED

if TYPE_CHECKING:
    from fsspec import AbstractFileSystem

    from diskspec.storage.types import ListOptions, UploadOptions
    from diskspec.typing import BinaryStream

__all__ = (
    "FSSpecStore",
    "create_azure_store",
    "create_fsspec_store",
    "create_gcs_store",
    "create_memory_store",
    "create_s3_store",
)

RESERVED_OPTIONS = frozenset({"protocol", "bucket", "container", "base_path", "base_url", "storage_options"})


def _to_datetime(value: Any) -> "Optional[datetime]":
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    return None


class FSSpecStore(AdvancedObjectStoreBase):
    """Storage backend delegating to an fsspec file system."""

    driver = "fsspec"

    def __init__(
        self,
        fs: "Union[str, AbstractFileSystem]",
        base_path: str = "",
        base_url: str = "",
        **storage_options: Any,
    ) -> None:
        if not FSSPEC_INSTALLED:
            raise MissingDependencyError(package="fsspec", install_package="fsspec")

        import fsspec

        if isinstance(fs, str):
            self.fs = fsspec.filesystem(fs, **storage_options)
            self.protocol = fs
        else:
            self.fs = fs
            protocol = getattr(fs, "protocol", "unknown")
            self.protocol = protocol[0] if isinstance(protocol, (tuple, list)) else str(protocol)
        self.driver = self.protocol
        super().__init__()
        self.base_path = base_path.rstrip("/")
        self.base_url = base_url.rstrip("/")

    @classmethod
    def from_options(cls, options: "dict[str, Any]", protocol: "Optional[str]" = None) -> "FSSpecStore":
        """Build a store from the options of a disk configuration."""
        protocol = protocol or options.get("protocol")
        if not protocol:
            msg = "fsspec: 'protocol' is required"
            raise ImproperConfigurationError(msg)

        parts = [str(options.get(name) or "").strip("/") for name in ("bucket", "container", "base_path")]
        base_path = "/".join(part for part in parts if part)
        storage_options = dict(options.get("storage_options") or {})
        storage_options.update({k: v for k, v in options.items() if k not in RESERVED_OPTIONS})
        return cls(str(protocol), base_path=base_path, base_url=str(options.get("base_url") or ""), **storage_options)

    def _resolve_path(self, key: str) -> str:
        if self.base_path:
            return f"{self.base_path}/{key.lstrip('/')}"
        return key

    def _relative_key(self, full_path: str, root: str) -> str:
        return full_path[len(root) :].lstrip("/") if root and full_path.startswith(root) else full_path.lstrip("/")

    def _upload(self, key: str, stream: "BinaryStream", options: "UploadOptions") -> UploadResult:
        path = self._resolve_path(key)
        with self.fs.open(path, mode="wb") as f:
            shutil.copyfileobj(stream, f, COPY_CHUNK_SIZE)
        info = self.fs.info(path)
        return UploadResult(
            key=key,
            url=self._public_url(key) if self.base_url else "",
            size=int(info.get("size") or 0),
            etag=str(info.get("ETag") or info.get("etag") or "").strip('"'),
            metadata=dict(options.metadata),
        )

    def _download(self, key: str) -> "BinaryStream":
        return self.fs.open(self._resolve_path(key), mode="rb")  # type: ignore[no-any-return]

    def _delete(self, key: str) -> None:
        try:
            self.fs.rm(self._resolve_path(key))
        except FileNotFoundError:
            return

    def _exists(self, key: str) -> bool:
        return bool(self.fs.isfile(self._resolve_path(key)))

    def _public_url(self, key: str) -> str:
        return f"{self.base_url}/{quote(key)}"

    def _url(self, key: str) -> str:
        if not self.base_url:
            msg = f"{self.protocol}: base_url not configured"
            raise NotImplementedError(msg)
        return self._public_url(key)

    def _signed_url(self, key: str, expires: float) -> str:
        return str(self.fs.sign(self._resolve_path(key), expiration=int(expires)))

    def _list(self, prefix: str, options: "ListOptions") -> ListResult:
        root = self.fs._strip_protocol(self.base_path).rstrip("/") if self.base_path else ""  # noqa: SLF001
        try:
            if options.delimiter:
                parent, _, _ = prefix.rpartition("/")
                directory = self._resolve_path(parent) if parent else (self.base_path or "")
                entries = {entry["name"]: entry for entry in self.fs.ls(directory, detail=True)}
            else:
                entries = self.fs.find(self.base_path or "", withdirs=False, detail=True)
        except FileNotFoundError:
            return ListResult()

        infos: dict[str, dict[str, Any]] = {}
        for name, info in entries.items():
            if info.get("type") != "file":
                continue
            key = self._relative_key(name, root)
            if key.startswith(prefix):
                infos[key] = info

        page, next_marker, truncated = self._list_keys(sorted(infos), options)
        return ListResult(
            files=[self._file_info(key, infos[key]) for key in page], next_marker=next_marker, is_truncated=truncated
        )

    def _file_info(self, key: str, info: "dict[str, Any]") -> FileInfo:
        return FileInfo(
            key=key,
            size=int(info.get("size") or 0),
            last_modified=_to_datetime(info.get("LastModified") or info.get("mtime") or info.get("created")),
            content_type=str(info.get("ContentType") or info.get("content_type") or ""),
            etag=str(info.get("ETag") or info.get("etag") or "").strip('"'),
        )

    def _copy(self, source: str, destination: str) -> None:
        self.fs.copy(self._resolve_path(source), self._resolve_path(destination))

    def _move(self, source: str, destination: str) -> None:
        self.fs.mv(self._resolve_path(source), self._resolve_path(destination))

    def _size(self, key: str) -> int:
        return int(self.fs.size(self._resolve_path(key)))

    def _metadata(self, key: str) -> FileInfo:
        info = self.fs.info(self._resolve_path(key))
        if info.get("type") != "file":
            raise NotFoundError(driver=self.driver, operation="metadata", key=key)
        return self._file_info(key, info)

    def __repr__(self) -> str:
        return f"<FSSpecStore protocol={self.protocol!r} base_path={self.base_path!r}>"


def create_fsspec_store(options: "dict[str, Any]") -> FSSpecStore:
    """Driver factory for ``fsspec`` disks."""
    return FSSpecStore.from_options(options)


def create_s3_store(options: "dict[str, Any]") -> FSSpecStore:
    """Driver factory for ``s3`` disks (requires ``s3fs``)."""
    return FSSpecStore.from_options(options, protocol="s3")


def create_gcs_store(options: "dict[str, Any]") -> FSSpecStore:
    """Driver factory for ``gcs`` disks (requires ``gcsfs``)."""
    return FSSpecStore.from_options(options, protocol="gcs")


def create_azure_store(options: "dict[str, Any]") -> FSSpecStore:
    """Driver factory for ``azure`` disks (requires ``adlfs``)."""
    return FSSpecStore.from_options(options, protocol="az")


def create_memory_store(options: "dict[str, Any]") -> FSSpecStore:
    """Driver factory for ``memory`` disks, backed by the process-wide fsspec memory file system."""
    return FSSpecStore.from_options(options, protocol="memory")
