"""Local file system storage backend.

A zero-dependency driver storing objects as files below a root directory.

Options:
    root: Directory holding the objects (required, ``~`` is expanded, created if missing).
    base_url: Public URL prefix; without it ``url`` raises.
    perm: File mode of uploaded files (int or octal string, default ``0o644``).
"""

import os
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional, Union
from urllib.parse import quote

from mypy_extensions import mypyc_attr

from diskspec.exceptions import ImproperConfigurationError, InvalidKeyError, NotFoundError
from diskspec.storage.backends.base import AdvancedObjectStoreBase
from diskspec.storage.helpers import COPY_CHUNK_SIZE, detect_content_type
from diskspec.storage.types import FileInfo, ListResult, UploadResult

if TYPE_CHECKING:
    from diskspec.storage.types import ListOptions, UploadOptions
    from diskspec.typing import BinaryStream

__all__ = ("DEFAULT_FILE_PERM", "LocalStore", "create_local_store")

DEFAULT_FILE_PERM = 0o644


def _parse_perm(value: "Union[int, str, None]") -> int:
    if value is None or value == "":
        return DEFAULT_FILE_PERM
    if isinstance(value, int):
        return value
    try:
        return int(value, 8)
    except ValueError as exc:
        msg = f"local: invalid 'perm' value {value!r}"
        raise ImproperConfigurationError(msg) from exc


@mypyc_attr(allow_interpreted_subclasses=True)
class LocalStore(AdvancedObjectStoreBase):
    """Storage backend for a directory on the local file system."""

    driver = "local"

    def __init__(self, root: "Union[str, Path]", base_url: str = "", perm: int = DEFAULT_FILE_PERM) -> None:
        super().__init__()
        if not str(root):
            msg = "local: 'root' is required"
            raise ImproperConfigurationError(msg)
        self.root = Path(root).expanduser().resolve()
        self.root.mkdir(parents=True, exist_ok=True)
        self.base_url = base_url.rstrip("/")
        self.perm = perm

    @classmethod
    def from_options(cls, options: "dict[str, Any]") -> "LocalStore":
        """Build a store from the options of a disk configuration."""
        root = options.get("root")
        if not root:
            msg = "local: 'root' is required"
            raise ImproperConfigurationError(msg)
        return cls(root=str(root), base_url=str(options.get("base_url") or ""), perm=_parse_perm(options.get("perm")))

    def _resolve_path(self, key: str, operation: str) -> Path:
        resolved = (self.root / key).resolve()
        if resolved != self.root and self.root not in resolved.parents:
            raise InvalidKeyError("key escapes the storage root", driver=self.driver, operation=operation, key=key)
        return resolved

    def _public_url(self, key: str) -> str:
        return f"{self.base_url}/{quote(key)}"

    def _upload(self, key: str, stream: "BinaryStream", options: "UploadOptions") -> UploadResult:
        path = self._resolve_path(key, "upload")
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("wb") as f:
            shutil.copyfileobj(stream, f, COPY_CHUNK_SIZE)
        os.chmod(path, self.perm)
        return UploadResult(
            key=key,
            url=self._public_url(key) if self.base_url else "",
            size=path.stat().st_size,
            metadata=dict(options.metadata),
        )

    def _download(self, key: str) -> "BinaryStream":
        return self._resolve_path(key, "download").open("rb")

    def _delete(self, key: str) -> None:
        path = self._resolve_path(key, "delete")
        try:
            path.unlink()
        except FileNotFoundError:
            return

    def _exists(self, key: str) -> bool:
        return self._resolve_path(key, "exists").is_file()

    def _url(self, key: str) -> str:
        if not self.base_url:
            msg = "local: base_url not configured"
            raise NotImplementedError(msg)
        return self._public_url(key)

    def _list(self, prefix: str, options: "ListOptions") -> ListResult:
        if options.delimiter:
            return self._list_delimited(prefix, options)

        keys = sorted(
            path.relative_to(self.root).as_posix()
            for path in self.root.rglob("*")
            if path.is_file() and path.relative_to(self.root).as_posix().startswith(prefix)
        )
        page, next_marker, truncated = self._list_keys(keys, options)
        return ListResult(files=[self._file_info(k) for k in page], next_marker=next_marker, is_truncated=truncated)

    def _list_delimited(self, prefix: str, options: "ListOptions") -> ListResult:
        """List only the files directly inside the directory part of ``prefix``."""
        parent, _, _ = prefix.rpartition("/")
        directory = self._resolve_path(parent, "list") if parent else self.root
        if not directory.is_dir():
            return ListResult()
        keys = sorted(
            path.relative_to(self.root).as_posix()
            for path in directory.iterdir()
            if path.is_file() and path.relative_to(self.root).as_posix().startswith(prefix)
        )
        page, next_marker, truncated = self._list_keys(keys, options)
        return ListResult(files=[self._file_info(k) for k in page], next_marker=next_marker, is_truncated=truncated)

    def _file_info(self, key: str, path: "Optional[Path]" = None) -> FileInfo:
        stat = (path or self.root / key).stat()
        return FileInfo(
            key=key,
            size=stat.st_size,
            last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            content_type=detect_content_type(key),
        )

    def _copy(self, source: str, destination: str) -> None:
        src = self._resolve_path(source, "copy")
        dst = self._resolve_path(destination, "copy")
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(src, dst)

    def _move(self, source: str, destination: str) -> None:
        src = self._resolve_path(source, "move")
        dst = self._resolve_path(destination, "move")
        dst.parent.mkdir(parents=True, exist_ok=True)
        os.replace(src, dst)

    def _size(self, key: str) -> int:
        return self._resolve_path(key, "size").stat().st_size

    def _metadata(self, key: str) -> FileInfo:
        path = self._resolve_path(key, "metadata")
        if not path.is_file():
            raise NotFoundError(driver=self.driver, operation="metadata", key=key)
        return self._file_info(key, path)

    def __repr__(self) -> str:
        return f"<LocalStore root={str(self.root)!r}>"


def create_local_store(options: "dict[str, Any]") -> LocalStore:
    """Driver factory for ``local`` disks."""
    return LocalStore.from_options(options)
