"""Value types exchanged with storage backends."""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from typing_extensions import TypeAlias

__all__ = (
    "FileInfo",
    "ListOptions",
    "ListResult",
    "ProgressCallback",
    "UploadOptions",
    "UploadResult",
)

ProgressCallback: TypeAlias = Callable[[int, int], None]
"""Called with the number of bytes transferred so far and the declared total (-1 if unknown)."""

DEFAULT_MAX_KEYS = 1000


@dataclass
class UploadOptions:
    """Per-upload settings. Backends ignore what they have no concept of."""

    content_type: str = ""
    content_disposition: str = ""
    acl: str = ""
    metadata: "dict[str, str]" = field(default_factory=dict)
    progress: Optional[ProgressCallback] = None


@dataclass
class UploadResult:
    key: str
    url: str = ""
    size: int = 0
    etag: str = ""
    metadata: "dict[str, str]" = field(default_factory=dict)


@dataclass
class FileInfo:
    key: str
    size: int = 0
    last_modified: Optional[datetime] = None
    content_type: str = ""
    etag: str = ""
    metadata: "dict[str, str]" = field(default_factory=dict)


@dataclass(frozen=True)
class ListOptions:
    """Listing settings.

    ``marker`` starts the listing after that key; ``delimiter`` asks for a
    directory-like listing.
    """

    max_keys: int = DEFAULT_MAX_KEYS
    marker: str = ""
    delimiter: str = ""


@dataclass
class ListResult:
    files: "list[FileInfo]" = field(default_factory=list)
    next_marker: str = ""
    is_truncated: bool = False
