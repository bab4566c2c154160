"""Optional dependency flags and shared type aliases."""

from collections.abc import Callable
from importlib.util import find_spec
from typing import IO, TYPE_CHECKING, Any

from typing_extensions import TypeAlias, TypeVar

if TYPE_CHECKING:
    from diskspec.storage.protocol import StorageProtocol

__all__ = (
    "FSSPEC_INSTALLED",
    "BinaryStream",
    "DriverFactory",
    "ItemT",
    "OptionsMap",
    "ResultT",
)


def _is_installed(module: str) -> bool:
    try:
        return find_spec(module) is not None
    except (ImportError, ValueError):
        return False


FSSPEC_INSTALLED = _is_installed("fsspec")

ItemT = TypeVar("ItemT")
ResultT = TypeVar("ResultT")

BinaryStream: TypeAlias = IO[bytes]
OptionsMap: TypeAlias = "dict[str, Any]"
DriverFactory: TypeAlias = "Callable[[dict[str, Any]], StorageProtocol]"
