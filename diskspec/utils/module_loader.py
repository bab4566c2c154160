"""General utility functions."""

import importlib
from typing import Any

__all__ = ("import_string",)


def import_string(dotted_path: str) -> "Any":
    """Dotted Path Import.

    Import a dotted module path and return the attribute designated by the
    last name in the path. ``package.module:attribute`` is accepted as well.

    Args:
        dotted_path: The path of the object to import.

    Raises:
        ImportError: Could not import the module or the attribute.

    Returns:
        object: The imported object.
    """
    if ":" in dotted_path:
        module_path, _, attr_path = dotted_path.partition(":")
    else:
        module_path, _, attr_path = dotted_path.rpartition(".")
    if not module_path or not attr_path:
        msg = f"{dotted_path} doesn't look like a module path"
        raise ImportError(msg)

    try:
        module = importlib.import_module(module_path)
    except ImportError as e:
        msg = f"Could not import '{dotted_path}': {e}"
        raise ImportError(msg) from e

    obj: Any = module
    for attr in attr_path.split("."):
        try:
            obj = getattr(obj, attr)
        except AttributeError as e:
            msg = f"Module '{module_path}' has no attribute '{attr}' in '{dotted_path}'"
            raise ImportError(msg) from e
    return obj
