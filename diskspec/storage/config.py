"""Storage configuration loading and resolution.

The configuration names a default disk and maps disk names to a driver plus
its options::

    default: local
    disks:                # "storages" is accepted as well
      local:
        driver: local
        root: ./uploads   # options may sit next to "driver" ...
      media:
        driver: s3
        options:          # ... or under an "options" key
          bucket: ${MEDIA_BUCKET}

Environment variables are substituted in the raw text before parsing, so they
may appear anywhere in the document.
"""

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Final, Optional, Union, overload

import msgspec
import yaml

from diskspec._serialization import decode_json
from diskspec.exceptions import ConfigKeyNotFoundError, ConfigParseError
from diskspec.utils.logging import get_logger

__all__ = (
    "DEFAULT_EMBEDDED_KEY",
    "DiskConfig",
    "StorageConfig",
    "config_from_mapping",
    "expand_env_vars",
    "extract_embedded",
    "load_config",
    "load_config_data",
    "load_config_embedded",
    "parse_config_data",
)

logger = get_logger("storage.config")

DEFAULT_EMBEDDED_KEY: Final[str] = "storage"
DISK_COLLECTION_KEYS: Final[tuple[str, ...]] = ("disks", "storages")
DRIVER_KEY: Final[str] = "driver"
OPTIONS_KEY: Final[str] = "options"

ENV_VAR_REGEX: Final = re.compile(r"\$\{(\w+)\}|\$(\w+)")
ENV_VAR_REGEX_BYTES: Final = re.compile(rb"\$\{(\w+)\}|\$(\w+)")


@dataclass(frozen=True)
class DiskConfig:
    """Driver name and options of one disk."""

    driver: str
    options: "dict[str, Any]" = field(default_factory=dict)


@dataclass(frozen=True)
class StorageConfig:
    """Resolved storage configuration.

    ``default`` is not checked against ``disks`` here; an unknown default is
    reported when it is first resolved by a manager.
    """

    default: str = ""
    disks: "dict[str, DiskConfig]" = field(default_factory=dict)

    def get(self, name: str) -> "Optional[DiskConfig]":
        return self.disks.get(name)

    def to_dict(self) -> "dict[str, Any]":
        return {
            "default": self.default,
            "disks": {
                name: {DRIVER_KEY: disk.driver, OPTIONS_KEY: dict(disk.options)} for name, disk in self.disks.items()
            },
        }


@overload
def expand_env_vars(text: str) -> str: ...


@overload
def expand_env_vars(text: bytes) -> bytes: ...


def expand_env_vars(text: Union[str, bytes]) -> Union[str, bytes]:
    """Substitute ``${NAME}`` and ``$NAME`` with environment variable values.

    A bare ``$NAME`` extends over every following word character, so
    ``$FOO_suffix`` refers to ``FOO_suffix``. Unset or empty variables leave
    the token untouched. In bytes input, values holding undecodable bytes
    (surrogate-escaped by ``os.environ``) are substituted byte for byte.

    Args:
        text: Raw configuration text.

    Returns:
        The text with every resolvable reference replaced.
    """
    if isinstance(text, bytes):

        def _replace_bytes(match: "re.Match[bytes]") -> bytes:
            name = (match.group(1) or match.group(2)).decode("utf-8")
            value = os.environ.get(name)
            return value.encode("utf-8", "surrogateescape") if value else match.group(0)

        return ENV_VAR_REGEX_BYTES.sub(_replace_bytes, text)

    def _replace(match: "re.Match[str]") -> str:
        value = os.environ.get(match.group(1) or match.group(2))
        return value or match.group(0)

    return ENV_VAR_REGEX.sub(_replace, text)


def _detect_format(path: Path) -> str:
    return "json" if path.suffix.lower() == ".json" else "yaml"


def parse_config_data(data: Union[str, bytes], format: str = "yaml") -> "dict[str, Any]":  # noqa: A002
    """Substitute environment variables in raw text and parse it into a mapping.

    Args:
        data: Raw YAML or JSON document.
        format: ``"yaml"`` (also accepts JSON) or ``"json"``.

    Raises:
        ConfigParseError: If the document cannot be parsed or is not a mapping.
    """
    text = expand_env_vars(data)
    fmt = format.lower()
    try:
        if fmt == "json":
            parsed = decode_json(text)
        elif fmt in {"yaml", "yml"}:
            parsed = yaml.safe_load(text)
        else:
            msg = f"storage: unsupported config format {format!r}"
            raise ConfigParseError(msg)
    except (yaml.YAMLError, msgspec.DecodeError, UnicodeError) as exc:
        msg = f"storage: failed to parse config: {exc}"
        raise ConfigParseError(msg) from exc

    if parsed is None:
        parsed = {}
    if not isinstance(parsed, Mapping):
        msg = f"storage: config must be a mapping, got {type(parsed).__name__}"
        raise ConfigParseError(msg)
    return dict(parsed)


def extract_embedded(mapping: "Mapping[str, Any]", key: str = DEFAULT_EMBEDDED_KEY) -> "Mapping[str, Any]":
    """Return the storage section nested in a host application's configuration.

    Args:
        mapping: Parsed host configuration.
        key: Key of the storage section; dots walk nested mappings (``"services.storage"``).

    Raises:
        ConfigKeyNotFoundError: If any part of the key path is absent.
        ConfigParseError: If the section is not a mapping.
    """
    current: Any = mapping
    for part in key.split("."):
        if not isinstance(current, Mapping) or part not in current:
            raise ConfigKeyNotFoundError(key)
        current = current[part]
    if not isinstance(current, Mapping):
        msg = f"storage: config key {key!r} is not a mapping"
        raise ConfigParseError(msg)
    return current


def _disk_from_mapping(name: str, raw: Any) -> DiskConfig:
    if not isinstance(raw, Mapping):
        msg = f"storage: disk {name!r} must be a mapping"
        raise ConfigParseError(msg)

    driver = raw.get(DRIVER_KEY)
    if not isinstance(driver, str) or not driver:
        msg = f"storage: disk {name!r} missing 'driver'"
        raise ConfigParseError(msg)

    if OPTIONS_KEY in raw:
        options = raw[OPTIONS_KEY]
        if options is None:
            options = {}
        if not isinstance(options, Mapping):
            msg = f"storage: disk {name!r} 'options' must be a mapping"
            raise ConfigParseError(msg)
        return DiskConfig(driver=driver, options=dict(options))

    return DiskConfig(driver=driver, options={k: v for k, v in raw.items() if k != DRIVER_KEY})


def config_from_mapping(mapping: "Mapping[str, Any]") -> StorageConfig:
    """Build a :class:`StorageConfig` from an already parsed mapping.

    This is the entry point for applications that load their configuration
    with another library and hand over the storage section.

    Raises:
        ConfigParseError: If the mapping has no disk collection or a disk is malformed.
    """
    if not isinstance(mapping, Mapping):
        msg = f"storage: config must be a mapping, got {type(mapping).__name__}"
        raise ConfigParseError(msg)

    default = mapping.get("default") or ""
    if not isinstance(default, str):
        msg = "storage: 'default' must be a string"
        raise ConfigParseError(msg)

    raw_disks: Any = None
    for collection_key in DISK_COLLECTION_KEYS:
        if mapping.get(collection_key) is not None:
            raw_disks = mapping[collection_key]
            break
    if raw_disks is None:
        msg = "storage: no 'disks' or 'storages' found in config"
        raise ConfigParseError(msg)
    if not isinstance(raw_disks, Mapping):
        msg = "storage: 'disks' must be a mapping of disk name to disk config"
        raise ConfigParseError(msg)

    disks = {str(name): _disk_from_mapping(str(name), raw) for name, raw in raw_disks.items()}
    return StorageConfig(default=default, disks=disks)


def load_config_data(
    data: Union[str, bytes], format: str = "yaml", key: Optional[str] = None  # noqa: A002
) -> StorageConfig:
    """Resolve a configuration from raw text.

    Args:
        data: Raw YAML or JSON document.
        format: Document format.
        key: When given, the storage section is read from this embedded key path.
    """
    parsed = parse_config_data(data, format)
    if key is not None:
        return config_from_mapping(extract_embedded(parsed, key))
    return config_from_mapping(parsed)


def _read_config_file(path: "Union[str, Path]") -> "tuple[bytes, str]":
    config_path = Path(path)
    try:
        return config_path.read_bytes(), _detect_format(config_path)
    except OSError as exc:
        msg = f"storage: failed to read config file {str(config_path)!r}: {exc}"
        raise ConfigParseError(msg) from exc


def load_config(path: "Union[str, Path]") -> StorageConfig:
    """Load a configuration file whose top level is the storage configuration.

    ``.json`` files are parsed as JSON, everything else as YAML.
    """
    data, fmt = _read_config_file(path)
    config = load_config_data(data, fmt)
    logger.debug("Loaded storage config from %s with disks: %s", path, sorted(config.disks))
    return config


def load_config_embedded(path: "Union[str, Path]", key: str = DEFAULT_EMBEDDED_KEY) -> StorageConfig:
    """Load the storage configuration nested under ``key`` in an application config file."""
    data, fmt = _read_config_file(path)
    config = load_config_data(data, fmt, key=key)
    logger.debug("Loaded embedded storage config %r from %s with disks: %s", key, path, sorted(config.disks))
    return config
