"""Tests for the process-wide default manager and its shortcuts."""

from pathlib import Path

import pytest

from diskspec.exceptions import NotInitializedError
from diskspec.storage import default
from diskspec.storage.config import DiskConfig, StorageConfig
from diskspec.storage.default import DefaultManagerHolder, Disk
from diskspec.storage.registry import DriverRegistry

CONFIG = {"default": "main", "disks": {"main": {"driver": "memory"}, "media": {"driver": "advanced"}}}


def test_shortcuts_before_setup_fail() -> None:
    """Test every shortcut reports a missing setup."""
    with pytest.raises(NotInitializedError):
        default.get_manager()
    with pytest.raises(NotInitializedError):
        default.put_bytes("a", b"x")
    with pytest.raises(NotInitializedError):
        default.disk("media").exists("a")


def test_setup_from_mapping_and_shortcuts(registry: DriverRegistry) -> None:
    """Test the shortcuts operate on the default disk."""
    default.setup(CONFIG, registry)

    result = default.put_text("hello.txt", "hi")

    assert result.size == 2
    assert default.exists("hello.txt")
    assert default.get_text("hello.txt") == "hi"
    assert default.get_bytes("hello.txt") == b"hi"
    assert default.url("hello.txt") == "memory://hello.txt"

    default.delete("hello.txt")

    assert not default.exists("hello.txt")


def test_named_disk_handle(registry: DriverRegistry) -> None:
    """Test disk handles resolve their backend lazily."""
    media = default.disk("media")
    default.setup(CONFIG, registry)

    media.put_bytes("a.png", b"png")

    manager = default.get_manager()
    assert manager.disk("media").objects == {"a.png": b"png"}
    assert media.storage() is manager.disk("media")
    assert manager.disk("main").objects == {}


def test_put_file_and_download_file(tmp_path: Path, registry: DriverRegistry) -> None:
    """Test the file transfer shortcuts."""
    default.setup(CONFIG, registry)
    source = tmp_path / "in.txt"
    source.write_text("content")

    default.put_file("docs/in.txt", source)
    target = default.download_file("docs/in.txt", tmp_path / "out" / "in.txt")

    assert target.read_text() == "content"


def test_setup_replaces_and_closes_previous(registry: DriverRegistry) -> None:
    """Test a second setup closes the first manager."""
    first = default.setup(CONFIG, registry)
    backend = first.disk("main")

    second = default.setup(StorageConfig(default="main", disks={"main": DiskConfig(driver="memory")}), registry)

    assert default.get_manager() is second
    assert backend.close_calls == 1
    assert first.opened() == []


def test_teardown(registry: DriverRegistry) -> None:
    """Test teardown closes the manager and is repeatable."""
    manager = default.setup(CONFIG, registry)
    backend = manager.disk()

    default.teardown()
    default.teardown()

    assert backend.close_calls == 1
    with pytest.raises(NotInitializedError):
        default.get_manager()


def test_setup_from_file_embedded(tmp_path: Path, registry: DriverRegistry) -> None:
    """Test setup from the storage section of an application config."""
    path = tmp_path / "app.yaml"
    path.write_text("app: {}\nfiles:\n  default: main\n  disks:\n    main:\n      driver: memory\n")

    manager = default.setup_from_file(path, key="files", registry=registry)

    assert manager.disks() == ["main"]


def test_independent_holder(registry: DriverRegistry) -> None:
    """Test a separate holder does not touch the process-wide one."""
    holder = DefaultManagerHolder()
    holder.setup(CONFIG, registry)
    disk = Disk("main", holder)

    disk.put_bytes("x", b"1")

    assert holder.initialized
    assert not default.default_holder.initialized
    assert disk.get_bytes("x") == b"1"
    holder.teardown()
    assert not holder.initialized
