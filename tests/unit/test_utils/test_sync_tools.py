"""Tests for the reader/writer lock."""

import threading
import time

from diskspec.utils.sync_tools import ReadWriteLock


def test_readers_share_the_lock() -> None:
    """Test several readers hold the lock at the same time."""
    lock = ReadWriteLock()
    inside = threading.Barrier(3, timeout=2)
    errors = []

    def reader() -> None:
        with lock.read():
            try:
                inside.wait()
            except threading.BrokenBarrierError as exc:
                errors.append(exc)

    threads = [threading.Thread(target=reader) for _ in range(3)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []


def test_writer_excludes_readers() -> None:
    """Test a reader waits until the writer releases the lock."""
    lock = ReadWriteLock()
    events: list[str] = []
    lock.acquire_write()

    def reader() -> None:
        with lock.read():
            events.append("read")

    thread = threading.Thread(target=reader)
    thread.start()
    time.sleep(0.05)
    events.append("write-done")
    lock.release_write()
    thread.join()

    assert events == ["write-done", "read"]


def test_writers_are_serialized() -> None:
    """Test concurrent writers never overlap."""
    lock = ReadWriteLock()
    active = 0
    overlaps = 0
    counter_lock = threading.Lock()

    def writer() -> None:
        nonlocal active, overlaps
        with lock.write():
            with counter_lock:
                active += 1
                overlaps += active > 1
            time.sleep(0.005)
            with counter_lock:
                active -= 1

    threads = [threading.Thread(target=writer) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert overlaps == 0
