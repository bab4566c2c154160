"""Unit tests for the logging helpers."""

import logging

import pytest

from diskspec._serialization import decode_json
from diskspec.utils.logging import (
    CorrelationIDFilter,
    StructuredFormatter,
    configure_logging,
    debug_enabled,
    get_logger,
    log_with_context,
    set_correlation_id,
)


def _record(msg: str = "storage upload") -> logging.LogRecord:
    return logging.LogRecord(
        name="diskspec.storage", level=logging.INFO, pathname=__file__, lineno=10, msg=msg, args=(), exc_info=None
    )


def test_get_logger_namespaces_under_diskspec() -> None:
    logger = get_logger("storage.custom")

    assert logger.name == "diskspec.storage.custom"
    assert get_logger().name == "diskspec"
    assert get_logger("diskspec.x").name == "diskspec.x"
    assert sum(isinstance(f, CorrelationIDFilter) for f in get_logger("storage.custom").filters) == 1


def test_structured_formatter_includes_extra_fields_and_correlation_id() -> None:
    record = _record()
    record.extra_fields = {"disk": "main", "key": "a.txt"}
    set_correlation_id("cid-1")
    try:
        output = decode_json(StructuredFormatter().format(record))
    finally:
        set_correlation_id(None)

    assert output["message"] == "storage upload"
    assert output["level"] == "INFO"
    assert output["disk"] == "main"
    assert output["key"] == "a.txt"
    assert output["correlation_id"] == "cid-1"


def test_correlation_filter_tags_records() -> None:
    record = _record()
    set_correlation_id("cid-2")
    try:
        assert CorrelationIDFilter().filter(record)
    finally:
        set_correlation_id(None)

    assert record.correlation_id == "cid-2"


def test_log_with_context_skips_disabled_levels(caplog: pytest.LogCaptureFixture) -> None:
    logger = get_logger("storage.test_context")

    with caplog.at_level(logging.INFO, logger=logger.name):
        log_with_context(logger, logging.DEBUG, "hidden", key="a")
        log_with_context(logger, logging.INFO, "shown", key="b")

    assert [r.getMessage() for r in caplog.records] == ["shown"]
    assert caplog.records[0].extra_fields == {"key": "b"}


def test_configure_logging_replaces_handlers() -> None:
    root = logging.getLogger("diskspec")
    saved = (root.level, list(root.handlers), root.propagate)
    try:
        configure_logging(level="DEBUG", format_style="simple")
        configure_logging(level="WARNING")

        assert root.level == logging.WARNING
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, StructuredFormatter)
        assert root.propagate is False
    finally:
        root.setLevel(saved[0])
        root.handlers[:] = saved[1]
        root.propagate = saved[2]


def test_debug_enabled(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("DISKSPEC_DEBUG", raising=False)
    assert not debug_enabled()

    monkeypatch.setenv("DISKSPEC_DEBUG", "1")
    assert debug_enabled()
