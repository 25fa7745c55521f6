from __future__ import annotations

import json
import logging
import sys
from io import StringIO
from pathlib import Path

from prepay_sync.logging.error_log import ErrorLogBuffer
from prepay_sync.logging.init import (
    LOGGER_NAME,
    SUMMARY_LEVEL,
    LabeledFormatter,
    get_logger,
    log_file_path,
    log_summary,
    reset_logging,
    set_debug,
    setup_logging,
)
from prepay_sync.models.error_record import ErrorRecord


def _capture_logger(name: str) -> tuple[logging.Logger, StringIO]:
    out = StringIO()
    logger = logging.getLogger(name)
    for h in logger.handlers[:]:
        logger.removeHandler(h)
    handler = logging.StreamHandler(out)
    handler.setFormatter(LabeledFormatter(with_timestamp=False))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    return logger, out


def test_setup_logging_console_only():
    logger = setup_logging()
    assert logger.name == LOGGER_NAME
    assert logger.level == logging.INFO
    assert len(logger.handlers) == 1
    assert log_file_path() is None
    # 二回目は同じインスタンス
    assert setup_logging() is logger
    assert get_logger() is logger


def test_setup_logging_with_file_sink(tmp_path: Path):
    logger = setup_logging(tmp_path / "logs")
    path = log_file_path()
    assert path is not None
    assert path.parent == tmp_path / "logs"
    assert path.name.startswith("run_") and path.suffix == ".log"
    logger.warning("disk check")
    for h in logger.handlers:
        h.flush()
    content = path.read_text(encoding="utf-8")
    assert "INFO Logging to file:" in content
    assert "WARN disk check" in content
    reset_logging()


def test_labeled_prefixes():
    logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")
    logger, out = _capture_logger("test_prepay_labels")
    logger.info("info message")
    logger.warning("warn message")
    logger.error("error message")
    logger.log(SUMMARY_LEVEL, "phase=extract partitions=1")
    lines = out.getvalue().splitlines()
    assert lines == [
        "INFO info message",
        "WARN warn message",
        "ERROR error message",
        "SUMMARY phase=extract partitions=1",
    ]


def test_timestamp_is_utc_iso_with_z():
    formatter = LabeledFormatter()
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "hello", None, None)
    record.created = 0.0
    assert formatter.format(record) == "1970-01-01T00:00:00.000Z INFO hello"


def test_exception_text_appended():
    logger, out = _capture_logger("test_prepay_exc")
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        logger.exception("failed")
    text = out.getvalue()
    assert text.startswith("ERROR failed\nTraceback")
    assert "RuntimeError: boom" in text


def test_log_summary_and_debug(capsys):
    logger = setup_logging()
    logger.debug("hidden")
    set_debug(logger)
    logger.debug("shown")
    log_summary("phase=replay partitions=0")
    out = capsys.readouterr().out
    assert "hidden" not in out
    assert "DEBUG shown" in out
    assert "SUMMARY phase=replay partitions=0" in out


def test_excepthook_installed_and_restored():
    setup_logging()
    assert sys.excepthook is not sys.__excepthook__
    reset_logging()
    assert sys.excepthook is sys.__excepthook__


def test_error_log_buffer_flush(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path / "logs")
    assert buf.flush() is None
    buf.append(ErrorRecord.create("1000", "a.csv", "A1", "HTTP_STATUS", "500 Server Error", status=500))
    buf.append(ErrorRecord.create("1000", "a.csv", None, "TRANSPORT_ERROR", "connect timeout"))
    path = buf.flush()
    assert path is not None
    assert path.name.startswith("submission-errors-")
    rows = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert len(rows) == 2
    assert set(rows[0]) == {
        "timestamp", "partition", "file", "accounting_document", "error_type", "status", "message",
    }
    assert rows[0]["status"] == 500
    assert rows[1]["status"] == -1
    assert rows[1]["accounting_document"] == ""
    assert rows[0]["timestamp"].endswith("Z")
    # flush 後は空
    assert buf.flush() is None


def test_error_log_buffer_appends_same_file(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path)
    buf.append(ErrorRecord.create("1000", "a.csv", "A1", "UNEXPECTED_ERROR", "x"))
    first = buf.flush()
    buf.append(ErrorRecord.create("2000", "b.csv", "B1", "UNEXPECTED_ERROR", "y"))
    second = buf.flush()
    assert first == second
    assert len(second.read_text(encoding="utf-8").splitlines()) == 2
