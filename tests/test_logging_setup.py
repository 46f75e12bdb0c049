# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for logging setup."""

import json
import logging
import sys
from datetime import datetime, timezone

from xfile_impact.logging_setup import StructuredFormatter, log_file_for, setup_logging


def read_entries(log_file):
    return [json.loads(line) for line in log_file.read_text().splitlines() if line]


def test_setup_logging_creates_directory_and_file(tmp_path):
    """Test that setup_logging creates the log directory and a dated log file."""
    log_dir = tmp_path / "nested" / ".xfile_impact_logs"
    log_file = setup_logging(log_dir=log_dir, console_output=False)
    assert log_dir.is_dir()
    assert log_file.parent == log_dir
    assert log_file.name.startswith("xfile_impact_")
    assert log_file.suffix == ".log"


def test_log_file_is_named_by_day(tmp_path):
    when = datetime(2025, 3, 9, 23, 59, tzinfo=timezone.utc)
    assert log_file_for(tmp_path, when) == tmp_path / "xfile_impact_20250309.log"


def test_logging_produces_json(tmp_path):
    log_file = setup_logging(log_dir=tmp_path, console_output=False)
    logging.getLogger("xfile_impact.test").info("Graph built")

    entry = read_entries(log_file)[-1]
    assert entry["message"] == "Graph built"
    assert entry["level"] == "INFO"
    assert entry["logger"] == "xfile_impact.test"
    assert entry["timestamp"].endswith("Z")


def test_file_level_is_independent_of_console_level(tmp_path, capsys):
    """Test that a quiet terminal still leaves build statistics in the log file."""
    log_file = setup_logging(log_dir=tmp_path, log_level=logging.WARNING)
    logger = logging.getLogger("xfile_impact.test")
    logger.info("Graph build: 3 parsed")
    logger.warning("Symbol 'Dup' declared twice")

    messages = [e["message"] for e in read_entries(log_file)]
    assert messages[-2:] == ["Graph build: 3 parsed", "Symbol 'Dup' declared twice"]
    err = capsys.readouterr().err
    assert "Graph build" not in err
    assert "xfile-impact: WARNING: Symbol 'Dup' declared twice" in err


def test_file_level_filters_records(tmp_path):
    log_file = setup_logging(
        log_dir=tmp_path, file_level=logging.WARNING, console_output=False
    )
    logger = logging.getLogger("xfile_impact.test")
    logger.info("Info message")
    logger.warning("Warning message")

    messages = [e["message"] for e in read_entries(log_file)]
    assert "Info message" not in messages
    assert "Warning message" in messages


def test_watchdog_debug_output_is_capped(tmp_path):
    setup_logging(log_dir=tmp_path, log_level=logging.DEBUG, file_level=logging.DEBUG)
    assert logging.getLogger().level == logging.DEBUG
    assert not logging.getLogger("watchdog.observers").isEnabledFor(logging.DEBUG)


def test_setup_replaces_existing_handlers(tmp_path):
    setup_logging(log_dir=tmp_path / "first")
    setup_logging(log_dir=tmp_path / "second")
    handlers = logging.getLogger().handlers
    assert len(handlers) == 2
    console = [h for h in handlers if type(h) is logging.StreamHandler]
    assert console[0].stream is sys.stderr


def test_formatter_includes_extra_fields_and_exception():
    formatter = StructuredFormatter()
    try:
        raise ValueError("boom")
    except ValueError:
        record = logging.LogRecord(
            "xfile_impact", logging.ERROR, __file__, 1, "failed", None, sys.exc_info()
        )
    record.extra_fields = {"files_parsed": 3}

    data = json.loads(formatter.format(record))
    assert data["files_parsed"] == 3
    assert "ValueError: boom" in data["exception"]
