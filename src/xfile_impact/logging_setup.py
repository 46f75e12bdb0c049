# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Logging for the xfile-impact command line.

Two sinks share the root logger:
- a dated JSON-lines file under the project's log directory, which always
  keeps build statistics (INFO and above);
- stderr, at the level chosen on the command line. Stdout carries only the
  impact listing.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

LOG_DIR_NAME = ".xfile_impact_logs"

CONSOLE_FORMAT = "xfile-impact: %(levelname)s: %(message)s"

# Chatty third-party loggers, capped regardless of the requested level
QUIET_LOGGERS = ("watchdog",)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record.

    Keys passed as ``extra={"extra_fields": {...}}`` are merged into the object.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        entry.update(getattr(record, "extra_fields", {}))
        return json.dumps(entry)


def log_file_for(log_dir: Path, when: Optional[datetime] = None) -> Path:
    """Daily log file inside ``log_dir``."""
    when = when or datetime.now(timezone.utc)
    return log_dir / f"xfile_impact_{when.strftime('%Y%m%d')}.log"


def setup_logging(
    log_dir: Optional[Path] = None,
    log_level: int = logging.INFO,
    console_output: bool = True,
    file_level: int = logging.INFO,
) -> Path:
    """Replace the root logger's handlers with the file and console sinks.

    Args:
        log_dir: Directory for log files (default: ./.xfile_impact_logs).
        log_level: Threshold for stderr.
        console_output: Attach the stderr handler at all.
        file_level: Threshold for the JSON log file.

    Returns:
        Path of the log file.
    """
    log_dir = log_dir or Path.cwd() / LOG_DIR_NAME
    log_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    log_file = log_file_for(log_dir)
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(StructuredFormatter())
    root_logger.addHandler(file_handler)
    threshold = file_level

    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        root_logger.addHandler(console_handler)
        threshold = min(threshold, log_level)

    root_logger.setLevel(threshold)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(threshold, logging.WARNING))

    logging.getLogger(__name__).debug(f"Logging to {log_file}")
    return log_file
