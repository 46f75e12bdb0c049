# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Shared fixtures for unit tests."""

import logging

import pytest


@pytest.fixture(autouse=True)
def restore_root_logger():
    """setup_logging() replaces root handlers; put pytest's back afterwards."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    watchdog_level = logging.getLogger("watchdog").level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
    logging.getLogger("watchdog").setLevel(watchdog_level)
