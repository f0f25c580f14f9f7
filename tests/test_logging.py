"""Tests for logging setup."""

import logging
import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).parent.parent / "src"))

from scan_alignment.utils.logging import setup_logger, set_package_log_level


def test_setup_logger_does_not_duplicate_handlers():
    first = setup_logger("scan_alignment.tests.dup")
    second = setup_logger("scan_alignment.tests.dup")

    assert first is second
    assert len(second.handlers) == 1


def test_setup_logger_with_file(tmp_path):
    log_file = tmp_path / "logs" / "run.log"
    logger = setup_logger("scan_alignment.tests.file", log_file=str(log_file))

    logger.info("hello from test")
    for handler in logger.handlers:
        handler.flush()

    assert log_file.exists()
    assert "hello from test" in log_file.read_text(encoding="utf-8")


def test_set_package_log_level():
    import scan_alignment.alignment.icp  # noqa: F401  (creates module loggers)

    try:
        set_package_log_level("DEBUG")
        assert logging.getLogger("scan_alignment.alignment.icp").level == logging.DEBUG
    finally:
        set_package_log_level(logging.INFO)

    assert logging.getLogger("scan_alignment.alignment.icp").level == logging.INFO


def test_set_package_log_level_rejects_unknown_names():
    with pytest.raises(ValueError):
        set_package_log_level("LOUD")
