"""Tests for logging setup."""

import logging

from qlharvest.logging_config import setup_logging


def test_levels():
    assert setup_logging(verbose=True).level == logging.DEBUG
    assert setup_logging(quiet=True).level == logging.ERROR
    assert setup_logging().level == logging.INFO


def test_log_file(tmp_path):
    log_file = tmp_path / "qlharvest.log"
    root = logging.getLogger()
    saved = list(root.handlers)
    root.handlers.clear()
    try:
        logger = setup_logging(log_file=str(log_file))
        logger.getChild("services").info("loaded %d analyses", 3)
        for handler in root.handlers:
            handler.flush()
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = saved

    assert "loaded 3 analyses" in log_file.read_text()
