#!/usr/bin/env python3
"""
Tests for the logging set-up
"""

import logging

import pytest

from capacity_autoscaler.core.logging_config import ColoredFormatter, ComponentFilter, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def make_record(name="capacity_autoscaler.core.evaluator", level=logging.WARNING):
    return logging.LogRecord(name, level, __file__, 1, "threshold breached", None, None)


class TestLoggingConfig:
    """Handlers, levels and record decoration"""

    def test_component_strips_package_prefix(self):
        record = make_record()

        assert ComponentFilter().filter(record) is True
        assert record.component == "core.evaluator"

    def test_foreign_logger_keeps_name(self):
        record = make_record(name="redis.connection")
        ComponentFilter().filter(record)

        assert record.component == "redis.connection"

    def test_colored_formatter_leaves_record_untouched(self):
        record = make_record()
        ComponentFilter().filter(record)

        line = ColoredFormatter("%(levelname)s %(component)s %(message)s").format(record)

        assert "\033[33mWARNING\033[0m" in line
        assert record.levelname == "WARNING"

    def test_setup_with_file(self, tmp_path, restore_root_logger):
        log_file = tmp_path / "logs" / "autoscaler.log"

        root = setup_logging("debug", log_file=str(log_file), enable_colors=False)
        logging.getLogger("capacity_autoscaler.core.scaling").debug("decision made")
        for handler in root.handlers:
            handler.flush()

        assert root.level == logging.DEBUG
        assert len(root.handlers) == 2
        assert "decision made" in log_file.read_text()
        assert logging.getLogger("redis").level == logging.WARNING

    def test_unknown_level_falls_back_to_info(self, restore_root_logger):
        root = setup_logging("chatty", enable_colors=False)

        assert root.level == logging.INFO
        assert len(root.handlers) == 1
