#!/usr/bin/env python3
"""
Logging set-up for the capacity autoscaler

Records carry a ``component`` attribute (``core.evaluator``,
``analysis.trend_analyzer``...) derived from the logger name, so console
lines stay short while file output keeps the full call site.
"""

import logging
import sys
from pathlib import Path
from typing import Iterable, Optional

PACKAGE_PREFIX = "capacity_autoscaler."

CONSOLE_FORMAT = "%(asctime)s [%(levelname)s] %(component)s: %(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s %(module)s:%(funcName)s:%(lineno)d - %(message)s"

# Client libraries that log every reconnect at INFO
NOISY_LOGGERS = ("redis", "asyncio", "urllib3")

LEVEL_COLORS = {
    logging.DEBUG: '\033[36m',
    logging.INFO: '\033[32m',
    logging.WARNING: '\033[33m',
    logging.ERROR: '\033[31m',
    logging.CRITICAL: '\033[35m',
}
RESET = '\033[0m'


class ComponentFilter(logging.Filter):
    """Adds ``record.component``: the logger name without the package prefix"""

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name.startswith(PACKAGE_PREFIX):
            name = name[len(PACKAGE_PREFIX):]
        record.component = name
        return True


class ColoredFormatter(logging.Formatter):
    """Colours the level name of console records"""

    def format(self, record: logging.LogRecord) -> str:
        color = LEVEL_COLORS.get(record.levelno)
        if color is None:
            return super().format(record)
        # Copy so other handlers see the plain level name
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{color}{record.levelname}{RESET}"
        return super().format(record)


def _console_handler(level: int, enable_colors: bool) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    use_colors = enable_colors and hasattr(sys.stdout, "isatty") and sys.stdout.isatty()
    handler.setFormatter(ColoredFormatter(CONSOLE_FORMAT) if use_colors else logging.Formatter(CONSOLE_FORMAT))
    handler.addFilter(ComponentFilter())
    return handler


def _file_handler(path: Path, level: int) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT))
    handler.addFilter(ComponentFilter())
    return handler


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    enable_colors: bool = True,
    quiet: Iterable[str] = NOISY_LOGGERS,
) -> logging.Logger:
    """
    Replace the root logger's handlers with the service's console (and file) handlers

    Args:
        level: Level name; unknown names fall back to INFO
        log_file: Optional log file, parent directories are created
        enable_colors: Colour console level names when stdout is a terminal
        quiet: Logger names raised to WARNING

    Returns:
        The configured root logger
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    root_logger.addHandler(_console_handler(numeric_level, enable_colors))
    if log_file:
        root_logger.addHandler(_file_handler(Path(log_file), numeric_level))

    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        f"Logging configured at {logging.getLevelName(numeric_level)}"
        + (f", writing to {log_file}" if log_file else "")
    )
    return root_logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
