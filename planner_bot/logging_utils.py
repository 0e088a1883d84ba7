"""
Logging utilities for the weekly planner import tool.

All output goes through the ``planner_bot`` logger. Source importers run
concurrently, so each gets an adapter that tags its lines with the source
name; the CLI uses the marker helpers below for status lines.
"""

import logging
import sys
from typing import Optional, Union


LOGGER_NAME = 'planner_bot'

SECTION_WIDTH = 60

AnyLogger = Union[logging.Logger, logging.LoggerAdapter]


class ColoredFormatter(logging.Formatter):
    """
    Formatter that paints the level name with an ANSI color.
    """

    RESET = '\033[0m'
    LEVEL_COLORS = {
        logging.DEBUG: '\033[36m',
        logging.INFO: '\033[32m',
        logging.WARNING: '\033[33m',
        logging.ERROR: '\033[31m',
        logging.CRITICAL: '\033[35m',
    }

    def format(self, record):
        color = self.LEVEL_COLORS.get(record.levelno)
        if color is None:
            return super().format(record)

        plain = record.levelname
        # Pad before coloring so the column width ignores escape codes
        record.levelname = f"{color}{plain:<8}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = plain


class SourceLoggerAdapter(logging.LoggerAdapter):
    """
    Prefixes every message with the source name, e.g. ``[tickets] ...``.
    """

    def process(self, msg, kwargs):
        return f"[{self.extra['source']}] {msg}", kwargs


def setup_logging(verbose: bool = False, use_colors: bool = True) -> logging.Logger:
    """
    Configure the application logger to write to stdout.

    Calling it again replaces the previous handler.

    Args:
        verbose: DEBUG level with timestamps instead of INFO
        use_colors: Color level names when stdout is a terminal

    Returns:
        The configured ``planner_bot`` logger
    """
    level = logging.DEBUG if verbose else logging.INFO
    fmt = '%(levelname)-8s | %(message)s'
    if verbose:
        fmt = '%(asctime)s ' + fmt

    formatter_cls = ColoredFormatter if use_colors and sys.stdout.isatty() else logging.Formatter

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(formatter_cls(fmt=fmt, datefmt='%H:%M:%S'))

    logger = get_logger()
    logger.setLevel(level)
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def get_logger() -> logging.Logger:
    """Return the application logger."""
    return logging.getLogger(LOGGER_NAME)


def get_source_logger(source: str) -> SourceLoggerAdapter:
    """
    Get a logger that tags messages with the given source name.

    Args:
        source: Source key (e.g. "report-grid")

    Returns:
        Logger adapter for that source
    """
    return SourceLoggerAdapter(get_logger(), {'source': source})


def log_section(title: str, logger: Optional[AnyLogger] = None):
    """Log a banner line pair around ``title``."""
    logger = logger or get_logger()
    rule = "=" * SECTION_WIDTH
    for line in ("", rule, f"  {title}", rule):
        logger.info(line)


def _log_marked(level: int, marker: str, message: str, logger: Optional[AnyLogger]):
    (logger or get_logger()).log(level, f"{marker} {message}")


def log_step(step: str, logger=None):
    _log_marked(logging.INFO, "→", step, logger)


def log_success(message: str, logger=None):
    _log_marked(logging.INFO, "✓", message, logger)


def log_warning(warning: str, logger=None):
    _log_marked(logging.WARNING, "⚠", warning, logger)


def log_error(error: str, logger=None):
    _log_marked(logging.ERROR, "✗", error, logger)
