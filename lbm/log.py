"""Console logging setup."""
from __future__ import annotations

import logging
import os
import sys

LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# ANSI color codes (respect NO_COLOR convention: https://no-color.org)
RED = "\033[31m"
YELLOW = "\033[33m"
RESET = "\033[0m"

_LEVEL_COLORS = {
    logging.WARNING: YELLOW,
    logging.ERROR: RED,
    logging.CRITICAL: RED,
}


class ColorFormatter(logging.Formatter):
    """Prefix each line with its level, colored when use_color is set."""

    def __init__(self, use_color: bool):
        super().__init__("%(levelname)s: %(message)s")
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        color = _LEVEL_COLORS.get(record.levelno)
        if not self.use_color or color is None:
            return line
        return f"{color}{line}{RESET}"


def use_color(stream=None) -> bool:
    stream = stream or sys.stderr
    if os.environ.get("NO_COLOR") is not None:
        return False
    return hasattr(stream, "isatty") and stream.isatty()


def setup_logging(level: str, stream=None) -> logging.Logger:
    """Configure the lbm logger tree. `level` must be one of LEVELS."""
    stream = stream or sys.stderr
    logger = logging.getLogger("lbm")
    logger.setLevel(level)
    logger.handlers.clear()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(ColorFormatter(use_color(stream)))
    logger.addHandler(handler)
    return logger
