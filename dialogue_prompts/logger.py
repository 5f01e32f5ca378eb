"""
Logging setup for Dialogue Prompts

Usage:
    from dialogue_prompts.logger import get_logger, setup_logging

    setup_logging(level="INFO")
    logger = get_logger(__name__)
"""

import logging
import sys
from pathlib import Path
from typing import Optional

COLORS = {
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[35m",
    "RESET": "\033[0m",
}

ROOT_LOGGER = "dialogue_prompts"


class ColoredFormatter(logging.Formatter):
    """Formatter that colors the level name for terminal output"""

    def format(self, record):
        levelname = record.levelname
        if levelname in COLORS:
            record = logging.makeLogRecord(record.__dict__)
            record.levelname = f"{COLORS[levelname]}{levelname}{COLORS['RESET']}"
        return super().format(record)


def setup_logging(
    level: str = "WARNING",
    log_file: Optional[str] = None,
    enable_colors: bool = True,
) -> logging.Logger:
    """
    Configure the package logger.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path; when given, records are also written there
        enable_colors: Color level names on the console handler

    Returns:
        The configured package logger
    """
    numeric_level = getattr(logging, str(level).upper(), logging.WARNING)
    fmt = "%(levelname)-8s | %(name)s | %(message)s"

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(numeric_level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(numeric_level)
    if enable_colors and sys.stderr.isatty():
        console.setFormatter(ColoredFormatter(fmt))
    else:
        console.setFormatter(logging.Formatter(fmt))
    logger.addHandler(console)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s | " + fmt, datefmt="%Y-%m-%d %H:%M:%S")
        )
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a logger for a module of this package"""
    return logging.getLogger(name)
