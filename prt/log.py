"""
Logging setup for PRT (loguru).
"""

from __future__ import annotations

import logging
import sys

from loguru import logger

from .config import config_dir


class InterceptHandler(logging.Handler):
    """Intercept standard logging messages toward Loguru sinks."""
    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(verbose: bool = False, log_to_file: bool = True) -> None:
    """Configure loguru: stderr at WARNING (DEBUG when verbose) plus a rotating log file."""
    logger.remove()

    logger.add(
        sys.stderr,
        level="DEBUG" if verbose else "WARNING",
        colorize=None,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan> - <level>{message}</level>",
    )

    if log_to_file:
        log_file = config_dir() / "prt.log"
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(log_file),
            level="DEBUG",
            rotation="10 MB",
            retention="1 week",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
