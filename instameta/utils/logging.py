"""Logging configuration for InstaMeta."""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

from instameta.utils.config import APP_NAME, LOG_FILE, LOG_LEVEL


def setup_logging(
    level: Union[int, str] = LOG_LEVEL,
    log_file: Optional[Path] = LOG_FILE,
) -> logging.Logger:
    """
    Configure and return the application logger.

    Args:
        level: Logging level (default: INSTAMETA_LOG_LEVEL or INFO)
        log_file: Path to log file (default: INSTAMETA_LOG_FILE, console only when unset)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(APP_NAME)
    logger.setLevel(level)

    # Prevent duplicate handlers
    if logger.handlers:
        return logger

    detailed_formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    console_formatter = logging.Formatter(
        fmt="%(levelname)-8s | %(message)s"
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(console_formatter)
    logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
            encoding="utf-8"
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(detailed_formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name (default: APP_NAME)

    Returns:
        Logger instance
    """
    if name is None:
        name = APP_NAME
    return logging.getLogger(name)
