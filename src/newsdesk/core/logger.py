"""Centralized logging for the article pipeline."""

import logging
import os
from pathlib import Path

_FORMAT = "%(asctime)s | %(levelname)-8s | %(module)s.%(funcName)s | %(message)s"


def setup_logger(name: str = "newsdesk", log_file: str = "output/newsdesk.log") -> logging.Logger:
    """
    Build the shared pipeline logger with a file handler and a console handler.

    The level defaults to INFO and can be overridden with the
    ``NEWSDESK_LOG_LEVEL`` environment variable (e.g. ``DEBUG``).

    Args:
        name (str): Name of the logger.
        log_file (str): Path to the log file.

    Returns:
        logging.Logger: Configured logger instance.
    """
    logger = logging.getLogger(name)
    level_name = os.getenv("NEWSDESK_LOG_LEVEL", "INFO").upper()
    logger.setLevel(getattr(logging, level_name, logging.INFO))

    # Repeated imports (tests, scripts) must not stack handlers
    if logger.hasHandlers():
        return logger

    formatter = logging.Formatter(_FORMAT)

    Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


logger = setup_logger()
