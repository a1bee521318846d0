"""
Logging configuration for the alert runner and scripts.

Library modules only call `logging.getLogger(__name__)`; handlers are
installed here, once, by whoever owns the process.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(log_level: str = "INFO", log_file: Optional[Path] = None) -> logging.Logger:
    """
    Configure the root logger with a console handler and, optionally, a
    rotating file handler that always records DEBUG.

    Returns:
        Configured root logger
    """
    level = getattr(logging, log_level.upper(), None)
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level!r}")

    root_logger = logging.getLogger()
    root_logger.setLevel(level if log_file is None else min(level, logging.DEBUG))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root_logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(log_file, maxBytes=10 * 1024 * 1024, backupCount=5)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(pathname)s:%(lineno)d - %(message)s",
                datefmt=DATE_FORMAT,
            )
        )
        root_logger.addHandler(file_handler)

    # onnxruntime is chatty at INFO
    logging.getLogger("onnxruntime").setLevel(logging.WARNING)

    return root_logger
