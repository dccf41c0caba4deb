"""Logging configuration helpers for hosts embedding minimagick.

The library itself never configures logging on import; every module logs
through ``logging.getLogger(__name__)`` and the host decides where it goes.
"""

import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler
from datetime import datetime
from typing import Optional


def setup_logging(
    log_level: Optional[str] = None,
    log_to_file: bool = False,
    log_dir: str = "logs",
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5
) -> logging.Logger:
    """Setup logging for the minimagick logger hierarchy.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            Defaults to MINIMAGICK_LOG_LEVEL.
        log_to_file: Whether to log to a rotating file
        log_dir: Directory for log files
        max_bytes: Maximum size of each log file before rotation
        backup_count: Number of backup log files to keep

    Returns:
        The configured ``minimagick`` logger
    """
    if log_level is None:
        from minimagick.config import settings
        log_level = settings.MINIMAGICK_LOG_LEVEL

    # Convert log level string to constant
    numeric_level = getattr(logging, log_level.upper(), logging.WARNING)

    log_format = (
        '%(asctime)s - %(name)s - %(levelname)s - '
        '[%(filename)s:%(lineno)d] - %(message)s'
    )
    date_format = '%Y-%m-%d %H:%M:%S'
    formatter = logging.Formatter(log_format, date_format)

    package_logger = logging.getLogger("minimagick")
    package_logger.setLevel(numeric_level)

    # Remove existing handlers to avoid duplicates
    package_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    package_logger.addHandler(console_handler)

    if log_to_file:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        log_file = log_path / f"minimagick_{datetime.now().strftime('%Y%m%d')}.log"
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count
        )
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)

    package_logger.propagate = False
    package_logger.info(f"Logging configured: level={log_level}, file_logging={log_to_file}")
    return package_logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
