"""
Logging setup for applications embedding the metrics client.
"""
import logging
from typing import Optional

from . import config


def setup_logging(log_level: Optional[str] = None) -> None:
    """
    Setup logging with the specified log level.

    Args:
        log_level (str, optional): Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            Defaults to config.LOG_LEVEL.

    Raises:
        ValueError: If the log level is unknown
    """
    log_level = log_level or config.LOG_LEVEL
    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {log_level}")

    logging.basicConfig(
        level=numeric_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
