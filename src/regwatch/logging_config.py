"""Centralized logging configuration for regwatch.

Sets up file and console logging for the registry client and the CLI.
"""

import logging
import logging.handlers
import os
from pathlib import Path
from typing import Optional

# Environment variables
DEBUG_MODE = os.getenv("REGWATCH_DEBUG", "0") == "1"
LOG_LEVEL = os.getenv("REGWATCH_LOG_LEVEL", "DEBUG" if DEBUG_MODE else "INFO")

# Log directory configuration
LOG_DIR = Path(os.getenv("REGWATCH_LOG_DIR", "logs"))

DETAILED_FORMAT = (
    "[%(asctime)s] [%(levelname)-8s] [%(name)s] [%(filename)s:%(lineno)d] %(message)s"
)
SIMPLE_FORMAT = "[%(asctime)s] [%(levelname)-8s] [%(name)s] %(message)s"

# Use detailed format in debug mode
LOG_FORMAT = DETAILED_FORMAT if DEBUG_MODE else SIMPLE_FORMAT


def _get_file_handler(log_file: Path, level: int) -> logging.FileHandler:
    """Create a rotating file handler for the given log file."""
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,  # 10 MB
        backupCount=5,
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


def _get_console_handler(level: int) -> logging.StreamHandler:
    """Create a console handler for streaming logs."""
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


def configure_regwatch_logging(
    log_level: Optional[str] = None,
    include_console: bool = True,
    log_dir: Optional[Path] = None,
) -> logging.Logger:
    """
    Configure the "regwatch" logger shared by every module in the package.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        include_console: Whether to also log to console
        log_dir: Directory for regwatch.log (default: REGWATCH_LOG_DIR or ./logs)

    Returns:
        Configured logger instance
    """
    if log_level is None:
        log_level = LOG_LEVEL

    level = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger("regwatch")
    logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    file_handler = _get_file_handler((log_dir or LOG_DIR) / "regwatch.log", level)
    logger.addHandler(file_handler)

    if include_console:
        logger.addHandler(_get_console_handler(level))

    return logger


def configure_module_logging(module_name: str) -> logging.Logger:
    """
    Get a child logger under the "regwatch" namespace.

    It inherits the handlers installed by configure_regwatch_logging.

    Args:
        module_name: Module name (e.g., "cli")
    """
    return logging.getLogger(f"regwatch.{module_name}")
