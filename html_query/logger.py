"""
Logging configuration for the HTML Query framework.

Library modules log through child loggers of "html_query"; nothing is
printed to stdout, which the command-line tool keeps for its JSON output.
"""

import logging
import sys
from typing import Optional, Union

ROOT_LOGGER = "html_query"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def resolve_level(level: Union[int, str]) -> int:
    """Turn "debug" / "WARNING" / 10 into a numeric logging level."""
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level {level!r}")
    return resolved


def setup_logger(
    name: str = ROOT_LOGGER,
    level: Union[int, str] = logging.INFO,
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    Set up and return a logger instance.

    Calling it again for the same name only changes the level, so the
    orchestrator can re-level logging per instance without stacking handlers.

    Args:
        name: Logger name
        level: Logging level as a number or a name (default: INFO)
        log_file: Optional file path for logging

    Returns:
        Configured logger instance
    """
    level = resolve_level(level)
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


# Default logger instance, created once at import time
logger = setup_logger()


def get_module_logger(module_name: str) -> logging.Logger:
    """
    Child logger for one module, e.g. get_module_logger("filters") is
    "html_query.filters".  It inherits the handlers and level set above.
    """
    return logging.getLogger(f"{ROOT_LOGGER}.{module_name}")
