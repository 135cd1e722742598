"""Logging configuration."""

import logging
import os
import sys
from typing import Annotated, Literal

from pydantic import BaseModel, BeforeValidator

LogLevel = Annotated[
    Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
    BeforeValidator(lambda value: value.strip().upper() if isinstance(value, str) else value),
]


class LogConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = "WARNING"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"


def setup_logging(config: LogConfig | None = None) -> None:
    """Set up logging configuration for the application.

    Logs go to stderr so they never interleave with the REPL's replies on stdout.
    """
    if config is None:
        config = LogConfig()

    logging.basicConfig(
        level=config.level,
        format=config.format,
        datefmt=config.date_format,
        stream=sys.stderr,
        force=True,
    )

    for name in ("anthropic", "httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str, level: str | None = None) -> logging.Logger:
    """Get a logger for a specific module.

    Args:
        name: Module name (typically __name__)
        level: Explicit level, otherwise LOG_LEVEL from the environment.
            With neither, the logger follows the root level set by setup_logging.
            Unknown level names are ignored here; load_settings reports them.

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    log_level = (level or os.getenv("LOG_LEVEL") or "").strip().upper()
    if log_level in logging.getLevelNamesMapping():
        logger.setLevel(log_level)

    return logger
