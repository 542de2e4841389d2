"""Logger configuration for the study tracker."""

import os
import sys

from loguru import logger


def setup_logger(level: str | None = None) -> None:
    """Replace loguru's default handler with a formatted stderr sink.

    Args:
        level: Logging level name. Falls back to LOG_LEVEL, then INFO.
    """
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=(level or os.getenv("LOG_LEVEL", "INFO")).upper(),
        colorize=True,
    )
