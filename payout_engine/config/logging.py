"""
Logging configuration.

Configures the loguru logger with a stderr sink and a rotating file sink.
"""

import sys

from loguru import logger

from payout_engine.config.settings import settings


def setup_logging(component: str = "payout_engine") -> None:
    """Configure logger with file rotation."""
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level)
    logger.add(
        settings.log_file,
        rotation="1 day",
        retention="7 days",
        level=settings.log_level,
        encoding="utf-8",
    )

    logger.info(f"Starting {component} ({settings.environment})...")
