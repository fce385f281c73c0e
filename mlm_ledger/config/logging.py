"""
Logging configuration.

Sets up loguru sinks for services, jobs and scripts.
"""

import sys

from loguru import logger

from mlm_ledger.config.settings import settings


def setup_logging(level: str | None = None, log_file: str | None = None) -> None:
    """
    Configure loguru sinks.

    Args:
        level: Minimum level (defaults to settings.log_level)
        log_file: File sink path, rotated daily (defaults to settings.log_file)
    """
    level = level or settings.log_level
    log_file = log_file if log_file is not None else settings.log_file

    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan> - "
            "<level>{message}</level> | {extra}"
        ),
    )

    if log_file:
        logger.add(
            log_file,
            rotation="1 day",
            retention="7 days",
            level=level,
            encoding="utf-8",
            enqueue=True,
        )

    logger.info(
        "Logging configured",
        extra={"level": level, "log_file": log_file},
    )
