"""
Logging configuration using loguru.
"""
import sys
from pathlib import Path
from typing import Optional
from loguru import logger
from monika_history.config import Settings, settings as default_settings
from monika_history.middleware.correlation import correlation_id_filter


def setup_logger(settings: Optional[Settings] = None):
    """Configure loguru logger with correlation ID support."""
    settings = settings or default_settings

    # Remove default handler
    logger.remove()

    # Console handler with correlation ID
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <dim>{extra[correlation_id]}</dim> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level="DEBUG" if settings.debug else settings.log_level.upper(),
        colorize=True,
        filter=correlation_id_filter,
    )

    # Optional file handler for log capture
    if settings.log_file:
        log_path = Path(settings.log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_path,
            rotation="10 MB",
            retention="7 days",
            level=settings.log_level.upper(),
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[correlation_id]} | {name}:{function}:{line} - {message}",
            filter=correlation_id_filter,
        )

    logger.info("Logger initialized with correlation ID support")
