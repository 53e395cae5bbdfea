"""
Loguru configuration shared by the API and the extraction pipeline.

Call setup_logging() once at startup; every other module simply does
`from loguru import logger` and passes context as keyword arguments.
"""

import sys
from loguru import logger
from .config import settings


def setup_logging(level: str | None = None, serialize: bool | None = None):
    """
    Replace loguru's default sink with one configured from settings.

    Args:
        level: Minimum level (defaults to LOG_LEVEL)
        serialize: Emit JSON lines instead of text (defaults to LOG_JSON)

    Returns:
        The configured loguru logger
    """
    level = (level or settings.log_level).upper()
    serialize = settings.log_json if serialize is None else serialize

    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        serialize=serialize,
        backtrace=False,
        diagnose=settings.app_env == "dev",
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan> - "
            "<level>{message}</level> | {extra}"
        ),
    )
    logger.debug("Logging configured", level=level, serialize=serialize)
    return logger
