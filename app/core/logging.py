"""Logging setup for the service"""
import logging
import sys
from typing import Optional

from app.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure the root logger with a single stream handler.

    Args:
        level: Log level name. Falls back to LOG_LEVEL, then DEBUG/INFO depending on DEBUG.
    """
    level_name = level or settings.LOG_LEVEL or ("DEBUG" if settings.DEBUG else "INFO")

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(level_name.upper())

    # httpx logs every request at INFO, including the download URLs
    logging.getLogger("httpx").setLevel(logging.WARNING)
