"""Logging setup for bootstab runs."""

import logging
import os
from typing import Optional

from pythonjsonlogger.json import JsonFormatter

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: int = logging.INFO, force_format: Optional[str] = None) -> None:
    """
    Send bootstab's progress and iteration warnings to stderr.

    Parameters
    ----------
    level : int, default=logging.INFO
        Level of the ``bootstab`` logger.
    force_format : {'plain', 'json'}, optional
        Output format. Falls back to the ``BOOTSTAB_LOG_FORMAT`` environment
        variable, then to 'plain'. JSON output suits batch jobs whose logs
        are collected.
    """
    format_mode = (force_format or os.getenv("BOOTSTAB_LOG_FORMAT", "plain")).lower()

    if format_mode == "json":
        formatter = JsonFormatter(LOG_FORMAT)
    elif format_mode == "plain":
        formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    else:
        raise ValueError(f"Log format must be 'json' or 'plain', got '{format_mode}'")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    logger = logging.getLogger("bootstab")
    logger.setLevel(level)
    logger.handlers = [handler]
