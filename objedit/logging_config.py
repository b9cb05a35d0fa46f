"""Logging configuration for objedit.

Library modules only create loggers (``logging.getLogger(__name__)``); the
entry points (CLI, API server) call :func:`configure_logging` once.
"""

from __future__ import annotations

import logging
from typing import Optional

from objedit.config import settings

_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure the root logger.

    Args:
        level: Level name (``DEBUG``, ``INFO`` …).  Defaults to
            ``settings.log_level``.  Unknown names fall back to ``WARNING``.
    """
    name = (level or settings.log_level).upper()
    numeric = getattr(logging, name, None)
    if not isinstance(numeric, int):
        numeric = logging.WARNING
    logging.basicConfig(level=numeric, format=_FORMAT, force=True)
    logging.getLogger("httpx").setLevel(max(numeric, logging.WARNING))
