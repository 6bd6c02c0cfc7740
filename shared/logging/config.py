"""Runtime logging configuration utilities."""

from __future__ import annotations

import logging
from typing import Mapping

from .structured import JsonFormatter

__all__ = ["setup_logging"]

# Third-party loggers that are chatty at INFO.
_QUIET_LOGGERS = ("discord.gateway", "discord.client", "gspread")


def _ensure_stream_handler(logger: logging.Logger, formatter: logging.Formatter) -> None:
    """Ensure ``logger`` has a stream handler using ``formatter``."""

    stream_handler_found = False
    for handler in logger.handlers:
        if isinstance(handler, logging.StreamHandler):
            handler.setFormatter(formatter)
            stream_handler_found = True
    if not stream_handler_found:
        handler = logging.StreamHandler()
        handler.setFormatter(formatter)
        logger.addHandler(handler)


def setup_logging(
    *,
    static_fields: Mapping[str, str] | None = None,
    level: str | int = logging.INFO,
) -> logging.Logger:
    """Configure JSON logging on the root logger and return the ``md`` logger.

    Parameters
    ----------
    static_fields:
        Static fields included with every structured log event (for example
        ``{"bot": ..., "env": ...}``).
    level:
        Root level as a name (``"DEBUG"``) or number. Unknown names fall back
        to ``INFO``.
    """

    if isinstance(level, str):
        resolved = logging.getLevelName(level.strip().upper() or "INFO")
        level = resolved if isinstance(resolved, int) else logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    _ensure_stream_handler(root_logger, JsonFormatter(static=dict(static_fields or {})))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    return logging.getLogger("md")
