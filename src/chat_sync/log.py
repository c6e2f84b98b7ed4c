"""Logging configuration for the chat-sync CLI.

Every module logs through ``logging.getLogger(__name__)``; this module only
installs the root handler.  Lines look like::

    2026-01-31T09:15:02 | INFO     | chat_sync.monitor | Reply complete ...
"""

from __future__ import annotations

import logging
import sys

_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

# httpx logs one INFO line per request, i.e. one per published batch.
_NOISY_LOGGERS = ("httpx", "httpcore")

_HANDLER_ATTR = "_chat_sync_log_handler"


def setup_logging(level: str = "INFO") -> None:
    """Install the chat-sync stderr handler on the root logger.

    Repeated calls reuse the installed handler and only change its level.
    Handlers installed by anyone else are left alone.  HTTP client request
    logs are shown only at ``DEBUG``.

    Args:
        level: Logging level name, case-insensitive.

    Raises:
        ValueError: If *level* is not a logging level name.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level!r}")

    root = logging.getLogger()
    root.setLevel(numeric_level)

    library_level = logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    for handler in root.handlers:
        if getattr(handler, _HANDLER_ATTR, False):
            handler.setLevel(numeric_level)
            return

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT))
    setattr(handler, _HANDLER_ATTR, True)
    root.addHandler(handler)
