"""Logging for the insight pipeline.

Every module logs through ``get_logger("spending_insights.<module>")``. Events
are single ``<module>:<event>`` lines with ``key=value`` fields, for example
``generation:flow_failed flow=budget-recommendations error=QuotaExceeded`` or
``caching:hit reason=recent``. Fields name the flow, latency and error class;
user ids, account ids and transaction text are never logged.

Nothing is printed until the CLI (or a host application) calls
:func:`configure_logging`; ``--log-level`` or ``SPENDING_INSIGHTS_LOG_LEVEL``
picks the threshold.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "spending_insights"
_CONFIGURED = False


def _level_from_name(value: str) -> int | None:
    # Accept numeric strings or standard level names (INFO/DEBUG/etc.).
    value = value.strip().upper()
    if value.isdigit():
        return int(value)
    numeric = getattr(logging, value, None)
    return numeric if isinstance(numeric, int) else None


def _parse_level(level: int | str | None) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        parsed = _level_from_name(level)
        if parsed is not None:
            return parsed
    # Env override when ``level`` is missing or unrecognized
    env_val = os.getenv("SPENDING_INSIGHTS_LOG_LEVEL")
    if env_val:
        parsed = _level_from_name(env_val)
        if parsed is not None:
            return parsed
    return logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] = sys.stderr,
) -> None:
    """Send ``spending_insights.*`` records to ``stream``; later calls are no-ops.

    ``level`` may be an int or a level name. An unrecognized or missing level
    falls back to ``SPENDING_INSIGHTS_LOG_LEVEL``, then ``INFO``. Records do not
    propagate to the root logger.
    """

    global _CONFIGURED
    if _CONFIGURED:
        return

    logger = logging.getLogger(_PKG_LOGGER_NAME)

    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    resolved = _parse_level(level)
    handler = logging.StreamHandler(stream)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt or "%(asctime)s %(name)s %(levelname)s %(message)s"))

    logger.setLevel(resolved)
    logger.addHandler(handler)
    logger.propagate = False

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    """Return the named logger; output stays silent until configured."""

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)
