"""Structured logging helpers built on *structlog*.

The rest of the codebase can ``from pillcount.utils.log import log`` and use
``log.info("event-name", key=value)`` for state transitions that benefit from
key/value output (task lifecycle, retries).  Plain module loggers
(``logging.getLogger(__name__)``) remain the default for everything else.
"""

from __future__ import annotations

import logging
from typing import Any

import structlog


def configure_logging(level: str = "INFO", *, json: bool = False) -> None:
    """Configure both stdlib logging and structlog with the same level."""

    level_value = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=level_value, format="%(levelname)s - %(name)s - %(message)s")

    renderer = structlog.processors.JSONRenderer() if json else structlog.dev.ConsoleRenderer(colors=False)
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level_value),
        cache_logger_on_first_use=False,
    )


# Attach a default processor chain only if the application has not configured
# structlog already (e.g. when imported from tests or the CLI).
if not structlog.is_configured():
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.dev.ConsoleRenderer(colors=False),
        ]
    )

# Keep the logger global so every import shares the same base instance.
log = structlog.get_logger("pillcount")


def get_logger(**bindings: Any):  # noqa: D401 – factory helper
    """Return a bound logger with optional key/value bindings."""

    return log.bind(**bindings)


__all__ = ["configure_logging", "get_logger", "log"]
