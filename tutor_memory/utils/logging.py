# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Structured logging configuration using structlog.

Modules log through the standard library (``logging.getLogger(__name__)``
with %-style arguments). Those records are routed through structlog's
ProcessorFormatter, so they share one pipeline: request context bound with
bind_context(), ISO timestamps, and a JSON renderer in production or a
console renderer in development.

Example:
    >>> import logging
    >>> from tutor_memory.utils.logging import bind_context, setup_logging
    >>> from tutor_memory.core.config import get_settings
    >>> setup_logging(get_settings())
    >>> bind_context(user_id="brandon")
    >>> logging.getLogger(__name__).info("Saved %d memories", 3)
"""

import logging
import sys
from typing import TYPE_CHECKING

import structlog
from structlog.types import Processor

if TYPE_CHECKING:
    from tutor_memory.core.config.settings import Settings

# Chatty third-party loggers kept at WARNING
NOISY_LOGGERS = (
    "uvicorn.access",
    "httpx",
    "httpcore",
    "sqlalchemy.engine",
    "asyncio",
    "LiteLLM",
    "litellm",
    "qdrant_client",
)


def _renderer(settings: "Settings") -> list[Processor]:
    """Final processors: console for development, JSON otherwise."""
    if settings.is_development or settings.debug:
        return [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]
    return [
        structlog.processors.dict_tracebacks,
        structlog.processors.JSONRenderer(),
    ]


def setup_logging(settings: "Settings") -> None:
    """Route stdlib and structlog logging through one structlog pipeline.

    Safe to call more than once; the root handler is replaced each time.

    Args:
        settings: Application settings containing log_level and debug flag.
    """
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    # Applied to records from both structlog and the stdlib
    pre_chain: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.ExtraAdder(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    structlog.configure(
        processors=[
            *pre_chain,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *_renderer(settings),
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(log_level)

    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def bind_context(**kwargs: object) -> None:
    """Attach key-value pairs to every log record of the current context.

    Example:
        >>> bind_context(cross_app_path="/api/v1/memories/retrieve")
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Drop all bound context variables."""
    structlog.contextvars.clear_contextvars()
