"""Structured logging configuration for SciBLIND.

Two renderers are available:
- JSON renderer for services embedding the core (machine-readable)
- Console renderer for the simulation CLI (human-readable)

Call ``configure_logging`` once at startup; library modules only ever ask
for a logger via ``get_logger``. Hosts wrap the handling of one participant
request in ``session_context`` so every event logged inside it carries the
session id:

    with session_context(session.id, category_id="paintings"):
        orchestrator.next_match(...)
"""

import logging
from typing import Any

import structlog
from structlog._config import BoundLoggerLazyProxy
from structlog.contextvars import bound_contextvars, merge_contextvars
from structlog.processors import (
    JSONRenderer,
    StackInfoRenderer,
    TimeStamper,
    add_log_level,
    format_exc_info,
)


def configure_logging(cli_mode: bool = False, log_level: str = "INFO") -> None:
    """Configure structlog with the renderer matching the host.

    Args:
        cli_mode: If True, use the colored console renderer.
                  If False, emit one JSON object per event.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    processors = [
        merge_contextvars,
        add_log_level,
        TimeStamper(fmt="iso"),
        StackInfoRenderer(),
        format_exc_info,
    ]

    if cli_mode:
        from structlog.dev import ConsoleRenderer
        renderer = ConsoleRenderer(colors=True)
    else:
        renderer = JSONRenderer()

    processors.append(renderer)

    level = getattr(logging, log_level.upper(), logging.INFO)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Get a logger whose events carry ``logger=name`` (typically ``__name__``).

    The logger stays lazy, so module-level loggers pick up whatever
    ``configure_logging`` sets later.
    """
    if name:
        return BoundLoggerLazyProxy(None, initial_values={"logger": name}, logger_factory_args=())
    return structlog.get_logger()


def session_context(session_id: str, **fields: Any):
    """Bind ``session_id`` and extra fields (``category_id``, ``study_id``) to every event in the block.

    Nested contexts add to the outer one; leaving a block restores it.
    """
    return bound_contextvars(session_id=session_id, **fields)
