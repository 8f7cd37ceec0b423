"""Structured logging for the bill payment run.

Log lines go to stderr. Stdout belongs to the operator prompts, so a
console run shows questions and progress events without them interleaving
on the same stream.
"""

import logging
import sys
from typing import Literal

import structlog

from intacct_billpay.config.settings import get_settings


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = None,
    format: Literal["json", "console"] | None = None,
) -> None:
    """Configure structlog on top of the standard library logger.

    Args:
        level: Overrides LOG_LEVEL (the ``--log-level`` CLI option).
        format: Overrides LOG_FORMAT. ``json`` suits unattended runs whose
            output is collected; ``console`` is for an operator at the terminal.
    """
    settings = get_settings()
    log_level = level or settings.log_level
    log_format = format or settings.log_format

    # stderr keeps stdout free for prompts
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level),
    )

    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=True,
            exception_formatter=structlog.dev.plain_traceback,
        )

    # Bound context (component, invoice, mode) is merged into every event
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Logger for a bill payment module.

    Args:
        name: Module name, usually ``__name__``.

    Returns:
        A structlog logger; call ``.bind()`` to attach invoice context.
    """
    return structlog.get_logger(name)
