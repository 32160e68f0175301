"""structlog configuration for the blueprint service."""
from __future__ import annotations

import logging

import structlog

from ..config import get_settings


def configure_logging(level: str | None = None, log_format: str | None = None) -> None:
    """Configure structlog processors and the minimum log level."""
    settings = get_settings().observability
    effective_level = logging.getLevelName((level or settings.log_level).upper())
    if not isinstance(effective_level, int):
        effective_level = logging.INFO

    processors: list[structlog.typing.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if (log_format or settings.log_format) == "json":
        processors.append(structlog.processors.dict_tracebacks)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(effective_level),
        context_class=dict,
        cache_logger_on_first_use=False,
    )


__all__ = ["configure_logging"]
