"""Logging utilities using structlog."""
from __future__ import annotations

import logging

import structlog

from .settings import get_settings


def setup_logging(level: int | str | None = None) -> None:
    settings = get_settings()
    resolved = level if level is not None else settings.log_level
    if isinstance(resolved, str):
        resolved = logging.getLevelName(resolved.upper())
        if not isinstance(resolved, int):
            resolved = logging.INFO

    renderer = (
        structlog.dev.ConsoleRenderer()
        if settings.environment == "development"
        else structlog.processors.JSONRenderer()
    )
    logging.basicConfig(level=resolved, format="%(message)s")
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.dict_tracebacks,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(resolved),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    return structlog.get_logger(name)


def bind_actor(actor_id: object) -> None:
    """Attach the acting user to every log line emitted during the request."""
    structlog.contextvars.bind_contextvars(actor_id=str(actor_id))


__all__ = ["setup_logging", "get_logger", "bind_actor"]
