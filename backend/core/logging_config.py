"""Structured logging configuration using structlog.

Provides consistent, machine-parsable JSON logs in production
and human-readable colored output in development.
"""

import logging
import sys

import structlog
from app.config import get_settings


def setup_logging() -> None:
    """Configure structured logging for the entire application.

    In development: colored, human-readable console output
    In production: JSON-formatted logs for log aggregation
    """
    settings = get_settings()

    shared_processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.is_development or settings.LOG_FORMAT == "text":
        renderer = structlog.dev.ConsoleRenderer(colors=True)
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    for name, level in _quiet_loggers(settings.SQLALCHEMY_ECHO).items():
        logging.getLogger(name).setLevel(level)


def _quiet_loggers(sql_echo: bool) -> dict[str, int]:
    """Levels for chatty third-party loggers."""
    return {
        "uvicorn.access": logging.WARNING,
        "sqlalchemy.engine": logging.DEBUG if sql_echo else logging.WARNING,
        "aiosqlite": logging.WARNING,
        "httpx": logging.WARNING,
        "httpcore": logging.WARNING,
        "celery": logging.INFO,
    }
