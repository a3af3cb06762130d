"""Logging configuration."""

import logging
import sys

import structlog

from reward_service.settings import settings

# Event keys whose values are credentials and must never reach a log sink
REDACTED_KEYS = frozenset({"password", "refresh_token", "access_token", "token", "secret_key"})


def redact_secrets(logger, method_name, event_dict):
    """structlog processor masking credential values."""
    for key in REDACTED_KEYS.intersection(event_dict):
        event_dict[key] = "***"
    return event_dict


def configure_logging(log_level: str | None = None, log_format: str | None = None) -> None:
    """Configure structured logging.

    Args:
        log_level: Override for settings.log_level
        log_format: Override for settings.log_format ("json" or "console")
    """
    level = (log_level or settings.log_level).upper()
    shared = [
        structlog.contextvars.merge_contextvars,
        redact_secrets,
        structlog.processors.add_log_level,
    ]

    if (log_format or settings.log_format) == "json":
        processors = shared + [
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared + [
            structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
            structlog.dev.ConsoleRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    # sqlalchemy and uvicorn log through the standard library
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=getattr(logging, level))


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a logger instance."""
    return structlog.get_logger(name)
