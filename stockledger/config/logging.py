"""
Structured logging configuration using structlog.

Console output for development, one JSON object per line otherwise. Job
and request code binds company_id / job / request_id through contextvars,
so every event inside a drain tick or request carries them.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import Processor

from stockledger.config.settings import get_settings

_configured = False


def add_app_context(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Add application context to log events."""
    settings = get_settings()
    event_dict["app"] = settings.app_name
    event_dict["version"] = settings.app_version
    event_dict["environment"] = settings.environment
    event_dict["business_tz"] = settings.scheduler.timezone
    return event_dict


def _use_json(log_format: str, environment: str) -> bool:
    if log_format == "auto":
        return environment != "development"
    return log_format == "json"


def configure_logging(force: bool = False) -> None:
    """Configure structlog for the application. Repeat calls are no-ops."""
    global _configured
    if _configured and not force:
        return

    settings = get_settings()

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        add_app_context,
    ]

    if _use_json(settings.log_format, settings.environment):
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [structlog.dev.ConsoleRenderer(colors=True)]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level),
        force=force,
    )

    # aiosqlite logs every statement at DEBUG
    for noisy in ("aiosqlite", "httpx", "httpcore", "uvicorn.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    _configured = True


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
