"""
Structured logging configuration using structlog.

Production runs emit one JSON object per line; development runs get the
coloured console renderer. Webhook URLs carry their credentials in the
query string (``key`` and ``token``), so every event passes through
``redact_webhook_secrets`` before rendering.
"""

import logging
import re
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

# Query parameters of Google Chat webhook URLs that grant posting rights.
_SECRET_PARAM_RE = re.compile(r"([?&](?:key|token)=)[^&\s\"']+")

REDACTED = "REDACTED"

# httpx logs every request URL at INFO, credentials included.
_QUIET_LOGGERS = ("httpx", "httpcore", "asyncio")


def redact_webhook_secrets(
    logger: Any, method_name: str, event_dict: EventDict,
) -> EventDict:
    """Mask ``key=``/``token=`` values in any string field of the event."""
    for field, value in event_dict.items():
        if isinstance(value, str) and ("key=" in value or "token=" in value):
            event_dict[field] = _SECRET_PARAM_RE.sub(rf"\g<1>{REDACTED}", value)
    return event_dict


def setup_logging(log_level: str = "INFO", json_logs: bool = False) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        log_level: Minimum level name (DEBUG, INFO, WARNING, ERROR)
        json_logs: Render JSON instead of console output

    Usage:
        setup_logging(settings.app.log_level, json_logs=settings.app.is_production)
        logger = structlog.get_logger(__name__)
        logger.info("Dispatching alerts", room="ops", count=3)
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        redact_webhook_secrets,
    ]

    if json_logs:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

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
        level=getattr(logging, log_level.upper(), logging.INFO),
        force=True,
    )

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
