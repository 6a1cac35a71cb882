"""
Structured logging for the OTP service.

Sets up structlog with:
- JSON formatting for production, pretty console for development
- Redaction of codes, passwords and token-like fields
- Email masking so identities are not written in clear text in production

Usage:
    >>> from shared.logging import get_logger, mask_email
    >>> log = get_logger(__name__)
    >>> log.info("otp_issued", email=mask_email("a@x.com"))
"""

from __future__ import annotations

import hashlib
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

import structlog
from structlog.stdlib import BoundLogger
from structlog.types import EventDict, Processor

from config import LoggingSettings

_production = False

# Sensitive fields to redact from logs
REDACTED_FIELDS = {
    "otp",
    "code",
    "otp_code",
    "password",
    "password_hash",
    "token",
    "api_key",
    "authorization",
    "secret",
}


def get_logger(name: str) -> BoundLogger:
    """Return a structlog logger named after the calling module."""
    return structlog.get_logger(name)


def mask_email(email: Optional[str]) -> Optional[str]:
    """
    Mask an email address for logging.

    In production returns the first 16 hex chars of its SHA-256 digest, which
    still lets events for the same identity be correlated. In development the
    address is returned unchanged for easier debugging.
    """
    if email is None:
        return None
    if _production:
        return hashlib.sha256(email.lower().encode()).hexdigest()[:16]
    return email


def add_timestamp(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add ISO format timestamp to event dict."""
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def redact_sensitive_fields(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Redact sensitive fields from logs."""
    for key in list(event_dict.keys()):
        if key in ("level", "event", "timestamp", "logger"):
            continue
        lowered = key.lower()
        if lowered in REDACTED_FIELDS or any(
            sensitive in lowered for sensitive in ("password", "token", "secret")
        ):
            event_dict[key] = "***REDACTED***"
    return event_dict


def configure_structlog(log_format: str) -> None:
    """
    Configure structlog processors.

    json    : one JSON object per line, for log shipping
    console : coloured developer output
    """
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_timestamp,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        redact_sensitive_fields,
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=True,
            pad_event=15,
            sort_keys=False,
        )

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_stdlib_logging(log_level: str) -> None:
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def setup_logging(settings: LoggingSettings, *, production: bool = False) -> None:
    """
    Initialize logging for the application.

    Called once from create_app(), before any request is served.
    """
    global _production
    _production = production

    configure_stdlib_logging(settings.log_level)
    configure_structlog(settings.log_format)

    get_logger(__name__).info(
        "logging_initialized",
        log_level=settings.log_level,
        log_format=settings.log_format,
        production=production,
    )
