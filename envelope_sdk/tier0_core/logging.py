"""
envelope_sdk.tier0_core.logging
────────────────────────────────
Structured logs with levels, contextvars injection (request_id), redaction of
sensitive keys, and truncation of oversized values such as raw response
bodies that failed to decode.

Minimal stack: structlog (stdout JSON or console)
Configure via: PLATFORM_LOG_LEVEL, PLATFORM_LOG_FORMAT=json|console,
               PLATFORM_LOG_MAX_FIELD_LENGTH
"""
from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

from envelope_sdk.tier0_core.config import get_config


# ── Configuration ─────────────────────────────────────────────────────────────

def _configure_structlog() -> None:
    config = get_config()
    log_level = getattr(logging, config.log_level.upper(), logging.INFO)

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _redact_processor,
        _truncate_processor,
    ]

    if config.log_format == "console":
        renderer: Any = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer(default=str)

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)


# ── Processors ────────────────────────────────────────────────────────────────

_REDACT_KEYS = frozenset({
    "password", "passwd", "secret", "token", "api_key", "apikey",
    "authorization", "auth", "credential", "private_key", "access_token",
    "refresh_token", "client_secret", "cookie",
})

_REDACTED = "[REDACTED]"


def _redact_processor(
    logger: Any, method: str, event_dict: dict
) -> dict:
    """Strip sensitive fields from log records before output."""
    for key in list(event_dict.keys()):
        if key.lower() in _REDACT_KEYS:
            event_dict[key] = _REDACTED
        elif isinstance(event_dict[key], dict):
            event_dict[key] = {
                k: _REDACTED if str(k).lower() in _REDACT_KEYS else v
                for k, v in event_dict[key].items()
            }
    return event_dict


def _truncate_processor(
    logger: Any, method: str, event_dict: dict
) -> dict:
    """Cap long string values; undecodable bodies can be arbitrarily large."""
    limit = get_config().log_max_field_length
    for key, value in event_dict.items():
        if key != "event" and isinstance(value, str) and len(value) > limit:
            event_dict[key] = f"{value[:limit]}...[{len(value) - limit} more chars]"
    return event_dict


# ── Public API ────────────────────────────────────────────────────────────────

_configured = False


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """
    Return a structured logger bound to the given name.

    Usage:
        log = get_logger(__name__)
        log.warning("envelope.decode.unparseable_body", status_code=502, body=text)
    """
    global _configured
    if not _configured:
        _configure_structlog()
        _configured = True
    return structlog.get_logger(name or __name__)


def bind_context(**kwargs: Any) -> None:
    """
    Bind key-value pairs to the current async/thread context.
    All subsequent log calls in this context will include these fields.
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all context-bound log fields. Call at end of request."""
    structlog.contextvars.clear_contextvars()


__all__ = ["get_logger", "bind_context", "clear_context"]
