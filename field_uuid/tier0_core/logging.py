"""
field_uuid.tier0_core.logging
──────────────────────────────
Structured logs with levels, automatic context injection (request_id),
redaction, and stdout sink.

Minimal stack: structlog (stdout JSON or console)
Configure via: configure_logging(config) at startup, or
               FIELD_UUID_LOG_LEVEL / FIELD_UUID_LOG_FORMAT before first use
"""
from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog


# ── Configuration ─────────────────────────────────────────────────────────────

_LEVEL_NAMES = {"warn": "WARNING"}
_handler: logging.Handler | None = None


def _configure_structlog(log_level: str, log_format: str) -> None:
    global _handler
    level = getattr(logging, _LEVEL_NAMES.get(log_level.lower(), log_level.upper()), logging.INFO)

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        _redact_processor,
    ]

    if log_format.lower() == "console":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    root_logger = logging.getLogger()
    if _handler is not None:
        root_logger.removeHandler(_handler)
    _handler = logging.StreamHandler(sys.stdout)
    _handler.setFormatter(formatter)
    root_logger.addHandler(_handler)
    root_logger.setLevel(level)


# ── Redaction processor ───────────────────────────────────────────────────────

_REDACT_KEYS = frozenset({
    "password", "secret", "token", "admin_token", "authorization",
    "credential", "database_url",
})

_REDACTED = "[REDACTED]"


def _redact_processor(
    logger: Any, method: str, event_dict: dict
) -> dict:
    """Strip sensitive fields from log records before output."""
    for key in list(event_dict.keys()):
        if key.lower() in _REDACT_KEYS:
            event_dict[key] = _REDACTED
    return event_dict


# ── Public API ────────────────────────────────────────────────────────────────

_configured = False


def configure_logging(config: Any) -> None:
    """
    Apply the level and format from a FieldUuidConfig. Safe to call again;
    the previous stdout handler is replaced.
    """
    global _configured
    _configure_structlog(config.log_level, config.log_format)
    _configured = True


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """
    Return a structured logger bound to the given name.

    Usage:
        log = get_logger(__name__)
        log.info("uuid.generated", record_type="article", field="uid")
        log.warning("uuid.collision", record_type="article", attempt=2)
    """
    global _configured
    if not _configured:
        _configure_structlog(
            os.getenv("FIELD_UUID_LOG_LEVEL", "info"),
            os.getenv("FIELD_UUID_LOG_FORMAT", "json"),
        )
        _configured = True
    return structlog.get_logger(name or __name__)


def bind_context(**kwargs: Any) -> None:
    """
    Bind key-value pairs to the current async context.
    All subsequent log calls in this context will include these fields.
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all context-bound log fields. Call at end of request."""
    structlog.contextvars.clear_contextvars()
