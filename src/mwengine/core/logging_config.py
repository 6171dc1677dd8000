"""Structured logging configuration using structlog.

Call ``configure_logging()`` once at application startup.  Library modules
use the stdlib logging API; their records are routed through structlog's
``ProcessorFormatter`` so every line is rendered the same way::

    import logging
    logger = logging.getLogger(__name__)
    logger.warning("maxlag: waiting %.1fs before retrying", pause)

A ``session_id`` context variable is set by :class:`mwengine.client.orchestrator.ApiClient`
around each request so the log lines of several bot instances running in
one event loop can be told apart.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from typing import IO

import structlog
from structlog.types import EventDict, WrappedLogger

from mwengine.config.settings import get_settings

# ---------------------------------------------------------------------------
# Context variable: set by the API client, read by the log processor
# ---------------------------------------------------------------------------

session_id_var: ContextVar[str | None] = ContextVar("session_id", default=None)
"""Identifier of the engine instance on whose behalf code is running."""


# ---------------------------------------------------------------------------
# Custom processors
# ---------------------------------------------------------------------------


_SECRET_SUBSTRINGS: frozenset[str] = frozenset({
    "password",
    "lgpassword",
    "secret",
    "token",
    "cookie",
    "authorization",
    "credential",
})
"""Lower-cased substrings that identify log event-dict keys whose values
must be redacted before the record reaches any renderer."""


def _redact_secrets(
    logger: WrappedLogger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: EventDict,
) -> EventDict:
    """Replace values of secret-bearing keys with a redaction marker.

    Scans top-level keys and nested ``dict`` values one level deep (e.g. a
    ``form={...}`` field holding request parameters).
    """
    redacted = "[REDACTED]"
    for key in list(event_dict.keys()):
        key_lower = key.lower()
        if any(secret in key_lower for secret in _SECRET_SUBSTRINGS):
            event_dict[key] = redacted
            continue
        val = event_dict[key]
        if isinstance(val, dict):
            event_dict[key] = {
                nested_key: (
                    redacted
                    if any(secret in str(nested_key).lower() for secret in _SECRET_SUBSTRINGS)
                    else nested_val
                )
                for nested_key, nested_val in val.items()
            }
    return event_dict


def _inject_session_id(
    logger: WrappedLogger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: EventDict,
) -> EventDict:
    """Add the current ``session_id`` to the event dict if one is set."""
    sid = session_id_var.get()
    if sid is not None and "session_id" not in event_dict:
        event_dict["session_id"] = sid
    return event_dict


# ---------------------------------------------------------------------------
# Public configuration entry-point
# ---------------------------------------------------------------------------

_QUIET_LIBRARIES: tuple[str, ...] = ("httpx", "httpcore")


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        _inject_session_id,
        _redact_secrets,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def configure_logging(log_level: str | None = None, stream: IO[str] | None = None) -> None:
    """Route mwengine (and all other stdlib) log records through structlog.

    Each record is rendered as one JSON object per line with ``timestamp``,
    ``level``, ``logger``, ``event`` and, inside a request, ``session_id``.
    At ``DEBUG`` the coloured console renderer is used instead and the
    per-request httpx lines are kept.

    Calling it again replaces the previous handler.

    Args:
        log_level: ``"DEBUG"`` ... ``"CRITICAL"`` (case-insensitive).
            Defaults to ``EngineSettings.log_level``.
        stream: Output stream; defaults to ``sys.stdout``.
    """
    level_name = (log_level or get_settings().log_level).upper()
    debug = level_name == "DEBUG"
    shared = _shared_processors()

    renderer: structlog.types.Processor = (
        structlog.dev.ConsoleRenderer(colors=True) if debug else structlog.processors.JSONRenderer()
    )
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level_name, logging.INFO))

    for name in _QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(logging.DEBUG if debug else logging.WARNING)

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
