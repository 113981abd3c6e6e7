"""Structured logging configuration using structlog.

Call ``configure_logging()`` once when the application root is built
(``starlight.api.main.create_app`` does this).  Modules log through either
API and both end up in the same renderer:

Stdlib usage::

    import logging
    logger = logging.getLogger(__name__)
    logger.warning("codec: dropped entry", extra={"slot": "reports"})

Structlog usage::

    import structlog
    logger = structlog.get_logger(__name__)
    logger.info("cascade_step", step="reports", removed=3)

A ``request_id`` context variable is set by the HTTP middleware and merged
into every record emitted while that request is being served.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar

import structlog
from structlog.types import EventDict, WrappedLogger

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
"""Per-request ID propagated from the HTTP middleware to log processors."""


# ---------------------------------------------------------------------------
# Custom processors
# ---------------------------------------------------------------------------


_REDACTED_KEYS: frozenset[str] = frozenset({
    "password",
    "secret",
    "token",
    "authorization",
    "mobile_number",
    "mobilenumber",
})
"""Lower-cased substrings of event-dict keys whose values must never reach
a renderer.  Mobile numbers come from profile details."""


def _redact_sensitive(
    logger: WrappedLogger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: EventDict,
) -> EventDict:
    """Replace values of sensitive keys with ``"[REDACTED]"``.

    Top-level keys and one level of nested dicts are scanned.
    """
    for key in list(event_dict.keys()):
        if any(s in key.lower() for s in _REDACTED_KEYS):
            event_dict[key] = "[REDACTED]"
            continue
        val = event_dict[key]
        if isinstance(val, dict):
            for nested_key in list(val.keys()):
                if any(s in str(nested_key).lower() for s in _REDACTED_KEYS):
                    val[nested_key] = "[REDACTED]"
    return event_dict


def _inject_request_id(
    logger: WrappedLogger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: EventDict,
) -> EventDict:
    """Add the current request ID to the event dict when one is set."""
    rid = request_id_var.get()
    if rid is not None and "request_id" not in event_dict:
        event_dict["request_id"] = rid
    return event_dict


# ---------------------------------------------------------------------------
# Public configuration entry-point
# ---------------------------------------------------------------------------


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structlog and the stdlib root logger.

    Non-DEBUG levels render newline-delimited JSON; ``"DEBUG"`` switches to
    structlog's coloured ``ConsoleRenderer``.  Every record carries
    ``timestamp``, ``level``, ``logger`` and ``event`` plus ``request_id``
    inside an HTTP request.

    Safe to call repeatedly (tests do): the root handlers are replaced, not
    appended to.

    Args:
        log_level: ``"DEBUG"``, ``"INFO"``, ``"WARNING"``, ``"ERROR"`` or
            ``"CRITICAL"``.  Case-insensitive.
    """
    level_upper = log_level.upper()
    numeric_level = getattr(logging, level_upper, logging.INFO)
    is_development = level_upper == "DEBUG"

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.ExtraAdder(),
        _inject_request_id,
        _redact_sensitive,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if is_development:
        final_renderer: structlog.types.Processor = structlog.dev.ConsoleRenderer(
            colors=True,
        )
    else:
        final_renderer = structlog.processors.JSONRenderer()

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            final_renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(numeric_level)

    if not is_development:
        for noisy_logger in ("uvicorn.access", "sqlalchemy.engine", "httpx"):
            logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    structlog.configure(
        processors=shared_processors
        + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
