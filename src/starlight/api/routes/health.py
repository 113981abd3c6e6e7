"""Health check route handlers for the Starlight API.

``GET /health``
    Process liveness; performs no I/O.

``GET /health/storage``
    Round-trips a probe slot through the configured key-value backend.
    Always returns HTTP 200; the ``status`` field distinguishes ``"ok"``
    from ``"error"``.

These endpoints are diagnostic: they must never raise HTTP 5xx errors.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from starlight.api.dependencies import AppServices, Services
from starlight.core.event_bus import Topic

logger = logging.getLogger(__name__)

router = APIRouter(tags=["system"])

_PROBE_SLOT = "health-probe"


def _check_storage(services: AppServices) -> str:
    """Write, read back and delete a probe slot.

    Returns:
        ``"ok"`` if the round trip succeeds, ``"error"`` otherwise.
    """
    key = services.store.key_prefix + _PROBE_SLOT
    try:
        services.backend.set(key, "ok")
        value = services.backend.get(key)
        services.backend.delete(key)
    except Exception:
        logger.exception("Health check: storage backend unreachable")
        return "error"
    return "ok" if value == "ok" else "error"


@router.get("/health")
async def health() -> JSONResponse:
    return JSONResponse({"status": "ok"})


@router.get("/health/storage")
async def storage_health(services: Services) -> JSONResponse:
    return JSONResponse(
        {
            "status": _check_storage(services),
            "backend": type(services.backend).__name__,
            "subscribers": {topic.value: services.bus.subscriber_count(topic) for topic in Topic},
        }
    )
