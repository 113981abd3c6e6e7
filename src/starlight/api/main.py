"""FastAPI application factory and entry point.

Creates the application instance, wires the persistence layer into
``app.state.services``, registers middleware and exception handlers, and
mounts the route routers.

Usage::

    # Development server (from project root)
    uvicorn starlight.api.main:app --reload
"""

from __future__ import annotations

import time
import uuid
from typing import Callable

import structlog
from fastapi import FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from starlight.api.dependencies import build_services
from starlight.config.settings import Settings, get_settings
from starlight.core.backends import KeyValueBackend
from starlight.core.exceptions import (
    AdminRequiredError,
    BlockedError,
    DuplicateRecordError,
    InsufficientCreditError,
    NotAuthenticatedError,
    NotFoundError,
    PartialCascadeFailure,
    PremiumRequiredError,
    StarlightError,
    StorageError,
    TemporarilyBlockedError,
)
from starlight.core.logging_config import configure_logging, request_id_var

configure_logging("INFO")

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Exception → HTTP status mapping
# ---------------------------------------------------------------------------

_STATUS_FOR: list[tuple[type[StarlightError], int]] = [
    (BlockedError, status.HTTP_403_FORBIDDEN),
    (InsufficientCreditError, status.HTTP_402_PAYMENT_REQUIRED),
    (PremiumRequiredError, status.HTTP_402_PAYMENT_REQUIRED),
    (NotAuthenticatedError, status.HTTP_401_UNAUTHORIZED),
    (AdminRequiredError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (DuplicateRecordError, status.HTTP_409_CONFLICT),
    (PartialCascadeFailure, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (StorageError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def _status_for(exc: StarlightError) -> int:
    for exc_type, code in _STATUS_FOR:
        if isinstance(exc, exc_type):
            return code
    return status.HTTP_400_BAD_REQUEST


async def _starlight_error_handler(request: Request, exc: StarlightError) -> JSONResponse:
    code = _status_for(exc)
    body: dict[str, object] = {"detail": str(exc), "error": type(exc).__name__}
    if isinstance(exc, TemporarilyBlockedError):
        body["until"] = exc.until.isoformat()
    if isinstance(exc, PartialCascadeFailure):
        body["failures"] = [{"step": f.step, "error": f.error} for f in exc.failures]
        body["primaryDeleted"] = exc.primary_deleted
    log_fn = logger.error if code >= 500 else logger.info
    log_fn("request_failed", error=type(exc).__name__, detail=str(exc), status_code=code)
    return JSONResponse(body, status_code=code)


async def _value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse({"detail": str(exc), "error": "ValueError"}, status_code=400)


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(
    settings: Settings | None = None,
    backend: KeyValueBackend | None = None,
) -> FastAPI:
    """Build and configure the FastAPI application.

    Args:
        settings: Explicit settings; ``get_settings()`` when omitted.
        backend: Explicit key-value backend (tests pass an in-memory one).

    Returns:
        A fully configured ``FastAPI`` instance.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    application = FastAPI(
        title=settings.app_name,
        description="Local persistence and consistency layer for the Starlight video platform.",
        version="0.1.0",
        debug=settings.debug,
        redirect_slashes=False,
    )
    application.state.settings = settings
    application.state.services = build_services(settings, backend)

    # ---- Middleware --------------------------------------------------------

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @application.middleware("http")
    async def request_logging_middleware(
        request: Request, call_next: Callable
    ) -> Response:
        """Log every request with its status and duration under a request id."""
        request_id = str(uuid.uuid4())
        request_id_var.set(request_id)
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        start = time.perf_counter()
        response = None
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error("unhandled_exception", exc_info=exc)
            raise
        finally:
            elapsed_ms = round((time.perf_counter() - start) * 1000, 2)
            status_code = getattr(response, "status_code", 500)
            log_fn = logger.warning if status_code >= 400 else logger.info
            log_fn("request_complete", status_code=status_code, elapsed_ms=elapsed_ms)

        response.headers["X-Request-ID"] = request_id
        return response

    # ---- Exception handlers -----------------------------------------------

    application.add_exception_handler(StarlightError, _starlight_error_handler)
    application.add_exception_handler(ValueError, _value_error_handler)

    # ---- Routers -----------------------------------------------------------

    from starlight.api.routes import (  # noqa: PLC0415
        campaigns,
        communities,
        content,
        health as health_routes,
        identities,
        ledger,
        moderation,
    )

    application.include_router(health_routes.router)
    application.include_router(identities.router, prefix="/identities", tags=["identities"])
    application.include_router(content.router, prefix="/content", tags=["content"])
    application.include_router(communities.router, prefix="/communities", tags=["communities"])
    application.include_router(campaigns.router, prefix="/campaigns", tags=["campaigns"])
    application.include_router(moderation.router, prefix="/moderation", tags=["moderation"])
    application.include_router(ledger.router, prefix="/ledger", tags=["ledger"])

    # ---- Lifecycle events -------------------------------------------------

    @application.on_event("startup")
    async def on_startup() -> None:
        logger.info(
            "application_startup",
            app_name=settings.app_name,
            storage_url=settings.storage_url.split("://", 1)[0],
            log_level=settings.log_level,
        )

    @application.on_event("shutdown")
    async def on_shutdown() -> None:
        """Release backend connections."""
        backend_ = application.state.services.backend
        for closer in ("dispose", "close"):
            if hasattr(backend_, closer):
                getattr(backend_, closer)()
        logger.info("application_shutdown")

    return application


app = create_app()
"""The ASGI callable passed to Uvicorn."""
