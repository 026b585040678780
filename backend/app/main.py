from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import get_settings
from .errors import DomainError, InvalidMetric, NotFound, ValidationError
from .routes.admin_datasets import router as admin_datasets_router
from .routes.admin_stats import router as admin_stats_router
from .routes.admin_users import router as admin_users_router
from .routes.datasets import router as datasets_router
from .routes.metrics import router as metrics_router
from .routes.organization import router as organization_router
from .routes.responses import error_response
from .telemetry.metrics import observe_api_request
from .utils.db import ensure_db_connected


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    logging.basicConfig(level=settings.LOG_LEVEL)
    logging.getLogger().setLevel(settings.LOG_LEVEL)
    if settings.DB_CONNECT_ON_STARTUP:
        await ensure_db_connected()
    logger.info("app_started", extra={"env": settings.env, "service": settings.service})
    yield


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def _validation_error(request: Request, exc: ValidationError) -> Response:
        return error_response(exc.message, field=exc.field)

    @app.exception_handler(NotFound)
    async def _not_found(request: Request, exc: NotFound) -> Response:
        return error_response(str(exc), status_code=status.HTTP_404_NOT_FOUND)

    @app.exception_handler(InvalidMetric)
    async def _invalid_metric(request: Request, exc: InvalidMetric) -> Response:
        logger.error("invalid_metric_unhandled", extra={"metric": exc.metric})
        return error_response(
            "Usage data is unavailable",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    @app.exception_handler(DomainError)
    async def _domain_error(request: Request, exc: DomainError) -> Response:
        return error_response(str(exc))

    @app.exception_handler(RequestValidationError)
    async def _request_validation_error(request: Request, exc: RequestValidationError) -> Response:
        errors = exc.errors()
        first = errors[0] if errors else {}
        loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
        return error_response(
            first.get("msg", "Invalid request"),
            field=".".join(loc) or None,
        )

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> Response:
        return error_response(
            str(exc.detail),
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )


def create_app() -> FastAPI:
    """
    Application factory for the core FastAPI service.

    Wires the admin console, consumer and telemetry routers, the domain
    exception handlers and the request metrics middleware.
    """
    app = FastAPI(title="spectr-backend", lifespan=lifespan)

    @app.middleware("http")
    async def _record_request_metrics(request: Request, call_next) -> Response:
        start = time.perf_counter()
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            route = request.scope.get("route")
            observe_api_request(
                route=getattr(route, "path", "unmatched"),
                method=request.method,
                status_code=status_code,
                duration_seconds=time.perf_counter() - start,
            )

    _register_exception_handlers(app)

    app.include_router(admin_datasets_router)
    app.include_router(admin_users_router)
    app.include_router(admin_stats_router)
    app.include_router(datasets_router)
    app.include_router(organization_router)

    # Metrics endpoint (no prefix) – scraped directly by Prometheus.
    app.include_router(metrics_router)

    return app


app = create_app()
