"""FastAPI application with lifespan management."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ghl_gateway.api.middleware import RequestLoggingMiddleware, TenantMiddleware
from ghl_gateway.api.routes.tenants import router as tenants_router
from ghl_gateway.api.routes.tools import router as tools_router
from ghl_gateway.api.schemas import HealthResponse
from ghl_gateway.auth.rate_limiter import InMemoryRateLimiter
from ghl_gateway.clients.factory import ClientBuilder
from ghl_gateway.clients.ghl import GHLApiError
from ghl_gateway.config import Settings, StoreBackend, get_settings
from ghl_gateway.errors import (
    NoRequestContextError,
    TenantError,
    TenantErrorKind,
    ToolError,
)
from ghl_gateway.logging_config import configure_logging
from ghl_gateway.services import Gateway, create_gateway
from ghl_gateway.tenants.store import TenantStore

logger = structlog.get_logger()

CLEANUP_INTERVAL_SECONDS = 300


async def _cleanup_loop(limiter: InMemoryRateLimiter) -> None:
    """Periodic cleanup of expired rate limit windows."""
    while True:
        await asyncio.sleep(CLEANUP_INTERVAL_SECONDS)
        try:
            cleaned = await asyncio.to_thread(limiter.cleanup)
            if cleaned:
                logger.debug("rate_limiter_cleanup", keys_removed=cleaned)
        except Exception:
            logger.exception("rate_limiter_cleanup_error")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application startup and shutdown.

    Startup:
        - Configure logging.
        - Start the client cache TTL sweep and rate limiter cleanup.
    Shutdown:
        - Cancel both background tasks, drop cached clients.
        - Dispose the database engine when the SQL store is in use.
    """
    settings: Settings = app.state.settings
    gateway: Gateway = app.state.gateway
    configure_logging(
        environment=str(settings.environment),
        log_level=settings.log_level,
    )

    gateway.factory.start()
    cleanup_task = asyncio.create_task(_cleanup_loop(gateway.rate_limiter))

    logger.info(
        "app_started",
        environment=str(settings.environment),
        multi_tenant_mode=settings.multi_tenant_mode,
    )
    yield

    cleanup_task.cancel()
    gateway.factory.destroy()
    if settings.tenant_store_backend == StoreBackend.DATABASE:
        from ghl_gateway.storage.database import engine

        await engine.dispose()
    logger.info("app_stopped")


async def tenant_error_handler(request: Request, exc: TenantError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def tool_error_handler(request: Request, exc: ToolError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def no_context_handler(
    request: Request, exc: NoRequestContextError
) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"error": str(TenantErrorKind.TENANT_REQUIRED), "message": str(exc)},
    )


async def upstream_error_handler(request: Request, exc: GHLApiError) -> JSONResponse:
    """Upstream GHL failures surface as 502 with the upstream message."""
    logger.warning(
        "upstream_error",
        path=request.url.path,
        upstream_status=exc.status_code,
    )
    return JSONResponse(
        status_code=502,
        content={
            "error": "upstream_error",
            "message": exc.message,
            "upstreamStatus": exc.status_code,
        },
    )


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Catch-all handler for unhandled exceptions."""
    logger.error("unhandled_exception", exc_info=exc, path=request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


def create_app(
    settings: Settings | None = None,
    *,
    store: TenantStore | None = None,
    client_builder: ClientBuilder | None = None,
) -> FastAPI:
    """Build the application and its one set of tenant components.

    ``store`` and ``client_builder`` override the configured ones (tests).
    """
    settings = settings or get_settings()
    gateway = create_gateway(settings, store=store, client_builder=client_builder)

    app = FastAPI(
        title="GHL Gateway",
        description="Multi-tenant request routing for the GoHighLevel API",
        version="0.1.0",
        lifespan=lifespan,
        debug=settings.is_dev,
    )
    app.state.settings = settings
    app.state.gateway = gateway

    app.add_middleware(
        TenantMiddleware,
        resolver=gateway.resolver,
        context_builder=gateway.context_builder,
        rate_limiter=gateway.rate_limiter,
        exclude_paths=settings.tenant_exclude_paths,
        require_tenant=settings.require_tenant,
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allowed_methods,
        allow_headers=settings.cors_allowed_headers,
        expose_headers=[
            "X-Tenant-ID",
            "X-Request-ID",
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
        ],
    )

    app.add_exception_handler(TenantError, tenant_error_handler)
    app.add_exception_handler(ToolError, tool_error_handler)
    app.add_exception_handler(NoRequestContextError, no_context_handler)
    app.add_exception_handler(GHLApiError, upstream_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.get("/health")
    async def health() -> HealthResponse:
        """Liveness plus a summary of tenancy state."""
        tenants = await gateway.store.get_all()
        return HealthResponse(
            status="ok",
            multi_tenant_mode=settings.multi_tenant_mode,
            tenant_count=len(tenants),
            client_cache_size=len(gateway.factory),
            timestamp=datetime.now(UTC).isoformat(timespec="seconds"),
        )

    app.include_router(tenants_router)
    app.include_router(tools_router)
    return app


app = create_app()
