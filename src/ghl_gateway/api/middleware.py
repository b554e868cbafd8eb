"""HTTP middleware: request logging and tenant resolution."""

from __future__ import annotations

import time
from collections.abc import Sequence

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from ghl_gateway.auth.rate_limiter import InMemoryRateLimiter, RateLimitDecision
from ghl_gateway.context import Channel, RequestContext, bind_context
from ghl_gateway.errors import RateLimitedError, TenantError, TenantRequiredError
from ghl_gateway.tenants.resolver import TenantResolver
from ghl_gateway.tenants.session import ContextBuilder

logger = structlog.get_logger()


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log HTTP requests with method, path, status code, and latency."""

    SKIP_PATHS: frozenset[str] = frozenset(
        {"/health", "/docs", "/openapi.json", "/redoc"}
    )

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Process request and log timing information."""
        if request.url.path in self.SKIP_PATHS:
            return await call_next(request)

        start = time.perf_counter()
        response = await call_next(request)
        latency_ms = int((time.perf_counter() - start) * 1000)

        logger.info(
            "http_request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            latency_ms=latency_ms,
            tenant_id=response.headers.get("X-Tenant-ID"),
        )
        return response


def _rate_limit_headers(decision: RateLimitDecision) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": decision.reset_at.isoformat(timespec="seconds"),
    }


class TenantMiddleware(BaseHTTPMiddleware):
    """Resolve the tenant, enforce its rate limit, bind its context.

    Requests under ``exclude_paths`` pass through untouched. A request that
    names no tenant is rejected when ``require_tenant`` is set and otherwise
    proceeds without a context.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        resolver: TenantResolver,
        context_builder: ContextBuilder,
        rate_limiter: InMemoryRateLimiter,
        exclude_paths: Sequence[str] = (),
        require_tenant: bool = False,
    ) -> None:
        super().__init__(app)
        self.resolver = resolver
        self.context_builder = context_builder
        self.rate_limiter = rate_limiter
        self.exclude_paths = tuple(p.rstrip("/") for p in exclude_paths)
        self.require_tenant = require_tenant

    def is_excluded(self, path: str) -> bool:
        return any(
            path == prefix or path.startswith(prefix + "/")
            for prefix in self.exclude_paths
        )

    async def _enter(
        self, request: Request
    ) -> tuple[RequestContext, RateLimitDecision] | None:
        """Resolve, validate and rate-limit; ``None`` when no tenant was named.

        Raises:
            TenantRequiredError: no tenant and ``require_tenant`` is set.
            TenantRejectedError: the tenant failed validation.
            TenantNotFoundError: the tenant vanished before it was loaded.
        """
        identifier = await self.resolver.resolve_from_request(request)
        if identifier is None:
            if self.require_tenant:
                raise TenantRequiredError("Tenant identification required")
            return None

        ctx = await self.context_builder.build(
            identifier.tenant_id,
            Channel.HTTP,
            user_agent=request.headers.get("user-agent"),
            ip=request.client.host if request.client else None,
        )
        decision = self.rate_limiter.check(
            ctx.tenant_id, ctx.tenant.rate_limits.max_requests_per_minute
        )
        return ctx, decision

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if self.is_excluded(request.url.path):
            return await call_next(request)

        try:
            entered = await self._enter(request)
        except TenantError as exc:
            return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
        except Exception:
            logger.exception(
                "tenant_middleware_error",
                path=request.url.path,
                tenant_header=request.headers.get(self.resolver.header_name or ""),
            )
            return JSONResponse(
                status_code=500, content={"detail": "Internal server error"}
            )

        if entered is None:
            return await call_next(request)

        ctx, decision = entered
        headers = _rate_limit_headers(decision)

        if not decision.allowed:
            logger.warning(
                "tenant_rate_limited",
                tenant_id=ctx.tenant_id,
                request_id=ctx.request_id,
                retry_after=decision.retry_after,
            )
            error = RateLimitedError("Rate limit exceeded", decision.retry_after)
            return JSONResponse(
                status_code=error.status_code,
                content=error.to_dict(),
                headers={**headers, "Retry-After": str(decision.retry_after)},
            )

        with bind_context(ctx):
            response = await call_next(request)

        response.headers["X-Tenant-ID"] = ctx.tenant_id
        response.headers["X-Request-ID"] = ctx.request_id
        for name, value in headers.items():
            response.headers[name] = value
        return response
