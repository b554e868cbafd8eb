"""Common plumbing for tool classes.

A tool class never receives a tenant explicitly: it reads the request
context bound by the middleware (or dispatcher) and asks the client factory
for that tenant's client.
"""

from __future__ import annotations

import abc
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, ClassVar, TypeVar

import structlog
from pydantic import BaseModel, ConfigDict, Field

from ghl_gateway.clients.factory import ApiClientFactory
from ghl_gateway.clients.ghl import GHLApiClient
from ghl_gateway.context import RequestContext, get_current_context
from ghl_gateway.errors import NoRequestContextError, ToolError
from ghl_gateway.tenants.models import DEFAULT_TENANT_ID

logger = structlog.get_logger()

T = TypeVar("T")


class ToolDefinition(BaseModel):
    """Name, description and JSON Schema of one callable tool."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    description: str
    input_schema: dict[str, Any] = Field(alias="inputSchema")


class BaseTool(abc.ABC):
    """Base for a group of related tools sharing one feature flag.

    Args:
        factory: Process client factory.
        fallback_client: Client used when no request context is bound
            (single-tenant deployments).
    """

    feature: ClassVar[str]

    def __init__(
        self,
        factory: ApiClientFactory,
        fallback_client: GHLApiClient | None = None,
    ) -> None:
        self._factory = factory
        self._fallback_client = fallback_client

    @abc.abstractmethod
    def get_tool_definitions(self) -> list[ToolDefinition]: ...

    @abc.abstractmethod
    async def execute(self, name: str, params: Mapping[str, Any]) -> Any: ...

    def handles(self, name: str) -> bool:
        return any(d.name == name for d in self.get_tool_definitions())

    @property
    def context(self) -> RequestContext | None:
        return get_current_context()

    @property
    def tenant_id(self) -> str:
        ctx = self.context
        return ctx.tenant_id if ctx is not None else DEFAULT_TENANT_ID

    @property
    def client(self) -> GHLApiClient:
        """Client for the current tenant.

        Raises:
            NoRequestContextError: no context bound and no fallback client.
        """
        ctx = self.context
        if ctx is not None:
            return self._factory.get_client(ctx.tenant)
        if self._fallback_client is not None:
            return self._fallback_client
        raise NoRequestContextError(
            "No API client available: bind a request context "
            "or configure a single-tenant client"
        )

    def is_enabled(self) -> bool:
        """Feature flag for the current tenant; enabled outside a context."""
        ctx = self.context
        if ctx is None:
            return True
        return ctx.tenant.feature_enabled(self.feature)

    async def execute_with_logging(
        self,
        operation: str,
        params: Mapping[str, Any],
        fn: Callable[[], Awaitable[T]],
    ) -> T:
        start = time.perf_counter()
        log = logger.bind(tool=type(self).__name__, operation=operation)
        log.info("tool_started", param_keys=sorted(params))
        try:
            result = await fn()
        except Exception:
            latency_ms = int((time.perf_counter() - start) * 1000)
            log.exception("tool_failed", latency_ms=latency_ms)
            raise
        latency_ms = int((time.perf_counter() - start) * 1000)
        log.info("tool_completed", latency_ms=latency_ms)
        return result

    @staticmethod
    def validate_required(params: Mapping[str, Any], required: list[str]) -> None:
        missing = [name for name in required if not params.get(name)]
        if missing:
            raise ToolError(f"Missing required parameters: {', '.join(missing)}")

    @staticmethod
    def sanitize_params(params: Mapping[str, Any]) -> dict[str, Any]:
        """Drop null values and strip whitespace from strings (also inside lists)."""
        sanitized: dict[str, Any] = {}
        for key, value in params.items():
            if value is None:
                continue
            if isinstance(value, str):
                sanitized[key] = value.strip()
            elif isinstance(value, list):
                sanitized[key] = [v.strip() if isinstance(v, str) else v for v in value]
            else:
                sanitized[key] = value
        return sanitized
