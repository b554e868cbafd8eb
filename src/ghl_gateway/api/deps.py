"""FastAPI dependency injection."""

from __future__ import annotations

from typing import cast

from fastapi import Request

from ghl_gateway.context import RequestContext, get_current_context
from ghl_gateway.tenants.manager import TenantConfigManager
from ghl_gateway.tools.dispatcher import ToolRegistry

__all__ = ["get_request_context", "get_tenant_manager", "get_tool_registry"]


async def get_tenant_manager(request: Request) -> TenantConfigManager:
    """Retrieve TenantConfigManager from app state.

    Built by ``create_app``.
    """
    return cast(TenantConfigManager, request.app.state.gateway.manager)


async def get_tool_registry(request: Request) -> ToolRegistry:
    return cast(ToolRegistry, request.app.state.gateway.tools)


async def get_request_context() -> RequestContext | None:
    """Context bound by the tenant middleware, or ``None`` when unresolved."""
    return get_current_context()
