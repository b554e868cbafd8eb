"""Tool endpoints, executed for the tenant bound by the middleware."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends

from ghl_gateway.api.deps import get_request_context, get_tool_registry
from ghl_gateway.api.schemas import ToolCallResponse, ToolListResponse
from ghl_gateway.context import RequestContext
from ghl_gateway.tools.dispatcher import ToolRegistry

router = APIRouter(tags=["tools"])

RegistryDep = Annotated[ToolRegistry, Depends(get_tool_registry)]
ContextDep = Annotated[RequestContext | None, Depends(get_request_context)]
ParamsBody = Annotated[dict[str, Any] | None, Body()]


async def _call(
    name: str,
    params: dict[str, Any],
    registry: ToolRegistry,
    ctx: RequestContext | None,
) -> ToolCallResponse:
    result = await registry.call(name, params)
    return ToolCallResponse(
        tool=name,
        tenant_id=ctx.tenant_id if ctx else None,
        request_id=ctx.request_id if ctx else None,
        result=result,
    )


@router.get("/api/tools")
async def list_tools(registry: RegistryDep) -> ToolListResponse:
    """Tools enabled for the resolved tenant."""
    return ToolListResponse(tools=registry.definitions())


@router.post("/api/tools/{name}")
async def call_tool(
    name: str,
    registry: RegistryDep,
    ctx: ContextDep,
    params: ParamsBody = None,
) -> ToolCallResponse:
    """Run a tool; the tenant comes from the header or query parameter."""
    return await _call(name, params or {}, registry, ctx)


@router.post("/tenant/{tenant_id}/tools/{name}")
async def call_tenant_tool(
    tenant_id: str,
    name: str,
    registry: RegistryDep,
    ctx: ContextDep,
    params: ParamsBody = None,
) -> ToolCallResponse:
    """Run a tool for the tenant named in the path."""
    return await _call(name, params or {}, registry, ctx)
