"""Tool lookup and execution outside the HTTP middleware.

:class:`ToolRegistry` finds the tool class for a name and enforces the
tenant's feature flags. :class:`ToolDispatcher` serves callers that carry
no HTTP request (stdio messages, the CLI): it resolves the tenant itself and
builds the context the middleware would otherwise have built.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

import structlog

from ghl_gateway.context import Channel, run_with_context
from ghl_gateway.errors import TenantRequiredError, ToolDisabledError, UnknownToolError
from ghl_gateway.tenants.resolver import TenantIdentifier, TenantResolver
from ghl_gateway.tenants.session import ContextBuilder
from ghl_gateway.tools.base import BaseTool, ToolDefinition

logger = structlog.get_logger()


class ToolRegistry:
    def __init__(self, tools: Iterable[BaseTool]) -> None:
        self._tools = list(tools)

    def definitions(self) -> list[ToolDefinition]:
        """Definitions of the tools enabled for the current tenant."""
        return [
            definition
            for tool in self._tools
            if tool.is_enabled()
            for definition in tool.get_tool_definitions()
        ]

    def get(self, name: str) -> BaseTool:
        for tool in self._tools:
            if tool.handles(name):
                return tool
        raise UnknownToolError(name)

    async def call(self, name: str, params: Mapping[str, Any]) -> Any:
        """Raises:
        UnknownToolError: no tool class handles ``name``.
        ToolDisabledError: the tool's feature is off for the current tenant.
        """
        tool = self.get(name)
        if not tool.is_enabled():
            raise ToolDisabledError(f"Tool {name} is disabled for this tenant")
        return await tool.execute(name, params)


class ToolDispatcher:
    """Run tool calls for message- or CLI-identified tenants."""

    def __init__(
        self,
        registry: ToolRegistry,
        resolver: TenantResolver,
        context_builder: ContextBuilder,
    ) -> None:
        self.registry = registry
        self.resolver = resolver
        self.context_builder = context_builder

    async def _run(
        self,
        identifier: TenantIdentifier | None,
        name: str,
        params: Mapping[str, Any],
    ) -> Any:
        if identifier is None:
            raise TenantRequiredError("Tenant identification required")
        ctx = await self.context_builder.build(identifier.tenant_id, Channel.STDIO)
        logger.debug(
            "tool_dispatch",
            tool=name,
            tenant_id=ctx.tenant_id,
            tenant_source=str(identifier.source),
        )
        return await run_with_context(ctx, self.registry.call, name, params)

    async def dispatch(
        self,
        name: str,
        params: Mapping[str, Any],
        metadata: Mapping[str, Any] | None = None,
    ) -> Any:
        """Call ``name`` for the tenant named in the message ``metadata``."""
        identifier = await self.resolver.resolve_from_metadata(metadata)
        return await self._run(identifier, name, params)

    async def dispatch_cli(
        self,
        name: str,
        params: Mapping[str, Any],
        args: Sequence[str] | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> Any:
        """Call ``name`` for the tenant given by ``--tenant`` or ``GHL_TENANT_ID``."""
        identifier = await self.resolver.resolve_from_cli(args, environ)
        return await self._run(identifier, name, params)
