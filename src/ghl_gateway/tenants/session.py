"""Turn an identified tenant into a request context."""

from __future__ import annotations

import structlog

from ghl_gateway.context import Channel, RequestContext
from ghl_gateway.errors import TenantNotFoundError, TenantRejectedError
from ghl_gateway.tenants.manager import TenantConfigManager
from ghl_gateway.tenants.resolver import TenantResolver

logger = structlog.get_logger()


class ContextBuilder:
    """Validate, load (decrypted) and wrap a tenant in a :class:`RequestContext`.

    Shared by the HTTP middleware and the non-HTTP tool dispatcher so both
    apply the same checks in the same order.
    """

    def __init__(self, resolver: TenantResolver, manager: TenantConfigManager) -> None:
        self.resolver = resolver
        self.manager = manager

    async def build(
        self,
        tenant_id: str,
        channel: Channel,
        *,
        user_agent: str | None = None,
        ip: str | None = None,
    ) -> RequestContext:
        """Raises:
        TenantRejectedError: the tenant failed validation.
        TenantNotFoundError: the tenant disappeared between validation and load.
        """
        validation = await self.resolver.validate_tenant(tenant_id)
        if not validation.valid:
            logger.warning(
                "tenant_rejected",
                tenant_id=tenant_id,
                reason=str(validation.kind),
            )
            raise TenantRejectedError(
                tenant_id, validation.kind, validation.error or "Invalid tenant"
            )

        tenant = await self.manager.get_tenant(tenant_id)
        if tenant is None:
            raise TenantNotFoundError(tenant_id)

        return RequestContext.create(tenant, channel, user_agent=user_agent, ip=ip)
