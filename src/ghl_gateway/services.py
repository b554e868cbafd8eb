"""One-stop factory for assembling the tenant routing stack.

Usage::

    from ghl_gateway.config import get_settings
    from ghl_gateway.services import create_gateway

    gateway = create_gateway(get_settings())
    result = await gateway.dispatcher.dispatch(
        "search_contacts", {"query": "jane"}, {"tenantId": "acme"}
    )

The API app and the management CLI both build their components here, so
they share one store, one client cache and one set of checks.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass

import structlog

from ghl_gateway.auth.rate_limiter import InMemoryRateLimiter
from ghl_gateway.clients.factory import ApiClientFactory, ClientBuilder, build_client
from ghl_gateway.clients.ghl import GHLApiClient
from ghl_gateway.config import Settings
from ghl_gateway.tenants.crypto import CredentialCipher
from ghl_gateway.tenants.loader import create_tenant_store
from ghl_gateway.tenants.manager import TenantConfigManager
from ghl_gateway.tenants.resolver import TenantResolver
from ghl_gateway.tenants.session import ContextBuilder
from ghl_gateway.tenants.store import TenantStore
from ghl_gateway.tools.contacts import ContactTools
from ghl_gateway.tools.dispatcher import ToolDispatcher, ToolRegistry

logger = structlog.get_logger()


@dataclass
class Gateway:
    settings: Settings
    store: TenantStore
    factory: ApiClientFactory
    manager: TenantConfigManager
    resolver: TenantResolver
    context_builder: ContextBuilder
    rate_limiter: InMemoryRateLimiter
    tools: ToolRegistry
    dispatcher: ToolDispatcher


def _fallback_client(settings: Settings) -> GHLApiClient | None:
    """Single-tenant client for tool calls that run without a context."""
    if (
        settings.multi_tenant_mode
        or not settings.ghl_api_key
        or not settings.ghl_location_id
    ):
        return None
    return GHLApiClient(
        settings.ghl_api_key.get_secret_value(),
        settings.ghl_location_id,
        base_url=settings.ghl_base_url,
        api_version=settings.ghl_api_version,
        timeout=settings.upstream_timeout_seconds,
    )


def create_gateway(
    settings: Settings,
    *,
    store: TenantStore | None = None,
    client_builder: ClientBuilder | None = None,
) -> Gateway:
    """Assemble every tenant-routing component from settings.

    Args:
        settings: Application settings.
        store: Tenant store to use instead of the configured backend.
        client_builder: Upstream client constructor (tests pass one that
            injects an ``httpx.MockTransport``).
    """
    builder = client_builder or functools.partial(
        build_client, timeout=settings.upstream_timeout_seconds
    )
    store = store if store is not None else create_tenant_store(settings)

    factory = ApiClientFactory(
        max_cache_size=settings.client_cache_max_size,
        ttl_seconds=settings.client_cache_ttl_seconds,
        cleanup_interval_seconds=settings.client_cache_cleanup_interval_seconds,
        client_builder=builder,
    )
    manager = TenantConfigManager(
        store,
        factory,
        CredentialCipher(settings.tenant_encryption_key.get_secret_value()),
        client_builder=builder,
    )
    resolver = TenantResolver(
        store,
        header_name=settings.tenant_header_name,
        query_param=settings.tenant_query_param,
        enable_default_fallback=settings.enable_default_fallback,
    )
    context_builder = ContextBuilder(resolver, manager)
    tools = ToolRegistry([ContactTools(factory, _fallback_client(settings))])

    logger.info(
        "gateway_created",
        multi_tenant_mode=settings.multi_tenant_mode,
        store=type(store).__name__,
    )
    return Gateway(
        settings=settings,
        store=store,
        factory=factory,
        manager=manager,
        resolver=resolver,
        context_builder=context_builder,
        rate_limiter=InMemoryRateLimiter(
            window_seconds=settings.rate_limit_window_seconds,
            max_requests=settings.rate_limit_max_requests,
        ),
        tools=tools,
        dispatcher=ToolDispatcher(tools, resolver, context_builder),
    )
