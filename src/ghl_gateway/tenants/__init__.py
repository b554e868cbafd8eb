"""Tenant records, their stores and request-to-tenant resolution.

The config manager and context builder live in ``tenants.manager`` and
``tenants.session`` and are not re-exported here; they depend on the client
layer, which itself imports ``tenants.models``.
"""

from ghl_gateway.tenants.models import (
    DEFAULT_TENANT_ID,
    CreateTenantRequest,
    RateLimits,
    TenantConfig,
    TenantSummary,
    UpdateTenantRequest,
)
from ghl_gateway.tenants.resolver import (
    TenantIdentifier,
    TenantResolver,
    TenantSource,
    TenantValidation,
)
from ghl_gateway.tenants.store import (
    CompositeTenantStore,
    EnvTenantStore,
    InMemoryTenantStore,
    JsonFileTenantStore,
    TenantStore,
)

__all__ = [
    "DEFAULT_TENANT_ID",
    "CompositeTenantStore",
    "CreateTenantRequest",
    "EnvTenantStore",
    "InMemoryTenantStore",
    "JsonFileTenantStore",
    "RateLimits",
    "TenantConfig",
    "TenantIdentifier",
    "TenantResolver",
    "TenantSource",
    "TenantStore",
    "TenantSummary",
    "TenantValidation",
    "UpdateTenantRequest",
]
