"""Request/response schemas for the API layer."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ghl_gateway.tenants.models import TenantConfig, TenantSummary
from ghl_gateway.tools.base import ToolDefinition

# --- Tenants ---


class TenantResponse(TenantSummary):
    """One tenant as returned by the admin API.

    The credential is never echoed back; ``has_api_key`` says whether one
    is configured.
    """

    has_api_key: bool

    @classmethod
    def from_tenant(cls, tenant: TenantConfig) -> TenantResponse:
        return cls(
            **tenant.model_dump(exclude={"api_key"}),
            has_api_key=bool(tenant.api_key),
        )


class TenantListResponse(BaseModel):
    """Response for ``GET /tenants``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    tenants: list[TenantSummary]
    total: int


class ConnectionTestResponse(BaseModel):
    success: bool
    message: str


# --- Tools ---


class ToolListResponse(BaseModel):
    tools: list[ToolDefinition]


class ToolCallResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    tool: str
    tenant_id: str | None
    request_id: str | None
    result: Any


# --- Health ---


class HealthResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    status: str
    multi_tenant_mode: bool
    tenant_count: int
    client_cache_size: int
    timestamp: str
