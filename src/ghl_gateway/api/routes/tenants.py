"""Tenant administration endpoints (bearer-token protected)."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Response

from ghl_gateway.api.deps import get_tenant_manager
from ghl_gateway.api.schemas import (
    ConnectionTestResponse,
    TenantListResponse,
    TenantResponse,
)
from ghl_gateway.auth.admin import require_admin
from ghl_gateway.errors import TenantNotFoundError
from ghl_gateway.tenants.manager import TenantConfigManager
from ghl_gateway.tenants.models import CreateTenantRequest, UpdateTenantRequest

router = APIRouter(
    prefix="/tenants",
    tags=["tenants"],
    dependencies=[Depends(require_admin)],
)

ManagerDep = Annotated[TenantConfigManager, Depends(get_tenant_manager)]


@router.get("")
async def list_tenants(manager: ManagerDep) -> TenantListResponse:
    """List tenants. Credentials are never included."""
    tenants = await manager.get_all_tenants()
    return TenantListResponse(tenants=tenants, total=len(tenants))


@router.post("", status_code=201)
async def create_tenant(
    body: CreateTenantRequest,
    manager: ManagerDep,
) -> TenantResponse:
    """Create a tenant after testing its credentials against the live API."""
    tenant = await manager.create_tenant(body)
    return TenantResponse.from_tenant(tenant)


@router.get("/{tenant_id}")
async def get_tenant(tenant_id: str, manager: ManagerDep) -> TenantResponse:
    tenant = await manager.get_tenant(tenant_id)
    if tenant is None:
        raise TenantNotFoundError(tenant_id)
    return TenantResponse.from_tenant(tenant)


@router.put("/{tenant_id}")
async def update_tenant(
    tenant_id: str,
    body: UpdateTenantRequest,
    manager: ManagerDep,
) -> TenantResponse:
    """Partially update a tenant; its cached API clients are dropped."""
    tenant = await manager.update_tenant(tenant_id, body)
    return TenantResponse.from_tenant(tenant)


@router.delete("/{tenant_id}", status_code=204)
async def delete_tenant(tenant_id: str, manager: ManagerDep) -> Response:
    """Delete a tenant. The ``default`` tenant cannot be deleted (403)."""
    if not await manager.delete_tenant(tenant_id):
        raise TenantNotFoundError(tenant_id)
    return Response(status_code=204)


@router.post("/{tenant_id}/test")
async def test_tenant(tenant_id: str, manager: ManagerDep) -> ConnectionTestResponse:
    """Check the stored credentials against the live API."""
    result = await manager.test_tenant(tenant_id)
    return ConnectionTestResponse(success=result.success, message=result.message)
