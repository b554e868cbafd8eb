"""CLI for tenant management and one-off tool calls.

Usage::

    uv run python -m scripts.manage_tenant <command> [options]

Commands:
    list-tenants        List all tenants
    show-tenant         Show one tenant (credential masked)
    create-tenant       Create a tenant (credentials are tested first)
    update-tenant       Update name, credentials or limits of a tenant
    deactivate-tenant   Deactivate a tenant
    delete-tenant       Delete a tenant
    test-tenant         Test a tenant's credentials against the live API
    call-tool           Run a tool for --tenant / GHL_TENANT_ID / default

Writes only persist with ``TENANT_STORE_BACKEND=file`` or ``database``;
the memory backend is rebuilt on every invocation.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Callable, Coroutine
from typing import Any

from ghl_gateway.clients.ghl import GHLApiError
from ghl_gateway.config import get_settings
from ghl_gateway.errors import TenantError, ToolError
from ghl_gateway.logging_config import configure_logging
from ghl_gateway.services import Gateway, create_gateway
from ghl_gateway.tenants.models import (
    CreateTenantRequest,
    RateLimits,
    TenantConfig,
    UpdateTenantRequest,
)


def get_gateway() -> Gateway:
    """Build the same component set the API server uses."""
    return create_gateway(get_settings())


def _mask(secret: str) -> str:
    if len(secret) <= 8:
        return "****"
    return f"{secret[:4]}...{secret[-4:]}"


def _run(coro: Coroutine[Any, Any, None]) -> None:
    """Run one command; domain failures exit with status 1."""
    try:
        asyncio.run(coro)
    except (TenantError, ToolError) as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        sys.exit(1)
    except GHLApiError as exc:
        print(f"Upstream error: {exc}", file=sys.stderr)
        sys.exit(1)


def _print_tenant(tenant: TenantConfig) -> None:
    status = "active" if tenant.is_active else "inactive"
    print(f"Tenant: {tenant.tenant_id} ({status})")
    print(f"   Name:      {tenant.name}")
    print(f"   Location:  {tenant.location_id}")
    print(f"   Base URL:  {tenant.base_url}")
    print(f"   Version:   {tenant.api_version}")
    print(f"   API key:   {_mask(tenant.api_key)}")
    limit = tenant.rate_limits.max_requests_per_minute
    print(f"   Rate/min:  {limit if limit is not None else 'default'}")


def list_tenants(_args: argparse.Namespace) -> None:
    """List all tenants."""

    async def _list() -> None:
        tenants = await get_gateway().manager.get_all_tenants()
        if not tenants:
            print("No tenants found.")
            return
        print("Tenants:")
        for i, tenant in enumerate(tenants, 1):
            status = "active" if tenant.is_active else "inactive"
            print(f"  {i}. {tenant.tenant_id} [{tenant.name}] ({status})")

    _run(_list())


def show_tenant(args: argparse.Namespace) -> None:
    """Show one tenant."""

    async def _show() -> None:
        tenant = await get_gateway().manager.get_tenant(args.tenant_id)
        if tenant is None:
            print(f"Tenant not found: {args.tenant_id}", file=sys.stderr)
            sys.exit(1)
        _print_tenant(tenant)

    _run(_show())


def create_tenant(args: argparse.Namespace) -> None:
    """Create a new tenant."""
    request = CreateTenantRequest(
        tenant_id=args.tenant_id,
        name=args.name,
        api_key=args.api_key,
        location_id=args.location_id,
        base_url=args.base_url,
        rate_limits=(
            RateLimits(max_requests_per_minute=args.rate_limit)
            if args.rate_limit is not None
            else None
        ),
    )

    async def _create() -> None:
        tenant = await get_gateway().manager.create_tenant(request)
        print(f"Tenant created: {tenant.name} (id: {tenant.tenant_id})")

    _run(_create())


def update_tenant(args: argparse.Namespace) -> None:
    """Update a tenant; only the given options change."""
    fields: dict[str, Any] = {
        "name": args.name,
        "api_key": args.api_key,
        "location_id": args.location_id,
        "base_url": args.base_url,
    }
    if args.rate_limit is not None:
        fields["rate_limits"] = RateLimits(max_requests_per_minute=args.rate_limit)
    request = UpdateTenantRequest(**{k: v for k, v in fields.items() if v is not None})

    if not request.changes():
        print("Nothing to update.", file=sys.stderr)
        sys.exit(1)

    async def _update() -> None:
        tenant = await get_gateway().manager.update_tenant(args.tenant_id, request)
        print(f"Tenant updated: {tenant.tenant_id}")

    _run(_update())


def deactivate_tenant(args: argparse.Namespace) -> None:
    """Deactivate a tenant (its requests are rejected with 403)."""

    async def _deactivate() -> None:
        manager = get_gateway().manager
        tenant = await manager.get_tenant(args.tenant_id)
        if tenant is None:
            print(f"Tenant not found: {args.tenant_id}", file=sys.stderr)
            sys.exit(1)
        if not tenant.is_active:
            print(f"Tenant already inactive: {args.tenant_id}", file=sys.stderr)
            sys.exit(1)
        await manager.set_tenant_active(args.tenant_id, False)
        print(f"Tenant deactivated: {args.tenant_id}")

    _run(_deactivate())


def delete_tenant(args: argparse.Namespace) -> None:
    """Delete a tenant."""

    async def _delete() -> None:
        if not await get_gateway().manager.delete_tenant(args.tenant_id):
            print(f"Tenant not found: {args.tenant_id}", file=sys.stderr)
            sys.exit(1)
        print(f"Tenant deleted: {args.tenant_id}")

    _run(_delete())


def check_tenant(args: argparse.Namespace) -> None:
    """Test stored credentials against the live API."""

    async def _test() -> None:
        result = await get_gateway().manager.test_tenant(args.tenant_id)
        if not result.success:
            print(f"Connection failed: {result.message}", file=sys.stderr)
            sys.exit(1)
        print(f"Connection OK: {args.tenant_id}")

    _run(_test())


def call_tool(args: argparse.Namespace) -> None:
    """Run a tool and print its JSON result."""
    try:
        params = json.loads(args.params)
    except json.JSONDecodeError as exc:
        print(f"Invalid --params JSON: {exc}", file=sys.stderr)
        sys.exit(1)

    cli_args = ["--tenant", args.tenant] if args.tenant else []

    async def _call() -> None:
        result = await get_gateway().dispatcher.dispatch_cli(
            args.tool, params, cli_args
        )
        print(json.dumps(result, indent=2, default=str))

    _run(_call())


def main(argv: list[str] | None = None) -> None:
    """Parse arguments and dispatch to command handler."""
    parser = argparse.ArgumentParser(description="Tenant management CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    # list-tenants
    sub.add_parser("list-tenants", help="List all tenants")

    # show-tenant
    p = sub.add_parser("show-tenant", help="Show one tenant")
    p.add_argument("tenant_id", help="Tenant id")

    # create-tenant
    p = sub.add_parser("create-tenant", help="Create a new tenant")
    p.add_argument(
        "--id", dest="tenant_id", default=None, help="Tenant id (generated if omitted)"
    )
    p.add_argument("--name", required=True, help="Tenant name")
    p.add_argument("--api-key", required=True, help="GoHighLevel API key")
    p.add_argument("--location-id", required=True, help="GoHighLevel location id")
    p.add_argument("--base-url", default=None, help="API base URL")
    p.add_argument("--rate-limit", type=int, default=None, help="Requests per minute")

    # update-tenant
    p = sub.add_parser("update-tenant", help="Update a tenant")
    p.add_argument("tenant_id", help="Tenant id")
    p.add_argument("--name", default=None, help="New name")
    p.add_argument("--api-key", default=None, help="New API key")
    p.add_argument("--location-id", default=None, help="New location id")
    p.add_argument("--base-url", default=None, help="New API base URL")
    p.add_argument("--rate-limit", type=int, default=None, help="Requests per minute")

    # deactivate-tenant
    p = sub.add_parser("deactivate-tenant", help="Deactivate a tenant")
    p.add_argument("tenant_id", help="Tenant id")

    # delete-tenant
    p = sub.add_parser("delete-tenant", help="Delete a tenant")
    p.add_argument("tenant_id", help="Tenant id")

    # test-tenant
    p = sub.add_parser("test-tenant", help="Test tenant credentials")
    p.add_argument("tenant_id", help="Tenant id")

    # call-tool
    p = sub.add_parser("call-tool", help="Run a tool for a tenant")
    p.add_argument("tool", help="Tool name, e.g. search_contacts")
    p.add_argument("--params", default="{}", help="Tool parameters as JSON")
    p.add_argument("--tenant", default=None, help="Tenant id (else GHL_TENANT_ID)")

    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(
        environment=str(settings.environment),
        log_level=settings.log_level,
        stream=sys.stderr,
    )

    commands: dict[str, Callable[[argparse.Namespace], None]] = {
        "list-tenants": list_tenants,
        "show-tenant": show_tenant,
        "create-tenant": create_tenant,
        "update-tenant": update_tenant,
        "deactivate-tenant": deactivate_tenant,
        "delete-tenant": delete_tenant,
        "test-tenant": check_tenant,
        "call-tool": call_tool,
    }
    commands[args.command](args)


if __name__ == "__main__":
    main()
