"""Tenant identification for inbound requests.

Each entry point tries its sources in order and returns the first candidate
that names an existing tenant; a candidate that matches nothing falls
through to the next source rather than failing. Identification does not
check whether the tenant is usable, :meth:`TenantResolver.validate_tenant`
does that.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from starlette.requests import Request

from ghl_gateway.errors import TenantErrorKind
from ghl_gateway.tenants.models import DEFAULT_TENANT_ID
from ghl_gateway.tenants.store import TenantStore

TENANT_PATH_PATTERN = re.compile(r"/tenant/([^/]+)(?:/|$)")
TENANT_ENV_VAR = "GHL_TENANT_ID"


class TenantSource(StrEnum):
    HEADER = "header"
    QUERY = "query"
    PATH = "path"
    CLI = "cli"
    ENV = "env"
    METADATA = "metadata"
    DEFAULT = "default"


@dataclass(frozen=True)
class TenantIdentifier:
    tenant_id: str
    source: TenantSource


@dataclass(frozen=True)
class TenantValidation:
    valid: bool
    kind: TenantErrorKind | None = None
    error: str | None = None


def _header_value(headers: Mapping[str, str], name: str) -> str | None:
    """Case-insensitive header lookup that works on plain dicts too."""
    value = headers.get(name) or headers.get(name.lower())
    if value:
        return value
    lowered = name.lower()
    for key, candidate in headers.items():
        if key.lower() == lowered:
            return candidate
    return None


class TenantResolver:
    """Map a request (HTTP, CLI, message metadata) to a tenant id.

    Args:
        store: Tenant store consulted for existence checks.
        header_name: Header carrying the tenant id (case-insensitive).
        query_param: Query parameter carrying the tenant id.
        enable_default_fallback: Resolve to ``default`` when nothing else
            matches and that tenant exists.
    """

    def __init__(
        self,
        store: TenantStore,
        *,
        header_name: str | None = "x-tenant-id",
        query_param: str | None = "tenant",
        enable_default_fallback: bool = True,
    ) -> None:
        self._store = store
        self.header_name = header_name
        self.query_param = query_param
        self.enable_default_fallback = enable_default_fallback

    async def _existing(
        self, candidate: Any, source: TenantSource
    ) -> TenantIdentifier | None:
        if not candidate or not isinstance(candidate, str):
            return None
        if await self._store.exists(candidate):
            return TenantIdentifier(tenant_id=candidate, source=source)
        return None

    async def _default(self, source: TenantSource) -> TenantIdentifier | None:
        if not self.enable_default_fallback:
            return None
        return await self._existing(DEFAULT_TENANT_ID, source)

    async def resolve_from_http(
        self,
        headers: Mapping[str, str],
        query_params: Mapping[str, str],
        path: str,
    ) -> TenantIdentifier | None:
        """Resolve from header, then query parameter, then ``/tenant/<id>/`` path."""
        if self.header_name:
            found = await self._existing(
                _header_value(headers, self.header_name), TenantSource.HEADER
            )
            if found:
                return found

        if self.query_param:
            found = await self._existing(
                query_params.get(self.query_param), TenantSource.QUERY
            )
            if found:
                return found

        match = TENANT_PATH_PATTERN.search(path)
        if match:
            found = await self._existing(match.group(1), TenantSource.PATH)
            if found:
                return found

        return await self._default(TenantSource.ENV)

    async def resolve_from_request(self, request: Request) -> TenantIdentifier | None:
        return await self.resolve_from_http(
            request.headers, request.query_params, request.url.path
        )

    async def resolve_from_cli(
        self,
        args: Sequence[str] | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> TenantIdentifier | None:
        """Resolve from ``--tenant <id>`` / ``--tenant=<id>``, then ``GHL_TENANT_ID``."""
        env = os.environ if environ is None else environ

        for i, arg in enumerate(args or ()):
            candidate: str | None = None
            if arg == "--tenant" and i + 1 < len(args or ()):
                candidate = args[i + 1]  # type: ignore[index]
            elif arg.startswith("--tenant="):
                candidate = arg.split("=", 1)[1]
            if candidate:
                found = await self._existing(candidate, TenantSource.CLI)
                if found:
                    return found
                break

        found = await self._existing(env.get(TENANT_ENV_VAR), TenantSource.ENV)
        if found:
            return found

        return await self._default(TenantSource.DEFAULT)

    async def resolve_from_metadata(
        self, metadata: Mapping[str, Any] | None
    ) -> TenantIdentifier | None:
        """Resolve from a message's ``tenantId`` (or ``tenant_id``) field."""
        if metadata:
            candidate = metadata.get("tenantId") or metadata.get("tenant_id")
            found = await self._existing(candidate, TenantSource.METADATA)
            if found:
                return found

        return await self._default(TenantSource.DEFAULT)

    async def validate_tenant(self, tenant_id: str) -> TenantValidation:
        """Check the tenant exists, is active and has credentials."""
        tenant = await self._store.get(tenant_id)

        if tenant is None:
            return TenantValidation(
                valid=False, kind=TenantErrorKind.NOT_FOUND, error="Tenant not found"
            )

        if not tenant.is_active:
            return TenantValidation(
                valid=False,
                kind=TenantErrorKind.INACTIVE,
                error="Tenant is not active",
            )

        if not tenant.api_key or not tenant.location_id:
            return TenantValidation(
                valid=False,
                kind=TenantErrorKind.INCOMPLETE,
                error="Tenant configuration incomplete",
            )

        return TenantValidation(valid=True)
