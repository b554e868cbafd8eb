"""Tenant record stores.

All variants implement the async :class:`TenantStore` contract so the
resolver and config manager never care where records live. Lookups report
absence as ``None`` / ``False``; mutations raise typed errors.
"""

from __future__ import annotations

import abc
import asyncio
import json
import os
import tempfile
from collections.abc import Iterable, Mapping
from pathlib import Path
from threading import Lock
from typing import Any

import structlog

from ghl_gateway.errors import (
    TenantAlreadyExistsError,
    TenantNotFoundError,
    UnsupportedOperationError,
)
from ghl_gateway.tenants.models import DEFAULT_TENANT_ID, TenantConfig, utcnow

logger = structlog.get_logger()

# Fields a caller may never overwrite through ``update``.
_IMMUTABLE_FIELDS: frozenset[str] = frozenset({"tenant_id", "created_at"})


def apply_changes(tenant: TenantConfig, changes: Mapping[str, Any]) -> TenantConfig:
    """Return a copy of ``tenant`` with ``changes`` applied and a fresh ``updated_at``.

    Goes through validation again so nested values (e.g. ``rate_limits``
    given as a plain dict) end up as proper models.
    """
    data = tenant.model_dump()
    data.update(
        {
            key: value.model_dump() if hasattr(value, "model_dump") else value
            for key, value in changes.items()
            if key not in _IMMUTABLE_FIELDS
        }
    )
    data["updated_at"] = utcnow()
    return TenantConfig.model_validate(data)


class TenantStore(abc.ABC):
    """Durable map from tenant id to :class:`TenantConfig`."""

    @abc.abstractmethod
    async def get(self, tenant_id: str) -> TenantConfig | None: ...

    @abc.abstractmethod
    async def get_all(self) -> list[TenantConfig]: ...

    @abc.abstractmethod
    async def create(self, tenant: TenantConfig) -> TenantConfig:
        """Persist a new record.

        Raises:
            TenantAlreadyExistsError: a record with the same id exists.
        """

    @abc.abstractmethod
    async def update(
        self, tenant_id: str, changes: Mapping[str, Any]
    ) -> TenantConfig:
        """Apply a partial update.

        Raises:
            TenantNotFoundError: no record with that id.
        """

    @abc.abstractmethod
    async def delete(self, tenant_id: str) -> bool: ...

    @abc.abstractmethod
    async def exists(self, tenant_id: str) -> bool: ...


class InMemoryTenantStore(TenantStore):
    """Dict-backed store for development, tests and seeded config."""

    def __init__(self, tenants: Iterable[TenantConfig] = ()) -> None:
        self._tenants: dict[str, TenantConfig] = {t.tenant_id: t for t in tenants}
        self._lock = Lock()

    async def get(self, tenant_id: str) -> TenantConfig | None:
        return self._tenants.get(tenant_id)

    async def get_all(self) -> list[TenantConfig]:
        with self._lock:
            return list(self._tenants.values())

    async def create(self, tenant: TenantConfig) -> TenantConfig:
        record = tenant.model_copy(update={"updated_at": utcnow()})
        with self._lock:
            if record.tenant_id in self._tenants:
                raise TenantAlreadyExistsError(record.tenant_id)
            self._tenants[record.tenant_id] = record
        return record

    async def update(
        self, tenant_id: str, changes: Mapping[str, Any]
    ) -> TenantConfig:
        with self._lock:
            existing = self._tenants.get(tenant_id)
            if existing is None:
                raise TenantNotFoundError(tenant_id)
            updated = apply_changes(existing, changes)
            self._tenants[tenant_id] = updated
        return updated

    async def delete(self, tenant_id: str) -> bool:
        with self._lock:
            return self._tenants.pop(tenant_id, None) is not None

    async def exists(self, tenant_id: str) -> bool:
        return tenant_id in self._tenants


class EnvTenantStore(TenantStore):
    """Read-only store exposing the legacy single-tenant credentials as ``default``.

    Built from ``GHL_API_KEY`` / ``GHL_LOCATION_ID``; empty when either is
    missing.
    """

    def __init__(self, default_tenant: TenantConfig | None = None) -> None:
        self._default = default_tenant

    @classmethod
    def from_credentials(
        cls,
        api_key: str | None,
        location_id: str | None,
        **fields: Any,
    ) -> EnvTenantStore:
        if not api_key or not location_id:
            return cls(None)
        return cls(
            TenantConfig(
                tenant_id=DEFAULT_TENANT_ID,
                name="Default Tenant",
                api_key=api_key,
                location_id=location_id,
                **fields,
            )
        )

    async def get(self, tenant_id: str) -> TenantConfig | None:
        if tenant_id == DEFAULT_TENANT_ID:
            return self._default
        return None

    async def get_all(self) -> list[TenantConfig]:
        return [self._default] if self._default is not None else []

    async def create(self, tenant: TenantConfig) -> TenantConfig:
        raise UnsupportedOperationError("EnvTenantStore is read-only")

    async def update(
        self, tenant_id: str, changes: Mapping[str, Any]
    ) -> TenantConfig:
        raise UnsupportedOperationError("EnvTenantStore is read-only")

    async def delete(self, tenant_id: str) -> bool:
        raise UnsupportedOperationError("EnvTenantStore is read-only")

    async def exists(self, tenant_id: str) -> bool:
        return tenant_id == DEFAULT_TENANT_ID and self._default is not None


class CompositeTenantStore(TenantStore):
    """Writable primary layered over a read-only fallback.

    Editing a record that exists only in the fallback promotes it into the
    primary, which is how an env-configured ``default`` tenant becomes
    durably editable after the first admin change.
    """

    def __init__(self, primary: TenantStore, fallback: TenantStore) -> None:
        self.primary = primary
        self.fallback = fallback

    async def get(self, tenant_id: str) -> TenantConfig | None:
        tenant = await self.primary.get(tenant_id)
        if tenant is not None:
            return tenant
        return await self.fallback.get(tenant_id)

    async def get_all(self) -> list[TenantConfig]:
        merged: dict[str, TenantConfig] = {}
        for tenant in await self.fallback.get_all():
            merged[tenant.tenant_id] = tenant
        for tenant in await self.primary.get_all():
            merged[tenant.tenant_id] = tenant
        return list(merged.values())

    async def create(self, tenant: TenantConfig) -> TenantConfig:
        return await self.primary.create(tenant)

    async def update(
        self, tenant_id: str, changes: Mapping[str, Any]
    ) -> TenantConfig:
        if await self.primary.exists(tenant_id):
            return await self.primary.update(tenant_id, changes)

        fallback_tenant = await self.fallback.get(tenant_id)
        if fallback_tenant is None:
            raise TenantNotFoundError(tenant_id)

        promoted = apply_changes(fallback_tenant, changes)
        logger.info("tenant_promoted_to_primary", tenant_id=tenant_id)
        return await self.primary.create(promoted)

    async def delete(self, tenant_id: str) -> bool:
        return await self.primary.delete(tenant_id)

    async def exists(self, tenant_id: str) -> bool:
        return await self.primary.exists(tenant_id) or await self.fallback.exists(
            tenant_id
        )


class JsonFileTenantStore(InMemoryTenantStore):
    """In-memory store persisted to the tenant-list JSON file.

    The file keeps the dashboard's shape::

        {"tenants": [{"tenantId": ..., "apiKey": ...}], "defaultSettings": {...}}

    Every mutation rewrites the file through a temp file and ``os.replace``
    so readers never see a half-written document. A mutation whose write
    fails is rolled back in memory before the error propagates.
    """

    def __init__(
        self,
        path: Path,
        tenants: Iterable[TenantConfig] = (),
        default_settings: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(tenants)
        self.path = path
        self.default_settings = dict(default_settings or {})
        self._write_lock = asyncio.Lock()

    async def create(self, tenant: TenantConfig) -> TenantConfig:
        async with self._write_lock:
            snapshot = self._snapshot()
            record = await super().create(tenant)
            await self._flush(snapshot)
        return record

    async def update(
        self, tenant_id: str, changes: Mapping[str, Any]
    ) -> TenantConfig:
        async with self._write_lock:
            snapshot = self._snapshot()
            record = await super().update(tenant_id, changes)
            await self._flush(snapshot)
        return record

    async def delete(self, tenant_id: str) -> bool:
        async with self._write_lock:
            snapshot = self._snapshot()
            deleted = await super().delete(tenant_id)
            if deleted:
                await self._flush(snapshot)
        return deleted

    def _snapshot(self) -> dict[str, TenantConfig]:
        with self._lock:
            return dict(self._tenants)

    def to_document(self) -> dict[str, Any]:
        with self._lock:
            tenants = list(self._tenants.values())
        return {
            "tenants": [
                t.model_dump(mode="json", by_alias=True) for t in tenants
            ],
            "defaultSettings": self.default_settings,
        }

    async def _flush(self, snapshot: dict[str, TenantConfig]) -> None:
        """Write the current map; on failure restore ``snapshot`` and re-raise."""
        try:
            await asyncio.to_thread(_write_json_atomic, self.path, self.to_document())
        except BaseException:
            with self._lock:
                self._tenants = snapshot
            logger.error("tenant_file_write_failed", path=str(self.path))
            raise
        logger.debug("tenant_file_written", path=str(self.path))


def _write_json_atomic(path: Path, document: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tenants-", suffix=".json")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(document, fh, indent=2)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
