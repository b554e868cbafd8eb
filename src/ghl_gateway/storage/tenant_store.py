"""SQLAlchemy-backed tenant store."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ghl_gateway.errors import TenantAlreadyExistsError, TenantNotFoundError
from ghl_gateway.storage.orm import TenantRecord
from ghl_gateway.tenants.models import TenantConfig, utcnow
from ghl_gateway.tenants.store import TenantStore, apply_changes


def _to_config(record: TenantRecord) -> TenantConfig:
    return TenantConfig(
        tenant_id=record.tenant_id,
        name=record.name,
        api_key=record.api_key,
        location_id=record.location_id,
        base_url=record.base_url,
        api_version=record.api_version,
        settings=record.settings or {},
        rate_limits=record.rate_limits or {},
        metadata=record.extra or {},
        is_active=record.is_active,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def _copy_into(record: TenantRecord, tenant: TenantConfig) -> None:
    record.name = tenant.name
    record.api_key = tenant.api_key
    record.location_id = tenant.location_id
    record.base_url = tenant.base_url
    record.api_version = tenant.api_version
    record.settings = dict(tenant.settings)
    record.rate_limits = tenant.rate_limits.model_dump()
    record.extra = dict(tenant.metadata)
    record.is_active = tenant.is_active
    record.updated_at = tenant.updated_at


class SqlTenantStore(TenantStore):
    """Tenant records in the ``tenants`` table.

    Each operation runs in its own session and transaction, so concurrent
    requests only ever see committed rows.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, tenant_id: str) -> TenantConfig | None:
        async with self._session_factory() as session:
            record = await session.get(TenantRecord, tenant_id)
            return _to_config(record) if record is not None else None

    async def get_all(self) -> list[TenantConfig]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(TenantRecord).order_by(TenantRecord.created_at)
            )
            return [_to_config(r) for r in result.scalars().all()]

    async def create(self, tenant: TenantConfig) -> TenantConfig:
        record = TenantRecord(tenant_id=tenant.tenant_id, created_at=tenant.created_at)
        _copy_into(record, tenant.model_copy(update={"updated_at": utcnow()}))

        async with self._session_factory() as session:
            if await session.get(TenantRecord, tenant.tenant_id) is not None:
                raise TenantAlreadyExistsError(tenant.tenant_id)
            session.add(record)
            created = _to_config(record)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise TenantAlreadyExistsError(tenant.tenant_id) from exc
            return created

    async def update(
        self, tenant_id: str, changes: Mapping[str, Any]
    ) -> TenantConfig:
        async with self._session_factory() as session:
            record = await session.get(TenantRecord, tenant_id)
            if record is None:
                raise TenantNotFoundError(tenant_id)
            updated = apply_changes(_to_config(record), changes)
            _copy_into(record, updated)
            await session.commit()
            return updated

    async def delete(self, tenant_id: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                delete(TenantRecord).where(TenantRecord.tenant_id == tenant_id)
            )
            await session.commit()
            return bool(result.rowcount)

    async def exists(self, tenant_id: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                select(TenantRecord.tenant_id).where(
                    TenantRecord.tenant_id == tenant_id
                )
            )
            return result.scalar_one_or_none() is not None
