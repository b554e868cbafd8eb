"""Tenant lifecycle: validate, test against the live API, persist, invalidate."""

from __future__ import annotations

import secrets
import string
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import structlog

from ghl_gateway.clients.factory import ApiClientFactory, ClientBuilder, build_client
from ghl_gateway.clients.ghl import GHLApiError
from ghl_gateway.errors import (
    ForbiddenError,
    InvalidConfigurationError,
    TenantAlreadyExistsError,
    TenantNotFoundError,
    TenantValidationError,
)
from ghl_gateway.tenants.crypto import CredentialCipher
from ghl_gateway.tenants.models import (
    CONNECTION_FIELDS,
    DEFAULT_TENANT_ID,
    TENANT_ID_PATTERN,
    CreateTenantRequest,
    TenantConfig,
    TenantSummary,
    UpdateTenantRequest,
)
from ghl_gateway.tenants.store import TenantStore, apply_changes

logger = structlog.get_logger()

_ID_SUFFIX_ALPHABET = string.digits + string.ascii_lowercase


def generate_tenant_id() -> str:
    """``tenant_<epoch-ms>_<7 base-36 chars>``."""
    suffix = "".join(secrets.choice(_ID_SUFFIX_ALPHABET) for _ in range(7))
    return f"tenant_{int(time.time() * 1000)}_{suffix}"


@dataclass(frozen=True)
class ConnectionTestResult:
    success: bool
    message: str


class TenantConfigManager:
    """Single entry point for tenant mutations (REST and CLI share it).

    Credentials are encrypted before they reach the store and decrypted on
    the way out; listings never decrypt at all. Every successful update or
    delete drops the tenant's cached API clients.
    """

    def __init__(
        self,
        store: TenantStore,
        factory: ApiClientFactory,
        cipher: CredentialCipher,
        client_builder: ClientBuilder = build_client,
    ) -> None:
        self.store = store
        self.factory = factory
        self.cipher = cipher
        self._client_builder = client_builder

    def _decrypted(self, tenant: TenantConfig) -> TenantConfig:
        return tenant.model_copy(update={"api_key": self.cipher.decrypt(tenant.api_key)})

    async def _test_config(self, tenant: TenantConfig) -> None:
        """Call the upstream API with a throwaway client.

        Raises:
            InvalidConfigurationError: the upstream call failed.
        """
        client = self._client_builder(tenant)
        try:
            await client.test_connection()
        except GHLApiError as exc:
            logger.warning(
                "tenant_config_test_failed",
                tenant_id=tenant.tenant_id,
                status_code=exc.status_code,
            )
            raise InvalidConfigurationError(
                f"Invalid tenant configuration: {exc.message}"
            ) from exc

    @staticmethod
    def _validate_create(request: CreateTenantRequest) -> None:
        if not request.name.strip():
            raise TenantValidationError("Tenant name is required")
        if not request.api_key.strip():
            raise TenantValidationError("API key is required")
        if not request.location_id.strip():
            raise TenantValidationError("Location ID is required")
        if request.tenant_id is not None and not TENANT_ID_PATTERN.match(
            request.tenant_id
        ):
            raise TenantValidationError(
                "Tenant ID must contain only alphanumeric characters, "
                "hyphens, and underscores"
            )

    @staticmethod
    def _validate_update(changes: Mapping[str, Any]) -> None:
        for field_name, label in (
            ("name", "Tenant name"),
            ("api_key", "API key"),
            ("location_id", "Location ID"),
        ):
            value = changes.get(field_name)
            if value is not None and not value.strip():
                raise TenantValidationError(f"{label} must not be blank")

    async def create_tenant(self, request: CreateTenantRequest) -> TenantConfig:
        """Validate, live-test and persist a new tenant.

        Raises:
            TenantValidationError: missing field or malformed id.
            TenantAlreadyExistsError: id already taken.
            InvalidConfigurationError: upstream rejected the credentials.
        """
        self._validate_create(request)
        tenant_id = request.tenant_id or generate_tenant_id()

        if await self.store.exists(tenant_id):
            raise TenantAlreadyExistsError(tenant_id)

        fields = request.model_dump(exclude={"tenant_id"}, exclude_none=True)
        tenant = TenantConfig(tenant_id=tenant_id, **fields)

        await self._test_config(tenant)

        stored = await self.store.create(
            tenant.model_copy(update={"api_key": self.cipher.encrypt(tenant.api_key)})
        )
        logger.info("tenant_created", tenant_id=tenant_id)
        return self._decrypted(stored)

    async def get_tenant(self, tenant_id: str) -> TenantConfig | None:
        tenant = await self.store.get(tenant_id)
        return self._decrypted(tenant) if tenant is not None else None

    async def get_all_tenants(self) -> list[TenantSummary]:
        return [TenantSummary.from_config(t) for t in await self.store.get_all()]

    async def update_tenant(
        self, tenant_id: str, request: UpdateTenantRequest
    ) -> TenantConfig:
        """Apply a partial update; re-test when connection fields change.

        Raises:
            TenantNotFoundError: unknown tenant.
            TenantValidationError: a provided field is blank.
            InvalidConfigurationError: upstream rejected the new settings.
        """
        stored = await self.store.get(tenant_id)
        if stored is None:
            raise TenantNotFoundError(tenant_id)
        existing = self._decrypted(stored)

        changes = request.changes()
        self._validate_update(changes)

        if CONNECTION_FIELDS & changes.keys():
            await self._test_config(apply_changes(existing, changes))

        if "api_key" in changes:
            changes["api_key"] = self.cipher.encrypt(changes["api_key"])
        elif not self.cipher.is_encrypted(stored.api_key):
            # env-derived or seeded records hold plaintext until their first write
            changes["api_key"] = self.cipher.encrypt(stored.api_key)

        updated = await self.store.update(tenant_id, changes)
        self.factory.clear_tenant_cache(tenant_id)
        logger.info("tenant_updated", tenant_id=tenant_id, fields=sorted(changes))
        return self._decrypted(updated)

    async def delete_tenant(self, tenant_id: str) -> bool:
        if tenant_id == DEFAULT_TENANT_ID:
            raise ForbiddenError("Cannot delete default tenant")

        self.factory.clear_tenant_cache(tenant_id)
        deleted = await self.store.delete(tenant_id)
        if deleted:
            logger.info("tenant_deleted", tenant_id=tenant_id)
        return deleted

    async def set_tenant_active(self, tenant_id: str, is_active: bool) -> TenantConfig:
        return await self.update_tenant(
            tenant_id, UpdateTenantRequest(is_active=is_active)
        )

    async def test_tenant(self, tenant_id: str) -> ConnectionTestResult:
        """Check stored credentials against the live API without raising."""
        tenant = await self.get_tenant(tenant_id)
        if tenant is None:
            raise TenantNotFoundError(tenant_id)
        try:
            await self._test_config(tenant)
        except InvalidConfigurationError as exc:
            return ConnectionTestResult(success=False, message=exc.message)
        return ConnectionTestResult(success=True, message="Connection successful")
