"""Tenant data model and admin request/response shapes.

Field names are snake_case in Python and camelCase on the wire (tenant-list
file, admin REST API), matching the dashboard's JSON.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ghl_gateway.config import DEFAULT_GHL_API_VERSION, DEFAULT_GHL_BASE_URL

DEFAULT_TENANT_ID = "default"
TENANT_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")

# Fields whose change requires a live upstream test before saving.
CONNECTION_FIELDS: frozenset[str] = frozenset({"api_key", "location_id", "base_url"})


def utcnow() -> datetime:
    return datetime.now(UTC)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RateLimits(_CamelModel):
    """Numeric per-tenant ceilings.

    ``max_requests_per_minute`` left unset means the process-wide
    ``RATE_LIMIT_MAX_REQUESTS`` applies.
    """

    max_requests_per_minute: int | None = None
    max_contacts_per_day: int = 1000
    max_sms_per_day: int = 500
    max_emails_per_day: int = 1000


class TenantConfig(_CamelModel):
    """Immutable snapshot of one tenant's configuration.

    ``api_key`` is encrypted while the record sits in a store and decrypted
    only in the copies handed out by the config manager. It is excluded from
    ``repr`` so the credential never reaches a log line through formatting.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    tenant_id: str
    name: str
    api_key: str = Field(repr=False)
    location_id: str
    base_url: str = DEFAULT_GHL_BASE_URL
    api_version: str = Field(
        default=DEFAULT_GHL_API_VERSION,
        validation_alias=AliasChoices("apiVersion", "api_version", "version"),
    )
    settings: dict[str, Any] = Field(default_factory=dict)
    rate_limits: RateLimits = Field(default_factory=RateLimits)
    metadata: dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def feature_enabled(self, feature: str, default: bool = True) -> bool:
        """Look up a feature flag in ``settings["features"]``."""
        features = self.settings.get("features") or {}
        return bool(features.get(feature, default))


class TenantSummary(_CamelModel):
    """Tenant listing entry. Has no credential field at all."""

    tenant_id: str
    name: str
    location_id: str
    base_url: str
    api_version: str
    settings: dict[str, Any]
    rate_limits: RateLimits
    metadata: dict[str, Any]
    is_active: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_config(cls, tenant: TenantConfig) -> TenantSummary:
        return cls(**tenant.model_dump(exclude={"api_key"}))


class CreateTenantRequest(_CamelModel):
    """Request body for ``POST /tenants``.

    Validation of required fields and the id pattern is done by the
    config manager so every entry point (REST, CLI) shares it.
    """

    tenant_id: str | None = None
    name: str = ""
    api_key: str = Field(default="", repr=False)
    location_id: str = ""
    base_url: str | None = None
    api_version: str | None = None
    settings: dict[str, Any] | None = None
    rate_limits: RateLimits | None = None
    metadata: dict[str, Any] | None = None


class UpdateTenantRequest(_CamelModel):
    """Request body for ``PUT /tenants/{id}``. Unset fields are left alone."""

    name: str | None = None
    api_key: str | None = Field(default=None, repr=False)
    location_id: str | None = None
    base_url: str | None = None
    api_version: str | None = None
    settings: dict[str, Any] | None = None
    rate_limits: RateLimits | None = None
    metadata: dict[str, Any] | None = None
    is_active: bool | None = None

    def changes(self) -> dict[str, Any]:
        """Fields explicitly provided with a non-null value."""
        return {
            key: getattr(self, key)
            for key in self.model_fields_set
            if getattr(self, key) is not None
        }
