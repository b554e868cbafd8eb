"""Tenant configuration loading and store assembly.

Sources, in the order they are consulted at startup:

- single-tenant mode: only the ``GHL_API_KEY`` / ``GHL_LOCATION_ID`` pair,
  exposed as the ``default`` tenant;
- multi-tenant mode: the JSON tenant-list file if it exists, otherwise the
  numbered ``TENANT_<n>_*`` environment groups.

The default credential pair is always layered underneath as a read-only
fallback, whatever the mode.
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
from pydantic import ValidationError

from ghl_gateway.config import Settings, StoreBackend
from ghl_gateway.tenants.models import RateLimits, TenantConfig
from ghl_gateway.tenants.store import (
    CompositeTenantStore,
    EnvTenantStore,
    InMemoryTenantStore,
    JsonFileTenantStore,
    TenantStore,
)

logger = structlog.get_logger()

MAX_ENV_TENANT_GROUPS = 10


class TenantConfigLoadError(Exception):
    """Tenant-list file exists but cannot be parsed."""


def _env_flag(environ: Mapping[str, str], name: str, *, default: bool) -> bool:
    value = environ.get(name)
    if value is None:
        return default
    return value.strip().lower() == "true"


def default_settings_from_env(
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Build the ``defaultSettings`` block from environment variables."""
    env = os.environ if environ is None else environ
    return {
        "rateLimits": RateLimits(
            max_requests_per_minute=int(env.get("RATE_LIMIT_MAX_REQUESTS", "60")),
            max_contacts_per_day=int(env.get("MAX_CONTACTS_PER_DAY", "1000")),
            max_sms_per_day=int(env.get("MAX_SMS_PER_DAY", "500")),
            max_emails_per_day=int(env.get("MAX_EMAILS_PER_DAY", "1000")),
        ).model_dump(by_alias=True),
        "features": {
            "voiceAI": _env_flag(env, "ENABLE_VOICE_AI_TOOLS", default=False),
            "sms": _env_flag(env, "ENABLE_SMS_TOOLS", default=False),
            "appointments": _env_flag(env, "ENABLE_APPOINTMENT_TOOLS", default=False),
            "contacts": _env_flag(env, "ENABLE_CONTACT_TOOLS", default=True),
            "conversations": _env_flag(
                env, "ENABLE_CONVERSATION_TOOLS", default=True
            ),
        },
        "security": {
            "requireHTTPS": env.get("ENVIRONMENT") == "production",
            "encryptAPIKeys": _env_flag(env, "ENCRYPT_API_KEYS", default=True),
            "auditLogging": _env_flag(env, "ENABLE_AUDIT_LOGGING", default=False),
        },
    }


@dataclass
class TenantSeed:
    """Tenants and shared defaults loaded from one configuration source."""

    tenants: list[TenantConfig] = field(default_factory=list)
    default_settings: dict[str, Any] = field(default_factory=dict)


def load_tenants_from_file(path: Path) -> TenantSeed:
    """Parse the tenant-list file.

    Entries without ``rateLimits`` inherit ``defaultSettings.rateLimits``;
    ``name`` defaults to the tenant id.

    Raises:
        TenantConfigLoadError: unreadable JSON or an invalid tenant entry.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.error("tenant_file_load_failed", path=str(path), error=str(exc))
        raise TenantConfigLoadError(
            f"Failed to load tenant configuration from {path}"
        ) from exc

    default_settings = data.get("defaultSettings") or default_settings_from_env()
    default_limits = default_settings.get("rateLimits") or {}

    tenants: list[TenantConfig] = []
    for entry in data.get("tenants") or []:
        entry = dict(entry)
        entry.setdefault("name", entry.get("tenantId"))
        entry.setdefault("rateLimits", default_limits)
        # older files kept per-tenant settings under "config"
        if "settings" not in entry and "config" in entry:
            entry["settings"] = entry.pop("config")
        try:
            tenants.append(TenantConfig.model_validate(entry))
        except ValidationError as exc:
            raise TenantConfigLoadError(
                f"Invalid tenant entry {entry.get('tenantId')!r} in {path}"
            ) from exc

    logger.info("tenant_file_loaded", path=str(path), tenant_count=len(tenants))
    return TenantSeed(tenants=tenants, default_settings=default_settings)


def load_tenants_from_env(
    environ: Mapping[str, str] | None = None,
    *,
    base_url: str | None = None,
) -> TenantSeed:
    """Collect ``TENANT_<n>_ID/_NAME/_API_KEY/_LOCATION_ID`` groups (n = 1..10).

    A group is used only when both its API key and location id are set.
    """
    env = os.environ if environ is None else environ
    extra: dict[str, Any] = {"base_url": base_url} if base_url else {}

    tenants: list[TenantConfig] = []
    for i in range(1, MAX_ENV_TENANT_GROUPS + 1):
        api_key = env.get(f"TENANT_{i}_API_KEY")
        location_id = env.get(f"TENANT_{i}_LOCATION_ID")
        if not api_key or not location_id:
            continue
        tenants.append(
            TenantConfig(
                tenant_id=env.get(f"TENANT_{i}_ID") or f"tenant-{i}",
                name=env.get(f"TENANT_{i}_NAME") or f"Tenant {i}",
                api_key=api_key,
                location_id=location_id,
                **extra,
            )
        )

    return TenantSeed(tenants=tenants, default_settings=default_settings_from_env(env))


def load_seed(settings: Settings, environ: Mapping[str, str] | None = None) -> TenantSeed:
    """Load multi-tenant records; empty in single-tenant mode."""
    if not settings.multi_tenant_mode:
        return TenantSeed(default_settings=default_settings_from_env(environ))
    if settings.tenant_config_path.exists():
        return load_tenants_from_file(settings.tenant_config_path)
    return load_tenants_from_env(environ, base_url=settings.ghl_base_url)


def create_env_store(settings: Settings) -> EnvTenantStore:
    api_key = settings.ghl_api_key.get_secret_value() if settings.ghl_api_key else None
    return EnvTenantStore.from_credentials(
        api_key,
        settings.ghl_location_id,
        base_url=settings.ghl_base_url,
        api_version=settings.ghl_api_version,
    )


def create_tenant_store(
    settings: Settings,
    environ: Mapping[str, str] | None = None,
) -> CompositeTenantStore:
    """Assemble the process tenant store from settings.

    Primary backend per ``tenant_store_backend``; the env-derived ``default``
    tenant is always the read-only fallback underneath it.
    """
    primary: TenantStore
    if settings.tenant_store_backend == StoreBackend.DATABASE:
        from ghl_gateway.storage.database import async_session
        from ghl_gateway.storage.tenant_store import SqlTenantStore

        primary = SqlTenantStore(async_session)
    elif settings.tenant_store_backend == StoreBackend.FILE:
        path = settings.tenant_config_path
        seed = load_tenants_from_file(path) if path.exists() else TenantSeed()
        primary = JsonFileTenantStore(
            path,
            seed.tenants,
            default_settings=seed.default_settings or default_settings_from_env(environ),
        )
    else:
        seed = load_seed(settings, environ)
        primary = InMemoryTenantStore(seed.tenants)

    logger.info(
        "tenant_store_created",
        backend=str(settings.tenant_store_backend),
        multi_tenant_mode=settings.multi_tenant_mode,
    )
    return CompositeTenantStore(primary, create_env_store(settings))
