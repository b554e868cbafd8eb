"""Tests for tenant configuration loading and store assembly."""

import json
from pathlib import Path

import pytest
from pydantic import SecretStr

from ghl_gateway.config import Settings, StoreBackend
from ghl_gateway.tenants.loader import (
    TenantConfigLoadError,
    create_tenant_store,
    default_settings_from_env,
    load_seed,
    load_tenants_from_env,
    load_tenants_from_file,
)
from ghl_gateway.tenants.store import JsonFileTenantStore


def _write(path: Path, document: dict) -> Path:
    path.write_text(json.dumps(document))
    return path


class TestLoadFromFile:
    def test_entries_inherit_defaults(self, tmp_path: Path) -> None:
        path = _write(
            tmp_path / "tenants.json",
            {
                "tenants": [
                    {"tenantId": "acme", "apiKey": "pit-a", "locationId": "loc-a"},
                    {
                        "tenantId": "globex",
                        "name": "Globex",
                        "apiKey": "pit-g",
                        "locationId": "loc-g",
                        "isActive": False,
                        "rateLimits": {"maxRequestsPerMinute": 5},
                    },
                ],
                "defaultSettings": {"rateLimits": {"maxRequestsPerMinute": 30}},
            },
        )

        seed = load_tenants_from_file(path)
        tenants = {t.tenant_id: t for t in seed.tenants}

        assert tenants["acme"].name == "acme"
        assert tenants["acme"].rate_limits.max_requests_per_minute == 30
        assert tenants["globex"].rate_limits.max_requests_per_minute == 5
        assert tenants["globex"].is_active is False
        assert seed.default_settings["rateLimits"]["maxRequestsPerMinute"] == 30

    def test_legacy_config_key(self, tmp_path: Path) -> None:
        path = _write(
            tmp_path / "tenants.json",
            {
                "tenants": [
                    {
                        "tenantId": "acme",
                        "apiKey": "pit-a",
                        "locationId": "loc-a",
                        "config": {"features": {"sms": False}},
                    }
                ]
            },
        )
        (tenant,) = load_tenants_from_file(path).tenants
        assert tenant.feature_enabled("sms") is False

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "tenants.json"
        path.write_text("{not json")
        with pytest.raises(TenantConfigLoadError):
            load_tenants_from_file(path)

    def test_invalid_entry(self, tmp_path: Path) -> None:
        path = _write(tmp_path / "tenants.json", {"tenants": [{"tenantId": "acme"}]})
        with pytest.raises(TenantConfigLoadError):
            load_tenants_from_file(path)


class TestLoadFromEnv:
    def test_numbered_groups(self) -> None:
        environ = {
            "TENANT_1_ID": "acme",
            "TENANT_1_NAME": "Acme",
            "TENANT_1_API_KEY": "pit-a",
            "TENANT_1_LOCATION_ID": "loc-a",
            # incomplete group is skipped
            "TENANT_2_API_KEY": "pit-b",
            "TENANT_3_API_KEY": "pit-c",
            "TENANT_3_LOCATION_ID": "loc-c",
        }

        seed = load_tenants_from_env(environ)

        assert [t.tenant_id for t in seed.tenants] == ["acme", "tenant-3"]
        assert seed.tenants[1].name == "Tenant 3"

    def test_group_eleven_ignored(self) -> None:
        environ = {"TENANT_11_API_KEY": "pit", "TENANT_11_LOCATION_ID": "loc"}
        assert load_tenants_from_env(environ).tenants == []

    def test_default_settings(self) -> None:
        defaults = default_settings_from_env(
            {"RATE_LIMIT_MAX_REQUESTS": "10", "ENABLE_SMS_TOOLS": "true"}
        )
        assert defaults["rateLimits"]["maxRequestsPerMinute"] == 10
        assert defaults["rateLimits"]["maxSmsPerDay"] == 500
        assert defaults["features"]["sms"] is True
        assert defaults["features"]["contacts"] is True


class TestStoreAssembly:
    def test_single_tenant_mode_ignores_groups(self, settings: Settings) -> None:
        environ = {"TENANT_1_API_KEY": "pit", "TENANT_1_LOCATION_ID": "loc"}
        assert load_seed(settings, environ).tenants == []

    def test_multi_tenant_mode_prefers_file(
        self, settings: Settings, tmp_path: Path
    ) -> None:
        path = _write(
            tmp_path / "tenants.json",
            {"tenants": [{"tenantId": "acme", "apiKey": "k", "locationId": "l"}]},
        )
        configured = settings.model_copy(
            update={"multi_tenant_mode": True, "tenant_config_path": path}
        )
        environ = {"TENANT_1_API_KEY": "pit", "TENANT_1_LOCATION_ID": "loc"}

        assert [t.tenant_id for t in load_seed(configured, environ).tenants] == ["acme"]

    async def test_env_default_layered_under_primary(self, settings: Settings) -> None:
        configured = settings.model_copy(
            update={
                "multi_tenant_mode": True,
                "tenant_config_path": Path("/nonexistent/tenants.json"),
                "ghl_api_key": SecretStr("pit-env"),
                "ghl_location_id": "loc-env",
            }
        )
        environ = {
            "TENANT_1_ID": "acme",
            "TENANT_1_API_KEY": "pit-a",
            "TENANT_1_LOCATION_ID": "loc-a",
        }

        store = create_tenant_store(configured, environ)

        assert await store.exists("acme")
        assert (await store.get("default")).api_key == "pit-env"

    async def test_file_backend(self, settings: Settings, tmp_path: Path) -> None:
        configured = settings.model_copy(
            update={
                "tenant_store_backend": StoreBackend.FILE,
                "tenant_config_path": tmp_path / "tenants.json",
            }
        )
        store = create_tenant_store(configured)
        assert isinstance(store.primary, JsonFileTenantStore)
        assert await store.get_all() == []
