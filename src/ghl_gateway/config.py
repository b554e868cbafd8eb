"""Centralized application configuration via environment variables."""

from enum import StrEnum
from functools import lru_cache
from pathlib import Path

from pydantic import SecretStr, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_GHL_BASE_URL = "https://services.leadconnectorhq.com"
DEFAULT_GHL_API_VERSION = "2021-07-28"


class Environment(StrEnum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class StoreBackend(StrEnum):
    """Where writable tenant records live."""

    MEMORY = "memory"
    FILE = "file"
    DATABASE = "database"


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Credentials and admin keys use SecretStr to prevent accidental logging.
    Numbered tenant groups (``TENANT_<n>_*``) are not modelled here; they are
    read by :mod:`ghl_gateway.tenants.loader` straight from the environment.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- App ---
    environment: Environment = Environment.DEVELOPMENT
    log_level: str = "DEBUG"
    # --- CORS ---
    cors_allowed_origins: list[str] = []
    cors_allow_credentials: bool = False
    cors_allowed_methods: list[str] = ["GET", "POST", "PUT", "DELETE"]
    cors_allowed_headers: list[str] = [
        "Content-Type",
        "Authorization",
        "X-Tenant-ID",
    ]

    # --- PostgreSQL (tenant_store_backend=database) ---
    postgres_user: str = "ghl_gateway"
    postgres_password: SecretStr = SecretStr("secret")
    postgres_db: str = "ghl_gateway"
    postgres_host: str = "localhost"
    postgres_port: int = 5432

    @computed_field  # type: ignore[prop-decorator]
    @property
    def database_url(self) -> str:
        """Assemble database URL from components.

        Uses psycopg v3 driver which supports both sync (create_engine)
        and async (create_async_engine) modes natively.
        """
        password = self.postgres_password.get_secret_value()
        return (
            f"postgresql+psycopg://{self.postgres_user}:{password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # --- Tenancy ---
    multi_tenant_mode: bool = False
    tenant_config_path: Path = Path("config/tenants.json")
    tenant_store_backend: StoreBackend = StoreBackend.MEMORY
    tenant_encryption_key: SecretStr = SecretStr(
        "default-encryption-key-change-in-production"
    )

    # --- Default (single-tenant) GoHighLevel credentials ---
    ghl_api_key: SecretStr | None = None
    ghl_location_id: str | None = None
    ghl_base_url: str = DEFAULT_GHL_BASE_URL
    ghl_api_version: str = DEFAULT_GHL_API_VERSION
    upstream_timeout_seconds: float = 30.0

    # --- Tenant resolution ---
    tenant_header_name: str = "x-tenant-id"
    tenant_query_param: str = "tenant"
    enable_default_fallback: bool = True
    require_tenant: bool = False
    tenant_exclude_paths: list[str] = [
        "/health",
        "/docs",
        "/openapi.json",
        "/redoc",
        "/tenants",
    ]

    # --- Admin surface ---
    admin_api_key: SecretStr | None = None
    admin_tokens: list[str] = []

    # --- Per-tenant rate limiting ---
    rate_limit_window_seconds: int = 60
    rate_limit_max_requests: int = 60

    # --- API client cache ---
    client_cache_max_size: int = 100
    client_cache_ttl_seconds: float = 3600.0
    client_cache_cleanup_interval_seconds: float = 900.0

    # --- Convenience properties ---
    @property
    def is_dev(self) -> bool:
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_prod(self) -> bool:
        return self.environment == Environment.PRODUCTION

    @property
    def is_testing(self) -> bool:
        return self.environment == Environment.TESTING


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings singleton.

    Usage::

        from ghl_gateway.config import get_settings
        settings = get_settings()
    """
    return Settings()


settings = get_settings()
