"""Shared pytest fixtures."""

from __future__ import annotations

import functools
import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from ghl_gateway.clients.factory import ClientBuilder, build_client
from ghl_gateway.config import Environment, Settings
from ghl_gateway.tenants.models import TenantConfig

TenantFactory = Callable[..., TenantConfig]


class FakeUpstream:
    """Records requests sent to the GHL API and answers from a route table.

    Routes map ``(method, path)`` to ``(status, json_body)``; unmatched
    requests get ``default``. ``reject_keys`` answers 401 for any request
    whose bearer token is listed.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.routes: dict[tuple[str, str], tuple[int, dict[str, Any]]] = {}
        self.default: tuple[int, dict[str, Any]] = (200, {"ok": True})
        self.reject_keys: set[str] = set()
        self.transport = httpx.MockTransport(self._handle)
        self.builder: ClientBuilder = functools.partial(
            build_client, transport=self.transport
        )

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        token = request.headers.get("Authorization", "").removeprefix("Bearer ")
        if token in self.reject_keys:
            return httpx.Response(401, json={"message": "Invalid JWT"})
        status, body = self.routes.get(
            (request.method, request.url.path), self.default
        )
        return httpx.Response(status, json=body)

    def json_body(self, index: int = -1) -> Any:
        return json.loads(self.requests[index].content)


@pytest.fixture()
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture()
def make_tenant() -> TenantFactory:
    """Build a valid TenantConfig; keyword overrides replace fields."""

    def _make(tenant_id: str = "acme", **overrides: Any) -> TenantConfig:
        fields: dict[str, Any] = {
            "tenant_id": tenant_id,
            "name": f"{tenant_id.title()} Inc",
            "api_key": f"pit-{tenant_id}-key",
            "location_id": f"loc-{tenant_id}",
        }
        fields.update(overrides)
        return TenantConfig(**fields)

    return _make


@pytest.fixture()
def settings(monkeypatch: pytest.MonkeyPatch) -> Settings:
    """Settings isolated from the host environment and any .env file."""
    for name in ("GHL_API_KEY", "GHL_LOCATION_ID", "GHL_TENANT_ID", "MULTI_TENANT_MODE"):
        monkeypatch.delenv(name, raising=False)
    return Settings(
        _env_file=None,
        environment=Environment.TESTING,
        admin_api_key="admin-secret",  # type: ignore[arg-type]
        tenant_encryption_key="test-encryption-key",  # type: ignore[arg-type]
    )
