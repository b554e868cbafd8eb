"""Fixtures for API tests: an app per test, wired to a fake upstream."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable, Iterable
from typing import Any

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from ghl_gateway.api.app import create_app
from ghl_gateway.config import Settings
from ghl_gateway.tenants.models import TenantConfig
from ghl_gateway.tenants.store import InMemoryTenantStore, TenantStore

ClientFactory = Callable[..., Awaitable[AsyncClient]]


@pytest.fixture()
async def make_client(
    settings: Settings, upstream
) -> AsyncGenerator[ClientFactory]:
    """Build an app over the given tenants and return a client for it.

    Keyword overrides are applied to the test settings.
    """
    opened: list[AsyncClient] = []

    async def _make(
        tenants: Iterable[TenantConfig] = (),
        *,
        store: TenantStore | None = None,
        **overrides: Any,
    ) -> AsyncClient:
        app: FastAPI = create_app(
            settings.model_copy(update=overrides),
            store=store if store is not None else InMemoryTenantStore(tenants),
            client_builder=upstream.builder,
        )
        client = AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
        client.app = app  # type: ignore[attr-defined]
        opened.append(client)
        return client

    yield _make

    for client in opened:
        await client.aclose()
