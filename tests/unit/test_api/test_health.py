"""Tests for the health endpoint."""


class TestHealth:
    async def test_health(self, make_client, make_tenant) -> None:
        client = await make_client([make_tenant("acme"), make_tenant("globex")])

        resp = await client.get("/health")

        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["tenantCount"] == 2
        assert body["multiTenantMode"] is False
        assert body["clientCacheSize"] == 0
        assert "timestamp" in body

    async def test_cors_exposes_tenant_headers(self, make_client, make_tenant) -> None:
        client = await make_client(
            [make_tenant("acme")], cors_allowed_origins=["https://dash.example.com"]
        )

        resp = await client.get(
            "/api/tools",
            headers={"x-tenant-id": "acme", "Origin": "https://dash.example.com"},
        )

        exposed = resp.headers["access-control-expose-headers"]
        assert "X-Tenant-ID" in exposed
        assert "X-RateLimit-Remaining" in exposed
