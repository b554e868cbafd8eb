"""Tests for the tenant admin endpoints."""

import pytest

ADMIN_HEADERS = {"Authorization": "Bearer admin-secret"}

NEW_TENANT = {
    "tenantId": "acme",
    "name": "Acme Inc",
    "apiKey": "pit-new-key",
    "locationId": "loc-new",
}


class TestAdminAuth:
    async def test_missing_token_is_401(self, make_client) -> None:
        client = await make_client()
        resp = await client.get("/tenants")
        assert resp.status_code == 401
        assert resp.json()["error"] == "unauthenticated"

    async def test_wrong_token_is_403(self, make_client) -> None:
        client = await make_client()
        resp = await client.get(
            "/tenants", headers={"Authorization": "Bearer nope"}
        )
        assert resp.status_code == 403
        assert resp.json()["error"] == "unauthorized"

    async def test_admin_tokens_list_is_accepted(self, make_client) -> None:
        client = await make_client(admin_tokens=["ops-token"])
        resp = await client.get(
            "/tenants", headers={"Authorization": "Bearer ops-token"}
        )
        assert resp.status_code == 200

    async def test_nothing_configured_rejects_everything(self, make_client) -> None:
        client = await make_client(admin_api_key=None, admin_tokens=[])
        resp = await client.get("/tenants", headers=ADMIN_HEADERS)
        assert resp.status_code == 403

    async def test_tenant_header_not_required(self, make_client) -> None:
        client = await make_client(require_tenant=True)
        resp = await client.get("/tenants", headers=ADMIN_HEADERS)
        assert resp.status_code == 200


class TestCreateTenant:
    async def test_create(self, make_client, upstream) -> None:
        client = await make_client()

        resp = await client.post("/tenants", json=NEW_TENANT, headers=ADMIN_HEADERS)

        assert resp.status_code == 201
        body = resp.json()
        assert body["tenantId"] == "acme"
        assert body["hasApiKey"] is True
        assert "apiKey" not in body
        check_call = upstream.requests[0]
        assert check_call.url.path == "/locations/loc-new"
        assert check_call.headers["Authorization"] == "Bearer pit-new-key"

    async def test_credential_is_encrypted_at_rest(self, make_client) -> None:
        client = await make_client()
        await client.post("/tenants", json=NEW_TENANT, headers=ADMIN_HEADERS)

        stored = await client.app.state.gateway.store.get("acme")

        assert stored.api_key != "pit-new-key"
        assert stored.api_key.count(":") == 2

    async def test_generated_id(self, make_client) -> None:
        client = await make_client()
        body = {k: v for k, v in NEW_TENANT.items() if k != "tenantId"}

        resp = await client.post("/tenants", json=body, headers=ADMIN_HEADERS)

        assert resp.status_code == 201
        assert resp.json()["tenantId"].startswith("tenant_")

    async def test_duplicate_is_409(self, make_client, make_tenant) -> None:
        client = await make_client([make_tenant("acme")])
        resp = await client.post("/tenants", json=NEW_TENANT, headers=ADMIN_HEADERS)
        assert resp.status_code == 409
        assert resp.json()["error"] == "already_exists"

    @pytest.mark.parametrize(
        ("override", "message"),
        [
            ({"name": ""}, "Tenant name is required"),
            ({"apiKey": " "}, "API key is required"),
            ({"locationId": ""}, "Location ID is required"),
            ({"tenantId": "bad id!"}, "Tenant ID must contain only"),
        ],
    )
    async def test_validation(
        self, make_client, upstream, override, message
    ) -> None:
        client = await make_client()
        resp = await client.post(
            "/tenants", json={**NEW_TENANT, **override}, headers=ADMIN_HEADERS
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "validation"
        assert resp.json()["message"].startswith(message)
        assert upstream.requests == []

    async def test_rejected_credentials(self, make_client, upstream) -> None:
        upstream.reject_keys.add("pit-new-key")
        client = await make_client()

        resp = await client.post("/tenants", json=NEW_TENANT, headers=ADMIN_HEADERS)

        assert resp.status_code == 400
        assert resp.json() == {
            "error": "invalid_configuration",
            "message": "Invalid tenant configuration: Invalid JWT",
        }
        assert await client.app.state.gateway.store.get("acme") is None


class TestReadTenants:
    async def test_list_hides_credentials(self, make_client, make_tenant) -> None:
        client = await make_client([make_tenant("acme"), make_tenant("globex")])

        resp = await client.get("/tenants", headers=ADMIN_HEADERS)

        body = resp.json()
        assert body["total"] == 2
        assert {t["tenantId"] for t in body["tenants"]} == {"acme", "globex"}
        assert all("apiKey" not in t for t in body["tenants"])

    async def test_get_one(self, make_client, make_tenant) -> None:
        client = await make_client([make_tenant("acme")])
        resp = await client.get("/tenants/acme", headers=ADMIN_HEADERS)
        assert resp.status_code == 200
        assert resp.json()["locationId"] == "loc-acme"

    async def test_get_unknown_is_404(self, make_client) -> None:
        client = await make_client()
        resp = await client.get("/tenants/ghost", headers=ADMIN_HEADERS)
        assert resp.status_code == 404
        assert resp.json() == {"error": "not_found", "message": "Tenant ghost not found"}


class TestUpdateTenant:
    async def test_plain_field_skips_live_test(
        self, make_client, make_tenant, upstream
    ) -> None:
        client = await make_client([make_tenant("acme")])

        resp = await client.put(
            "/tenants/acme", json={"name": "Acme Corp"}, headers=ADMIN_HEADERS
        )

        assert resp.status_code == 200
        assert resp.json()["name"] == "Acme Corp"
        assert upstream.requests == []

    async def test_new_key_is_tested_and_clears_cache(
        self, make_client, make_tenant, upstream
    ) -> None:
        tenant = make_tenant("acme")
        client = await make_client([tenant])
        factory = client.app.state.gateway.factory
        factory.get_client(tenant)
        assert len(factory) == 1

        resp = await client.put(
            "/tenants/acme", json={"apiKey": "pit-rotated"}, headers=ADMIN_HEADERS
        )

        assert resp.status_code == 200
        assert upstream.requests[0].headers["Authorization"] == "Bearer pit-rotated"
        assert len(factory) == 0

    async def test_rejected_new_location(
        self, make_client, make_tenant, upstream
    ) -> None:
        upstream.routes[("GET", "/locations/loc-wrong")] = (
            404,
            {"message": "Location not found"},
        )
        client = await make_client([make_tenant("acme")])

        resp = await client.put(
            "/tenants/acme", json={"locationId": "loc-wrong"}, headers=ADMIN_HEADERS
        )

        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_configuration"
        stored = await client.app.state.gateway.store.get("acme")
        assert stored.location_id == "loc-acme"

    async def test_deactivate(self, make_client, make_tenant) -> None:
        client = await make_client([make_tenant("acme")])

        resp = await client.put(
            "/tenants/acme", json={"isActive": False}, headers=ADMIN_HEADERS
        )
        tool_resp = await client.get("/api/tools", headers={"x-tenant-id": "acme"})

        assert resp.json()["isActive"] is False
        assert tool_resp.status_code == 403

    async def test_unknown_is_404(self, make_client) -> None:
        client = await make_client()
        resp = await client.put(
            "/tenants/ghost", json={"name": "x"}, headers=ADMIN_HEADERS
        )
        assert resp.status_code == 404


class TestDeleteTenant:
    async def test_delete(self, make_client, make_tenant) -> None:
        client = await make_client([make_tenant("acme")])

        first = await client.delete("/tenants/acme", headers=ADMIN_HEADERS)
        second = await client.delete("/tenants/acme", headers=ADMIN_HEADERS)

        assert first.status_code == 204
        assert second.status_code == 404

    async def test_default_is_protected(self, make_client, make_tenant) -> None:
        client = await make_client([make_tenant("default")])

        resp = await client.delete("/tenants/default", headers=ADMIN_HEADERS)

        assert resp.status_code == 403
        assert resp.json() == {
            "error": "forbidden",
            "message": "Cannot delete default tenant",
        }


class TestConnectionTest:
    async def test_success(self, make_client, make_tenant) -> None:
        client = await make_client([make_tenant("acme")])
        resp = await client.post("/tenants/acme/test", headers=ADMIN_HEADERS)
        assert resp.json() == {"success": True, "message": "Connection successful"}

    async def test_failure_is_reported_not_raised(
        self, make_client, make_tenant, upstream
    ) -> None:
        upstream.reject_keys.add("pit-acme-key")
        client = await make_client([make_tenant("acme")])

        resp = await client.post("/tenants/acme/test", headers=ADMIN_HEADERS)

        assert resp.status_code == 200
        assert resp.json()["success"] is False
        assert "Invalid JWT" in resp.json()["message"]

    async def test_unknown_is_404(self, make_client) -> None:
        client = await make_client()
        resp = await client.post("/tenants/ghost/test", headers=ADMIN_HEADERS)
        assert resp.status_code == 404
