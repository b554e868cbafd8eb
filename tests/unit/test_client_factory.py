"""Tests for the per-tenant API client cache."""

import asyncio

from ghl_gateway.clients.factory import ApiClientFactory, cache_key, credential_fingerprint


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestGetClient:
    def test_same_tenant_same_instance(self, make_tenant) -> None:
        factory = ApiClientFactory()
        tenant = make_tenant("acme")
        assert factory.get_client(tenant) is factory.get_client(tenant)
        assert len(factory) == 1

    def test_client_uses_tenant_config(self, make_tenant) -> None:
        factory = ApiClientFactory()
        client = factory.get_client(
            make_tenant("acme", base_url="https://ghl.example.com/", api_version="v9")
        )
        assert client.location_id == "loc-acme"
        assert client.base_url == "https://ghl.example.com"
        assert client.api_version == "v9"
        assert "pit-acme-key" not in repr(client)

    def test_different_tenants_different_instances(self, make_tenant) -> None:
        factory = ApiClientFactory()
        assert factory.get_client(make_tenant("acme")) is not factory.get_client(
            make_tenant("globex")
        )

    def test_credential_rotation_builds_new_client(self, make_tenant) -> None:
        factory = ApiClientFactory()
        old = factory.get_client(make_tenant("acme", api_key="pit-old"))
        new = factory.get_client(make_tenant("acme", api_key="pit-new"))
        assert old is not new
        assert cache_key(make_tenant("acme", api_key="pit-old")) != cache_key(
            make_tenant("acme", api_key="pit-new")
        )

    def test_cache_key_shape(self, make_tenant) -> None:
        key = cache_key(make_tenant("acme", api_key="pit-1"))
        assert key == f"acme_{credential_fingerprint('pit-1')}"
        assert credential_fingerprint("pit-1").isalnum()

    def test_builds_once_per_key(self, make_tenant) -> None:
        built = []

        def builder(tenant):
            built.append(tenant.tenant_id)
            return object()

        factory = ApiClientFactory(client_builder=builder)
        for _ in range(5):
            factory.get_client(make_tenant("acme"))
        assert built == ["acme"]


class TestInvalidation:
    def test_clear_tenant_cache(self, make_tenant) -> None:
        factory = ApiClientFactory()
        first = factory.get_client(make_tenant("acme"))
        factory.get_client(make_tenant("acme", api_key="pit-rotated"))
        other = factory.get_client(make_tenant("globex"))

        assert factory.clear_tenant_cache("acme") == 2

        assert factory.get_client(make_tenant("acme")) is not first
        assert factory.get_client(make_tenant("globex")) is other

    def test_clear_all_and_stats(self, make_tenant) -> None:
        clock = FakeClock()
        factory = ApiClientFactory(clock=clock)
        factory.get_client(make_tenant("acme"))
        clock.advance(10)
        factory.get_client(make_tenant("globex"))

        stats = factory.stats()
        assert stats["size"] == 2
        assert stats["tenants"] == ["acme", "globex"]
        assert stats["oldest_access_age_seconds"] == 10
        assert stats["newest_access_age_seconds"] == 0

        factory.clear_all()
        assert factory.stats()["size"] == 0


class TestEviction:
    def test_lru_evicts_least_recently_used(self, make_tenant) -> None:
        clock = FakeClock()
        factory = ApiClientFactory(max_cache_size=3, clock=clock)
        a = factory.get_client(make_tenant("a"))
        clock.advance(1)
        b = factory.get_client(make_tenant("b"))
        clock.advance(1)
        c = factory.get_client(make_tenant("c"))
        clock.advance(1)
        # touch "a" so "b" becomes least recently used
        assert factory.get_client(make_tenant("a")) is a
        clock.advance(1)

        factory.get_client(make_tenant("d"))

        assert len(factory) == 3
        assert factory.stats()["tenants"] == ["a", "c", "d"]
        assert factory.get_client(make_tenant("a")) is a
        assert factory.get_client(make_tenant("c")) is c
        assert factory.get_client(make_tenant("b")) is not b

    def test_ttl_cleanup(self, make_tenant) -> None:
        clock = FakeClock()
        factory = ApiClientFactory(ttl_seconds=60, clock=clock)
        factory.get_client(make_tenant("stale"))
        clock.advance(30)
        factory.get_client(make_tenant("fresh"))
        clock.advance(31)

        assert factory.cleanup_expired() == 1
        assert factory.stats()["tenants"] == ["fresh"]

    async def test_background_sweep_runs_without_eviction_pressure(
        self, make_tenant
    ) -> None:
        factory = ApiClientFactory(
            max_cache_size=100, ttl_seconds=0.01, cleanup_interval_seconds=0.01
        )
        factory.get_client(make_tenant("acme"))
        factory.start()
        try:
            for _ in range(100):
                await asyncio.sleep(0.01)
                if len(factory) == 0:
                    break
            assert len(factory) == 0
        finally:
            factory.destroy()

    async def test_destroy_stops_sweep_and_clears(self, make_tenant) -> None:
        factory = ApiClientFactory(cleanup_interval_seconds=0.01)
        factory.start()
        task = factory._cleanup_task
        factory.get_client(make_tenant("acme"))

        factory.destroy()
        await asyncio.sleep(0)

        assert len(factory) == 0
        assert task.cancelled() or task.done()
