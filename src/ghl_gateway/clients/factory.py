"""Per-tenant upstream client cache.

Entries are keyed by tenant id plus a fingerprint of the credential, so a
rotated API key never reuses the client built for the old one. Two
independent limits keep the cache bounded: a size cap with LRU eviction on
insert, and a TTL sweep run by a background task.
"""

from __future__ import annotations

import asyncio
import string
import time
import zlib
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock
from typing import Any

import httpx
import structlog

from ghl_gateway.clients.ghl import GHLApiClient
from ghl_gateway.tenants.models import TenantConfig

logger = structlog.get_logger()

ClientBuilder = Callable[[TenantConfig], GHLApiClient]

_BASE36_DIGITS = string.digits + string.ascii_lowercase


def build_client(
    tenant: TenantConfig,
    *,
    timeout: float = 30.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> GHLApiClient:
    """Default :data:`ClientBuilder`."""
    return GHLApiClient(
        tenant.api_key,
        tenant.location_id,
        base_url=tenant.base_url,
        api_version=tenant.api_version,
        timeout=timeout,
        transport=transport,
    )


def _base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36_DIGITS[rem])
    return "".join(reversed(digits))


def credential_fingerprint(api_key: str) -> str:
    """Short non-cryptographic fingerprint; only distinguishes cache entries."""
    return _base36(zlib.crc32(api_key.encode("utf-8")))


def cache_key(tenant: TenantConfig) -> str:
    return f"{tenant.tenant_id}_{credential_fingerprint(tenant.api_key)}"


@dataclass
class CachedClient:
    client: GHLApiClient
    tenant_id: str
    last_used_at: float


class ApiClientFactory:
    """Hand out one cached :class:`GHLApiClient` per tenant credential.

    Args:
        max_cache_size: Entries kept before the least recently used is evicted.
        ttl_seconds: Idle time after which the sweep drops an entry.
        cleanup_interval_seconds: Period of the background sweep.
        client_builder: Builds a client from a tenant snapshot.
        clock: Monotonic time source (injected by tests).
    """

    def __init__(
        self,
        *,
        max_cache_size: int = 100,
        ttl_seconds: float = 3600.0,
        cleanup_interval_seconds: float = 900.0,
        client_builder: ClientBuilder = build_client,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_cache_size = max_cache_size
        self.ttl_seconds = ttl_seconds
        self.cleanup_interval_seconds = cleanup_interval_seconds
        self._builder = client_builder
        self._clock = clock
        self._cache: OrderedDict[str, CachedClient] = OrderedDict()
        self._lock = Lock()
        self._cleanup_task: asyncio.Task[None] | None = None

    def get_client(self, tenant: TenantConfig) -> GHLApiClient:
        key = cache_key(tenant)
        now = self._clock()

        with self._lock:
            cached = self._cache.get(key)
            if cached is not None:
                cached.last_used_at = now
                self._cache.move_to_end(key)
                return cached.client

            if len(self._cache) >= self.max_cache_size:
                evicted_key, evicted = self._cache.popitem(last=False)
                logger.debug(
                    "api_client_evicted",
                    cache_key=evicted_key,
                    evicted_tenant_id=evicted.tenant_id,
                )

            client = self._builder(tenant)
            self._cache[key] = CachedClient(
                client=client, tenant_id=tenant.tenant_id, last_used_at=now
            )

        logger.debug("api_client_created", tenant_id=tenant.tenant_id)
        return client

    def clear_tenant_cache(self, tenant_id: str) -> int:
        """Drop every entry for ``tenant_id``; returns how many were removed."""
        with self._lock:
            keys = [k for k, v in self._cache.items() if v.tenant_id == tenant_id]
            for key in keys:
                del self._cache[key]
        if keys:
            logger.info("api_client_cache_cleared", tenant_id=tenant_id, removed=len(keys))
        return len(keys)

    def clear_all(self) -> None:
        with self._lock:
            self._cache.clear()

    def cleanup_expired(self) -> int:
        """Remove entries idle for longer than the TTL."""
        cutoff = self._clock() - self.ttl_seconds
        with self._lock:
            expired = [k for k, v in self._cache.items() if v.last_used_at < cutoff]
            for key in expired:
                del self._cache[key]
        return len(expired)

    def stats(self) -> dict[str, Any]:
        now = self._clock()
        with self._lock:
            entries = list(self._cache.values())
        return {
            "size": len(entries),
            "max_size": self.max_cache_size,
            "tenants": sorted({e.tenant_id for e in entries}),
            "oldest_access_age_seconds": (
                now - min(e.last_used_at for e in entries) if entries else None
            ),
            "newest_access_age_seconds": (
                now - max(e.last_used_at for e in entries) if entries else None
            ),
        }

    def __len__(self) -> int:
        return len(self._cache)

    def start(self) -> None:
        """Launch the periodic TTL sweep on the running event loop."""
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.create_task(self._cleanup_loop())

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self.cleanup_interval_seconds)
            try:
                removed = self.cleanup_expired()
                if removed:
                    logger.debug("api_client_cache_cleanup", entries_removed=removed)
            except Exception:
                logger.exception("api_client_cache_cleanup_error")

    def destroy(self) -> None:
        """Stop the sweep and drop every entry."""
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            self._cleanup_task = None
        self.clear_all()
