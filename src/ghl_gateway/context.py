"""Per-request tenant context and its implicit propagation.

The current :class:`RequestContext` lives in a :class:`~contextvars.ContextVar`.
asyncio copies the context into every task it creates, so code awaited
under :func:`bind_context` (and any task it spawns) sees the same tenant,
while concurrent requests never see each other's value.
"""

from __future__ import annotations

import inspect
import itertools
import time
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, TypeVar

import structlog

from ghl_gateway.errors import NoRequestContextError
from ghl_gateway.tenants.models import TenantConfig

T = TypeVar("T")


class Channel(StrEnum):
    HTTP = "http"
    STDIO = "stdio"
    SSE = "sse"


@dataclass(frozen=True)
class RequestMetadata:
    channel: Channel
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    user_agent: str | None = None
    ip: str | None = None


_request_counter = itertools.count(1)


def generate_request_id() -> str:
    """``req_<epoch-ms>_<n>``, unique within the process."""
    return f"req_{int(time.time() * 1000)}_{next(_request_counter)}"


@dataclass(frozen=True)
class RequestContext:
    """Tenant identity for one request. Never mutated after creation."""

    tenant: TenantConfig
    request_id: str
    metadata: RequestMetadata

    @property
    def tenant_id(self) -> str:
        return self.tenant.tenant_id

    @classmethod
    def create(
        cls,
        tenant: TenantConfig,
        channel: Channel = Channel.HTTP,
        *,
        user_agent: str | None = None,
        ip: str | None = None,
        request_id: str | None = None,
    ) -> RequestContext:
        return cls(
            tenant=tenant,
            request_id=request_id or generate_request_id(),
            metadata=RequestMetadata(channel=channel, user_agent=user_agent, ip=ip),
        )


_current_context: ContextVar[RequestContext | None] = ContextVar(
    "ghl_request_context", default=None
)


@contextmanager
def bind_context(ctx: RequestContext) -> Iterator[RequestContext]:
    """Make ``ctx`` current for the enclosed block.

    ``tenant_id`` and ``request_id`` are bound into structlog's contextvars
    for the same extent, so every log event emitted inside carries them.
    """
    token = _current_context.set(ctx)
    try:
        with structlog.contextvars.bound_contextvars(
            tenant_id=ctx.tenant_id, request_id=ctx.request_id
        ):
            yield ctx
    finally:
        _current_context.reset(token)


async def run_with_context(
    ctx: RequestContext,
    fn: Callable[..., Awaitable[T] | T],
    *args: Any,
    **kwargs: Any,
) -> T:
    """Call ``fn`` (sync or async) with ``ctx`` bound for its whole duration."""
    with bind_context(ctx):
        result = fn(*args, **kwargs)
        if inspect.isawaitable(result):
            return await result
        return result


def get_current_context() -> RequestContext | None:
    """The context bound to the running task, or ``None`` outside a request."""
    return _current_context.get()


def require_context() -> RequestContext:
    ctx = _current_context.get()
    if ctx is None:
        raise NoRequestContextError(
            "No tenant context available; the call is not running inside a request"
        )
    return ctx
