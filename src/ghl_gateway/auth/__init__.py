"""Admin authentication and per-tenant rate limiting."""

from ghl_gateway.auth.admin import is_admin_token, require_admin
from ghl_gateway.auth.rate_limiter import InMemoryRateLimiter, RateLimitDecision

__all__ = ["InMemoryRateLimiter", "RateLimitDecision", "is_admin_token", "require_admin"]
