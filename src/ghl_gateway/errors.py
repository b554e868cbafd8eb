"""Domain-specific exceptions for ghl-gateway.

Every tenant-facing failure derives from :class:`TenantError`, which carries
a machine-readable ``kind`` and the HTTP status the API layer answers with.
Lookups where absence is a normal outcome return ``None`` / ``False``
instead of raising.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class TenantErrorKind(StrEnum):
    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    INCOMPLETE = "incomplete"
    INVALID_CONFIGURATION = "invalid_configuration"
    ALREADY_EXISTS = "already_exists"
    FORBIDDEN = "forbidden"
    UNSUPPORTED = "unsupported"
    RATE_LIMITED = "rate_limited"
    UNAUTHENTICATED = "unauthenticated"
    UNAUTHORIZED = "unauthorized"
    VALIDATION = "validation"
    TENANT_REQUIRED = "tenant_required"


class TenantError(Exception):
    """Base class for tenant lifecycle and access failures."""

    kind: TenantErrorKind = TenantErrorKind.VALIDATION
    status_code: int = 400

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Structured body for API responses."""
        return {"error": str(self.kind), "message": self.message}


class TenantNotFoundError(TenantError):
    kind = TenantErrorKind.NOT_FOUND
    status_code = 404

    def __init__(self, tenant_id: str) -> None:
        self.tenant_id = tenant_id
        super().__init__(f"Tenant {tenant_id} not found")


class InvalidConfigurationError(TenantError):
    """Upstream API rejected the tenant credentials during a live test."""

    kind = TenantErrorKind.INVALID_CONFIGURATION
    status_code = 400


class TenantAlreadyExistsError(TenantError):
    kind = TenantErrorKind.ALREADY_EXISTS
    status_code = 409

    def __init__(self, tenant_id: str) -> None:
        self.tenant_id = tenant_id
        super().__init__(f"Tenant {tenant_id} already exists")


class ForbiddenError(TenantError):
    kind = TenantErrorKind.FORBIDDEN
    status_code = 403


class UnsupportedOperationError(TenantError):
    """Mutation attempted on a read-only tenant store."""

    kind = TenantErrorKind.UNSUPPORTED
    status_code = 405


class RateLimitedError(TenantError):
    kind = TenantErrorKind.RATE_LIMITED
    status_code = 429

    def __init__(self, message: str, retry_after: int) -> None:
        self.retry_after = retry_after
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "retryAfter": self.retry_after}


class UnauthenticatedError(TenantError):
    kind = TenantErrorKind.UNAUTHENTICATED
    status_code = 401


class UnauthorizedError(TenantError):
    kind = TenantErrorKind.UNAUTHORIZED
    status_code = 403


class TenantValidationError(TenantError):
    """Malformed tenant create/update request."""

    kind = TenantErrorKind.VALIDATION
    status_code = 400


class TenantRequiredError(TenantError):
    kind = TenantErrorKind.TENANT_REQUIRED
    status_code = 400


class TenantRejectedError(TenantError):
    """Tenant was identified but failed validation.

    ``kind`` is taken from the validation outcome (not_found, inactive,
    incomplete) so callers can tell the reasons apart.
    """

    status_code = 403

    def __init__(self, tenant_id: str, kind: TenantErrorKind, message: str) -> None:
        self.tenant_id = tenant_id
        self.kind = kind
        super().__init__(message)


class NoRequestContextError(RuntimeError):
    """Raised when code that requires a request context runs outside one."""


class ToolError(Exception):
    """Tool call rejected before or while reaching the upstream API."""

    error: str = "invalid_params"
    status_code: int = 400

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, str]:
        return {"error": self.error, "message": self.message}


class UnknownToolError(ToolError):
    error = "unknown_tool"
    status_code = 404

    def __init__(self, tool_name: str) -> None:
        self.tool_name = tool_name
        super().__init__(f"Unknown tool: {tool_name}")


class ToolDisabledError(ToolError):
    """The tool's feature flag is switched off for the current tenant."""

    error = "tool_disabled"
    status_code = 403
