"""Bearer-token authentication for the tenant admin endpoints."""

from __future__ import annotations

import secrets

import structlog
from fastapi import Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ghl_gateway.config import Settings
from ghl_gateway.errors import UnauthenticatedError, UnauthorizedError

logger = structlog.get_logger()

bearer_scheme = HTTPBearer(auto_error=False)

_bearer = Security(bearer_scheme)


def is_admin_token(token: str, settings: Settings) -> bool:
    """Match against ``ADMIN_API_KEY`` or any of ``ADMIN_TOKENS``.

    With neither configured no token is accepted.
    """
    candidates: list[str] = list(settings.admin_tokens)
    if settings.admin_api_key is not None:
        candidates.append(settings.admin_api_key.get_secret_value())
    matched = False
    for candidate in candidates:
        if candidate and secrets.compare_digest(token.encode(), candidate.encode()):
            matched = True
    return matched


async def require_admin(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = _bearer,
) -> None:
    """FastAPI dependency guarding admin routes.

    Raises:
        UnauthenticatedError 401: no bearer token.
        UnauthorizedError 403: token does not match any admin credential.
    """
    if credentials is None or not credentials.credentials:
        raise UnauthenticatedError("Admin authentication required")

    settings: Settings = request.app.state.settings
    if not is_admin_token(credentials.credentials, settings):
        logger.warning("admin_auth_rejected", path=request.url.path)
        raise UnauthorizedError("Invalid admin credentials")
