"""GoHighLevel REST API client."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from ghl_gateway.config import DEFAULT_GHL_API_VERSION, DEFAULT_GHL_BASE_URL

logger = structlog.get_logger()


class GHLApiError(Exception):
    """Upstream call failed (HTTP error status or transport failure)."""

    def __init__(self, status_code: int | None, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"GHL API error ({status_code}): {message}")


class GHLApiClient:
    """Credential holder plus thin wrappers over the GHL endpoints we use.

    Every call opens a short-lived ``httpx.AsyncClient``, so an instance
    owns no sockets and can sit in the client cache indefinitely.
    ``transport`` is only set by tests (``httpx.MockTransport``).
    """

    def __init__(
        self,
        access_token: str,
        location_id: str,
        *,
        base_url: str = DEFAULT_GHL_BASE_URL,
        api_version: str = DEFAULT_GHL_API_VERSION,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._access_token = access_token
        self.location_id = location_id
        self.base_url = base_url.rstrip("/")
        self.api_version = api_version
        self.timeout = timeout
        self._transport = transport

    def __repr__(self) -> str:
        return (
            f"GHLApiClient(location_id={self.location_id!r}, "
            f"base_url={self.base_url!r}, api_version={self.api_version!r})"
        )

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._access_token}",
            "Version": self.api_version,
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send one request and return the decoded JSON body.

        Raises:
            GHLApiError: non-2xx status, a transport failure or a malformed
                base URL.
        """
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._headers(),
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                resp = await client.request(method, path, params=params, json=json)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning(
                "ghl_request_failed", method=method, path=path, error=str(exc)
            )
            raise GHLApiError(None, str(exc)) from exc

        if resp.status_code >= 400:
            try:
                body = resp.json()
                message = body.get("message") or resp.reason_phrase
            except ValueError:
                message = resp.text or resp.reason_phrase
            logger.warning(
                "ghl_request_rejected",
                method=method,
                path=path,
                status_code=resp.status_code,
            )
            raise GHLApiError(resp.status_code, str(message))

        if not resp.content:
            return {}
        return resp.json()

    async def test_connection(self) -> dict[str, Any]:
        """Fetch the configured location; succeeds only with valid credentials."""
        return await self.request("GET", f"/locations/{self.location_id}")

    # --- Contacts ---

    async def create_contact(self, data: dict[str, Any]) -> dict[str, Any]:
        body = {**data, "locationId": data.get("locationId") or self.location_id}
        result = await self.request("POST", "/contacts/", json=body)
        return result.get("contact", result)

    async def search_contacts(
        self,
        *,
        query: str | None = None,
        limit: int = 25,
        **filters: Any,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {"locationId": self.location_id, "limit": limit}
        if query:
            params["query"] = query
        params.update({k: v for k, v in filters.items() if v is not None})
        return await self.request("GET", "/contacts/", params=params)

    async def get_contact(self, contact_id: str) -> dict[str, Any]:
        result = await self.request("GET", f"/contacts/{contact_id}")
        return result.get("contact", result)

    async def update_contact(
        self, contact_id: str, data: dict[str, Any]
    ) -> dict[str, Any]:
        result = await self.request("PUT", f"/contacts/{contact_id}", json=data)
        return result.get("contact", result)

    async def delete_contact(self, contact_id: str) -> dict[str, Any]:
        return await self.request("DELETE", f"/contacts/{contact_id}")

    async def add_contact_tags(
        self, contact_id: str, tags: list[str]
    ) -> dict[str, Any]:
        return await self.request(
            "POST", f"/contacts/{contact_id}/tags", json={"tags": tags}
        )

    async def remove_contact_tags(
        self, contact_id: str, tags: list[str]
    ) -> dict[str, Any]:
        return await self.request(
            "DELETE", f"/contacts/{contact_id}/tags", json={"tags": tags}
        )
