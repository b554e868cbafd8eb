"""Upstream GoHighLevel client and the per-tenant client cache."""

from ghl_gateway.clients.factory import ApiClientFactory, build_client
from ghl_gateway.clients.ghl import GHLApiClient, GHLApiError

__all__ = ["ApiClientFactory", "GHLApiClient", "GHLApiError", "build_client"]
