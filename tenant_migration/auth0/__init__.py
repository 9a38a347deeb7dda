"""Auth0 Management API access."""

from ..config import TenantSettings
from .client import DEFAULT_TIMEOUT, ManagementClient
from .tenant import TenantClient


def connect(settings: TenantSettings, timeout: float = DEFAULT_TIMEOUT) -> TenantClient:
    """Build a TenantClient for one tenant; the token is fetched on first use."""
    client = ManagementClient(settings.domain, settings.client_id, settings.client_secret,
                              timeout=timeout)
    return TenantClient(client, settings.connection_id)


__all__ = ["ManagementClient", "TenantClient", "connect"]
