import logging
from typing import Any, Dict, Optional, Protocol

import httpx

from ..config import settings
from ..errors import InfrastructureError, PluginNotFoundError

logger = logging.getLogger(__name__)

class PluginCatalog(Protocol):
    """Looks up management plugins in the external marketplace"""

    async def get_plugin(self, plugin_id: str) -> Optional[Dict[str, Any]]:
        """Plugin manifest ({"id", "slug", "capabilities": {...}}), or None when unknown"""
        ...

class ComponentLoader(Protocol):
    """Loads a plugin's UI bundle by id and returns something the UI can mount"""

    def load(self, plugin_id: str) -> Dict[str, Any]:
        ...

class MarketplaceClient:
    """PluginCatalog backed by the marketplace HTTP API"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = settings.MARKETPLACE_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.MARKETPLACE_URL or "").rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def get_plugin(self, plugin_id: str) -> Optional[Dict[str, Any]]:
        if not self.base_url:
            raise InfrastructureError("MARKETPLACE_URL is not configured")

        async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
            try:
                response = await client.get(f"{self.base_url}/api/marketplace/plugins/{plugin_id}")
            except httpx.HTTPError as e:
                raise InfrastructureError(f"Marketplace unreachable: {e}")

        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise InfrastructureError(f"Marketplace returned {response.status_code} for plugin {plugin_id}")

        data = response.json()
        # The API wraps single plugins as {"plugin": {...}}
        return data.get("plugin", data) if isinstance(data, dict) else None

class StaticPluginCatalog:
    """In-process catalog, for deployments without a marketplace and for tests"""

    def __init__(self, plugins: Optional[Dict[str, Dict[str, Any]]] = None):
        self.plugins = dict(plugins or {})

    async def get_plugin(self, plugin_id: str) -> Optional[Dict[str, Any]]:
        return self.plugins.get(plugin_id)

class MarketplaceComponentLoader:
    """Describes where the UI fetches a plugin bundle; never executes plugin code"""

    def __init__(self, base_url: Optional[str] = None):
        self.base_url = (base_url or settings.MARKETPLACE_URL or "").rstrip("/")

    def load(self, plugin_id: str) -> Dict[str, Any]:
        if not self.base_url:
            raise PluginNotFoundError(f"No marketplace configured to load plugin {plugin_id}")
        return {
            "pluginId": plugin_id,
            "bundleUrl": f"{self.base_url}/api/marketplace/plugins/{plugin_id}/bundle",
            "mount": "default",
        }
