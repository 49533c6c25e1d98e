import logging
from typing import Any, Dict, Optional

import httpx

from ...config import settings
from ...errors import InstanceConnectionError
from .base import Connector

logger = logging.getLogger(__name__)

class HTTPConnector(Connector):
    """Plain HTTP reachability probe for instances exposing only a web endpoint"""

    connection_type = "http"

    def __init__(
        self,
        host: str,
        port: Optional[int] = None,
        protocol: Optional[str] = None,
        config: Optional[Dict[str, Any]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = settings.HTTP_PROBE_TIMEOUT,
    ):
        protocol = protocol or "http"
        super().__init__(host, port or (443 if protocol == "https" else 80), protocol, config)
        self.health_path = self.config.get("healthPath", "/")
        self.timeout = timeout
        self._transport = transport

    @property
    def url(self) -> str:
        return f"{self.protocol}://{self.host}:{self.port}{self.health_path}"

    async def _probe(self) -> httpx.Response:
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                return await client.get(self.url)
        except httpx.HTTPError as e:
            raise InstanceConnectionError(f"HTTP probe of {self.url} failed: {e}")

    async def connect(self) -> None:
        await self._probe()

    async def check_health(self) -> bool:
        try:
            response = await self._probe()
            return response.status_code < 500
        except Exception as e:
            logger.warning(f"[HTTP] Health check failed for {self.url}: {e}")
            return False

    async def get_system_info(self) -> Dict[str, Any]:
        return {}
