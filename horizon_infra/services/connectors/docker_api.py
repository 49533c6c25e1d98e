import logging
from typing import Any, Dict, List, Optional

import httpx

from ...config import settings
from ...errors import InstanceConnectionError
from .base import Connector

logger = logging.getLogger(__name__)

BYTES_PER_MB = 1024 * 1024

class DockerAPIConnector(Connector):
    """Stateless client for the Docker Engine REST API.

    Reaches the daemon either through a Unix socket (connection config
    "socketPath") or over TCP at protocol://host:port.
    """

    connection_type = "docker_api"

    def __init__(
        self,
        host: str,
        port: Optional[int] = None,
        protocol: Optional[str] = None,
        config: Optional[Dict[str, Any]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = settings.DOCKER_API_TIMEOUT,
    ):
        config = config or {}
        super().__init__(
            config.get("host") or host,
            port or config.get("port") or settings.DOCKER_DEFAULT_PORT,
            protocol or config.get("protocol") or "http",
            config,
        )
        self.socket_path = config.get("socketPath")
        self.timeout = timeout
        self._transport = transport

    @property
    def base_url(self) -> str:
        if self.socket_path:
            # Host part is ignored by the socket transport
            return "http://docker"
        return f"{self.protocol}://{self.host}:{self.port}"

    def _client(self) -> httpx.AsyncClient:
        transport = self._transport
        if transport is None and self.socket_path:
            transport = httpx.AsyncHTTPTransport(uds=self.socket_path)
        return httpx.AsyncClient(base_url=self.base_url, transport=transport, timeout=self.timeout)

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        try:
            async with self._client() as client:
                response = await client.get(path, params=params)
                response.raise_for_status()
                return response
        except httpx.HTTPStatusError as e:
            raise InstanceConnectionError(
                f"Docker API {path} on {self.describe()} returned {e.response.status_code}"
            )
        except httpx.HTTPError as e:
            raise InstanceConnectionError(f"Docker API {path} on {self.describe()} failed: {e}")

    async def get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        response = await self._get(path, params=params)
        return response.json()

    def describe(self) -> str:
        if self.socket_path:
            return f"unix://{self.socket_path}"
        return self.base_url

    async def connect(self) -> None:
        await self._get("/_ping")
        logger.info(f"[Docker] Reached daemon at {self.describe()}")

    async def check_health(self) -> bool:
        try:
            await self._get("/_ping")
            return True
        except Exception as e:
            logger.warning(f"[Docker] Health check failed for {self.describe()}: {e}")
            return False

    async def get_system_info(self) -> Dict[str, Any]:
        data = await self.get_json("/info")
        info: Dict[str, Any] = {}
        if data.get("OSType"):
            info["os_type"] = data["OSType"]
        if data.get("OperatingSystem"):
            info["os_version"] = data["OperatingSystem"]

        resources = {}
        if isinstance(data.get("NCPU"), int):
            resources["cpu"] = data["NCPU"]
        if isinstance(data.get("MemTotal"), int):
            resources["memory"] = data["MemTotal"] // BYTES_PER_MB
        if resources:
            info["resources"] = resources
        return info

    async def list_containers(self, all: bool = True) -> List[Dict[str, Any]]:
        return await self.get_json("/containers/json", params={"all": "true" if all else "false"})

    async def inspect_container(self, container_id: str) -> Dict[str, Any]:
        return await self.get_json(f"/containers/{container_id}/json")
