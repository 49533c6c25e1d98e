import logging
from typing import Any, Dict

from ...errors import InstanceConnectionError
from .base import Connector

logger = logging.getLogger(__name__)

class KubernetesConnector(Connector):
    """Placeholder for kubeconfig-based cluster access. Not implemented yet."""

    connection_type = "kubernetes"

    async def connect(self) -> None:
        raise InstanceConnectionError(f"Kubernetes connections are not supported yet ({self.host})")

    async def check_health(self) -> bool:
        logger.debug(f"[Kubernetes] Health checks not supported, reporting {self.host} unhealthy")
        return False

    async def get_system_info(self) -> Dict[str, Any]:
        return {}
