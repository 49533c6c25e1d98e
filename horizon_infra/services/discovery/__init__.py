from typing import Callable, Dict, Optional

from ...models.instance import ConnectionType
from ..connectors.base import Connector
from .base import Discoverer, DiscoveryResult
from .docker import DockerDiscoverer
from .systemd import SystemdDiscoverer

DISCOVERERS: Dict[ConnectionType, Callable[[Connector], Discoverer]] = {
    ConnectionType.DOCKER_API: DockerDiscoverer,
    ConnectionType.SSH: SystemdDiscoverer,
}

def create_discoverer(connection_type: ConnectionType, connector: Connector) -> Optional[Discoverer]:
    """Discoverer for a connection type, or None when that transport has none"""
    discoverer_class = DISCOVERERS.get(ConnectionType(connection_type))
    if discoverer_class is None:
        return None
    return discoverer_class(connector)

__all__ = [
    "Discoverer",
    "DiscoveryResult",
    "DockerDiscoverer",
    "SystemdDiscoverer",
    "DISCOVERERS",
    "create_discoverer"
]
