from typing import Dict, Type

from ...errors import InstanceValidationError
from ...models.instance import ConnectionType, InfrastructureInstance
from .base import Connector
from .docker_api import DockerAPIConnector
from .http_probe import HTTPConnector
from .kubernetes import KubernetesConnector
from .ssh import SSHConnector

CONNECTORS: Dict[ConnectionType, Type[Connector]] = {
    ConnectionType.SSH: SSHConnector,
    ConnectionType.DOCKER_API: DockerAPIConnector,
    ConnectionType.KUBERNETES: KubernetesConnector,
    ConnectionType.HTTP: HTTPConnector,
}

def create_connector(instance: InfrastructureInstance) -> Connector:
    """Build the connector for an instance from its connection type"""
    try:
        connector_class = CONNECTORS[ConnectionType(instance.connection_type)]
    except (KeyError, ValueError):
        raise InstanceValidationError(
            f"Unsupported connection type: {instance.connection_type}", instance_id=instance.id
        )
    return connector_class(
        instance.host,
        port=instance.port,
        protocol=instance.protocol,
        config=dict(instance.connection_config or {}),
    )

__all__ = [
    "Connector",
    "SSHConnector",
    "DockerAPIConnector",
    "KubernetesConnector",
    "HTTPConnector",
    "CONNECTORS",
    "create_connector"
]
