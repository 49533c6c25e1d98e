import logging
from typing import Any, Dict, List, Optional

from ...errors import DiscoveryError, InstanceConnectionError
from ...models.service import ServiceStatus, ServiceType
from ...schemas.service import DiscoveredService, ServiceEndpoint
from ..connectors.docker_api import DockerAPIConnector
from .base import Discoverer

logger = logging.getLogger(__name__)

def container_name(container: Dict[str, Any]) -> str:
    names = container.get("Names") or []
    if names and names[0]:
        return names[0].lstrip("/")
    return (container.get("Id") or "")[:12]

def container_status(container: Dict[str, Any]) -> ServiceStatus:
    return ServiceStatus.RUNNING if "Up" in (container.get("Status") or "") else ServiceStatus.STOPPED

def endpoints_from_port_bindings(ports: Optional[Dict[str, Any]]) -> List[ServiceEndpoint]:
    """Endpoints from inspect output, e.g. {"80/tcp": [{"HostIp": "0.0.0.0", "HostPort": "8080"}]}"""
    endpoints = []
    for container_port, bindings in (ports or {}).items():
        port, _, protocol = container_port.partition("/")
        protocol = protocol or "tcp"
        if bindings:
            for binding in bindings:
                host_port = binding.get("HostPort")
                endpoints.append(ServiceEndpoint(
                    url=binding.get("HostIp") or "localhost",
                    port=int(host_port) if host_port else None,
                    protocol=protocol,
                ))
        else:
            endpoints.append(ServiceEndpoint(url="localhost", port=int(port), protocol=protocol))
    return endpoints

def endpoints_from_summary(ports: Optional[List[Dict[str, Any]]]) -> List[ServiceEndpoint]:
    """Endpoints from list output, e.g. [{"PrivatePort": 80, "PublicPort": 8080, "Type": "tcp"}]"""
    endpoints = []
    for entry in ports or []:
        if entry.get("PublicPort"):
            endpoints.append(ServiceEndpoint(
                url=entry.get("IP") or "localhost",
                port=entry["PublicPort"],
                protocol=entry.get("Type", "tcp"),
            ))
        elif entry.get("PrivatePort"):
            endpoints.append(ServiceEndpoint(
                url="localhost",
                port=entry["PrivatePort"],
                protocol=entry.get("Type", "tcp"),
            ))
    return endpoints

class DockerDiscoverer(Discoverer):
    """One service per container, running or not"""

    source = "docker"

    def __init__(self, connector: DockerAPIConnector):
        self.connector = connector

    def _normalize(self, summary: Dict[str, Any], details: Optional[Dict[str, Any]]) -> DiscoveredService:
        service_config = {
            "containerId": summary.get("Id"),
            "image": summary.get("Image"),
            "state": summary.get("State"),
            "status": summary.get("Status"),
            "labels": summary.get("Labels") or {},
        }
        if details is None:
            # Inspect failed: report what the list call gave us
            service_config["ports"] = summary.get("Ports") or []
            return DiscoveredService(
                name=container_name(summary),
                type=ServiceType.DOCKER_CONTAINER,
                status=ServiceStatus.ERROR,
                service_config=service_config,
                endpoints=endpoints_from_summary(summary.get("Ports")),
            )

        ports = (details.get("NetworkSettings") or {}).get("Ports") or {}
        service_config["env"] = (details.get("Config") or {}).get("Env") or []
        service_config["ports"] = ports
        return DiscoveredService(
            name=container_name(summary),
            type=ServiceType.DOCKER_CONTAINER,
            status=container_status(summary),
            service_config=service_config,
            endpoints=endpoints_from_port_bindings(ports),
        )

    async def _enumerate(self) -> List[DiscoveredService]:
        containers = await self.connector.list_containers(all=True)
        if not isinstance(containers, list):
            raise DiscoveryError(f"Unexpected container listing from {self.connector.describe()}: {type(containers).__name__}")
        services = []
        for summary in containers:
            details = None
            try:
                details = await self.connector.inspect_container(summary["Id"])
            except (InstanceConnectionError, KeyError) as e:
                logger.warning(f"[Discovery] Could not inspect container {container_name(summary)}: {e}")
            services.append(self._normalize(summary, details))
        return services
