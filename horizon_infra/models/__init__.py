from .instance import InfrastructureInstance, InstanceType, ConnectionType, InstanceStatus
from .service import InstanceService, ServiceType, ServiceStatus, ServiceSource

__all__ = [
    "InfrastructureInstance",
    "InstanceType",
    "ConnectionType",
    "InstanceStatus",
    "InstanceService",
    "ServiceType",
    "ServiceStatus",
    "ServiceSource"
]
