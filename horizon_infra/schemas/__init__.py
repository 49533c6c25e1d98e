from .instance import (
    InstanceCreate,
    InstanceUpdate,
    InstanceResources,
    InstanceResponse,
    InstanceList,
    TagList,
    HealthCheckResult,
    HealthCheckSummary,
    CommandRequest,
    CommandResult,
    ConnectionTestResult,
    redact_connection_config
)
from .service import (
    ServiceEndpoint,
    DiscoveredService,
    ServiceCreate,
    RemoteServiceCreate,
    ServiceUpdate,
    ServiceResponse,
    ServiceList,
    PluginAssignment,
    PluginAssignmentResult,
    SweepReport
)

__all__ = [
    "InstanceCreate",
    "InstanceUpdate",
    "InstanceResources",
    "InstanceResponse",
    "InstanceList",
    "TagList",
    "HealthCheckResult",
    "HealthCheckSummary",
    "CommandRequest",
    "CommandResult",
    "ConnectionTestResult",
    "redact_connection_config",
    "ServiceEndpoint",
    "DiscoveredService",
    "ServiceCreate",
    "RemoteServiceCreate",
    "ServiceUpdate",
    "ServiceResponse",
    "ServiceList",
    "PluginAssignment",
    "PluginAssignmentResult",
    "SweepReport"
]
