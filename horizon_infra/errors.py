"""Exception hierarchy for instance and service management.

Explicit actions (connect, execute_command, instance creation) raise these to
the caller. Passive operations (health checks, discovery sweeps) catch them and
turn them into a negative or empty result.
"""

from typing import Optional


class InfrastructureError(Exception):
    """Base class for all infrastructure management errors"""

    def __init__(self, message: str, instance_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.instance_id = instance_id


class InstanceConnectionError(InfrastructureError):
    """The connector could not reach the instance"""


class InstanceAuthError(InstanceConnectionError):
    """The instance rejected the configured credentials"""


class CommandExecutionError(InstanceConnectionError):
    """A remote command exited with a non-zero status"""

    def __init__(self, message: str, exit_status: int, output: str = "", instance_id: Optional[str] = None):
        super().__init__(message, instance_id=instance_id)
        self.exit_status = exit_status
        self.output = output


class DiscoveryError(InfrastructureError):
    """Enumerating services on an instance failed"""


class InstanceValidationError(InfrastructureError):
    """A request to the registry carried invalid data"""


class PluginNotFoundError(InfrastructureError):
    """The marketplace does not know the requested management plugin"""


class OperationTimeoutError(InfrastructureError):
    """A connector operation did not finish within its deadline"""
