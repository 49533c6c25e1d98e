from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

class Connector(ABC):
    """Protocol adapter between generic instance operations and one transport.

    Error policy: connect() and execute_command() raise InstanceConnectionError
    so explicit user actions can report the failure; check_health() never
    raises and returns False instead, so polling loops keep running.
    """

    connection_type: str = ""

    def __init__(self, host: str, port: Optional[int] = None, protocol: Optional[str] = None,
                 config: Optional[Dict[str, Any]] = None):
        self.host = host
        self.port = port
        self.protocol = protocol
        self.config = config or {}

    async def connect(self) -> None:
        """Establish or verify connectivity. No-op for stateless transports."""

    @abstractmethod
    async def check_health(self) -> bool:
        ...

    @abstractmethod
    async def get_system_info(self) -> Dict[str, Any]:
        """Return a partial {"os_type", "os_version", "resources"} mapping"""

    async def disconnect(self) -> None:
        """Release connection state. No-op for stateless transports."""

    def describe(self) -> str:
        return f"{self.connection_type}://{self.host}" + (f":{self.port}" if self.port else "")
