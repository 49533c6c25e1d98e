import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

from ...schemas.service import DiscoveredService

logger = logging.getLogger(__name__)

@dataclass
class DiscoveryResult:
    """Outcome of one sweep. ok=False means the service list must not be replaced."""
    ok: bool
    services: List[DiscoveredService] = field(default_factory=list)
    error: Optional[str] = None

class Discoverer(ABC):
    """Enumerates the services behind one connector and normalizes them.

    Discoverers never know which instance they run against; the caller sets
    instance_id on the results.
    """

    source = ""

    @abstractmethod
    async def _enumerate(self) -> List[DiscoveredService]:
        """Raise on connector-level failure; tolerate per-service failures."""

    async def sweep(self) -> DiscoveryResult:
        try:
            services = await self._enumerate()
        except Exception as e:
            logger.warning(f"[Discovery] {self.source} sweep failed: {e}")
            return DiscoveryResult(ok=False, error=str(e))
        return DiscoveryResult(ok=True, services=services)

    async def discover_services(self) -> List[DiscoveredService]:
        """Best-effort listing; an unreachable host yields an empty list"""
        result = await self.sweep()
        return result.services
