import logging
from datetime import datetime
from typing import Callable

from sqlalchemy.orm import Session

from ..config import settings
from ..models import InfrastructureInstance
from ..schemas import SweepReport
from ..utils.session_limiter import SessionLimiter, session_limiter
from ..utils.timeouts import with_deadline
from .connectors import Connector, create_connector
from .discovery import DiscoveryResult, create_discoverer
from .registry_service import InstanceRegistry
from .tag_service import TagService

logger = logging.getLogger(__name__)

class DiscoveryService:
    """Runs discovery sweeps and applies them whole-or-nothing.

    A failed sweep leaves the stored services untouched. A successful one
    replaces the instance's discovered set, unless a sweep that started
    later was already applied.
    """

    def __init__(
        self,
        db: Session,
        tag_service: TagService,
        connector_factory: Callable[[InfrastructureInstance], Connector] = create_connector,
        limiter: SessionLimiter = session_limiter,
        timeout: float = settings.DISCOVERY_TIMEOUT,
    ):
        self.db = db
        self.registry = InstanceRegistry(db)
        self.tag_service = tag_service
        self.connector_factory = connector_factory
        self.limiter = limiter
        self.timeout = timeout

    async def _sweep(self, instance: InfrastructureInstance) -> DiscoveryResult:
        try:
            connector = self.connector_factory(instance)
        except Exception as e:
            return DiscoveryResult(ok=False, error=str(e))

        discoverer = create_discoverer(instance.connection_type, connector)
        if discoverer is None:
            return DiscoveryResult(
                ok=False,
                error=f"No service discovery for {instance.connection_type.value} connections"
            )

        try:
            async with self.limiter.acquire(instance.id):
                return await with_deadline(discoverer.sweep(), self.timeout, "Discovery sweep")
        except Exception as e:
            return DiscoveryResult(ok=False, error=str(e))
        finally:
            await connector.disconnect()

    async def run_sweep(self, instance: InfrastructureInstance) -> SweepReport:
        started_at = datetime.utcnow()
        logger.info(f"Starting discovery sweep of instance {instance.id} ({instance.host})")

        result = await self._sweep(instance)
        if not result.ok:
            logger.warning(f"Discovery sweep of instance {instance.id} failed, keeping previous services: {result.error}")
            return SweepReport(instance_id=instance.id, ok=False, error=result.error)

        for service in result.services:
            service.instance_id = instance.id

        counts = self.registry.replace_discovered_services(instance, result.services, started_at)
        if counts is None:
            return SweepReport(
                instance_id=instance.id,
                ok=True,
                applied=False,
                discovered=len(result.services),
                error="Superseded by a newer sweep"
            )

        self.tag_service.invalidate(instance.id)
        await self.tag_service.recompute(instance)

        logger.info(
            f"Discovery sweep of instance {instance.id}: {len(result.services)} services "
            f"({counts['created']} new, {counts['updated']} updated, {counts['removed']} removed)"
        )
        return SweepReport(
            instance_id=instance.id,
            ok=True,
            applied=True,
            discovered=len(result.services),
            **counts
        )
