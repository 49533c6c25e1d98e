import asyncio
import logging
import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from ..config import settings
from ..models import InfrastructureInstance, InstanceStatus
from ..schemas import HealthCheckResult
from ..utils.session_limiter import SessionLimiter, session_limiter
from ..utils.timeouts import with_deadline
from .connectors import Connector, create_connector

logger = logging.getLogger(__name__)

class HealthMonitor:
    """Probes instances and records status, snapshot and resources.

    The only writer of InfrastructureInstance.status. Status rule:
      online  - check_health() returned True and system info was collected
      offline - check_health() returned False
      error   - anything raised (connector setup, system info, deadline)
    """

    def __init__(
        self,
        db: Session,
        connector_factory: Callable[[InfrastructureInstance], Connector] = create_connector,
        limiter: SessionLimiter = session_limiter,
        timeout: float = settings.HEALTH_CHECK_TIMEOUT,
        concurrency: int = settings.HEALTH_CHECK_CONCURRENCY,
    ):
        self.db = db
        self.connector_factory = connector_factory
        self.limiter = limiter
        self.timeout = timeout
        self.concurrency = concurrency

    async def _run_probe(self, instance: InfrastructureInstance):
        connector = self.connector_factory(instance)
        try:
            async with self.limiter.acquire(instance.id):
                healthy = await with_deadline(connector.check_health(), self.timeout, "Health check")
                info: Dict[str, Any] = {}
                if healthy:
                    info = await with_deadline(connector.get_system_info(), self.timeout, "System info")
                return healthy, info
        finally:
            await connector.disconnect()

    def _record(
        self,
        instance: InfrastructureInstance,
        status: InstanceStatus,
        info: Dict[str, Any],
        checked_at: datetime,
        latency_ms: int,
        error: Optional[str],
    ) -> None:
        snapshot = {
            "healthy": status == InstanceStatus.ONLINE,
            "checkedAt": checked_at.isoformat(),
            "latencyMs": latency_ms,
            "connectionType": instance.connection_type.value,
        }
        if error:
            snapshot["error"] = error

        instance.status = status
        instance.last_health_check = checked_at
        instance.health_status = snapshot
        if info.get("os_type"):
            instance.os_type = info["os_type"]
        if info.get("os_version"):
            instance.os_version = info["os_version"]
        if info.get("resources"):
            # Fields the probe could not read keep their previous value
            instance.resources = {**(instance.resources or {}), **info["resources"]}
        self.db.commit()

    async def probe(self, instance: InfrastructureInstance) -> HealthCheckResult:
        checked_at = datetime.utcnow()
        started = time.monotonic()
        info: Dict[str, Any] = {}
        error = None
        try:
            healthy, info = await self._run_probe(instance)
            status = InstanceStatus.ONLINE if healthy else InstanceStatus.OFFLINE
        except Exception as e:
            logger.warning(f"Health probe of instance {instance.id} ({instance.host}) failed: {e}")
            status = InstanceStatus.ERROR
            error = str(e)

        latency_ms = int((time.monotonic() - started) * 1000)
        self._record(instance, status, info, checked_at, latency_ms, error)
        logger.info(f"Instance {instance.id} is {status.value} ({latency_ms} ms)")
        return HealthCheckResult(
            instance_id=instance.id,
            status=status,
            healthy=status == InstanceStatus.ONLINE,
            error=error
        )

    async def probe_all(
        self,
        instances: List[InfrastructureInstance],
        skip_busy: bool = False,
    ) -> List[HealthCheckResult]:
        """Probe every instance concurrently; one failure never stops the others.

        With skip_busy, instances whose session slots are all taken are left
        out of this round (and of the results) instead of queueing behind them.
        """
        if skip_busy:
            busy = [instance.id for instance in instances if self.limiter.is_saturated(instance.id)]
            if busy:
                logger.info(f"Skipping health check of busy instances: {busy}")
                instances = [instance for instance in instances if instance.id not in busy]

        semaphore = asyncio.Semaphore(self.concurrency)

        async def _guarded(instance: InfrastructureInstance) -> HealthCheckResult:
            async with semaphore:
                try:
                    return await self.probe(instance)
                except Exception as e:
                    # Recording the result itself failed (database trouble)
                    logger.error(f"Could not record health of instance {instance.id}: {e}")
                    self.db.rollback()
                    return HealthCheckResult(
                        instance_id=instance.id,
                        status=InstanceStatus.ERROR,
                        healthy=False,
                        error=str(e)
                    )

        return list(await asyncio.gather(*(_guarded(instance) for instance in instances)))
