import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..errors import InstanceValidationError
from ..models import (
    InfrastructureInstance,
    InstanceService,
    ConnectionType,
    InstanceStatus,
    InstanceType,
    ServiceSource,
    ServiceStatus,
    ServiceType,
)
from ..schemas import (
    DiscoveredService,
    InstanceCreate,
    InstanceUpdate,
    RemoteServiceCreate,
    ServiceCreate,
    ServiceUpdate,
)

logger = logging.getLogger(__name__)

class InstanceRegistry:
    """Persistence boundary for instances and their services.

    Status and tags are not writable through here: the health monitor owns
    instance status and the tag service owns tags.
    """

    def __init__(self, db: Session):
        self.db = db

    # Instances

    def list_instances(
        self,
        space_id: Optional[str] = None,
        instance_type: Optional[InstanceType] = None,
        status: Optional[InstanceStatus] = None,
        tag: Optional[str] = None,
    ) -> List[InfrastructureInstance]:
        query = self.db.query(InfrastructureInstance)
        if space_id:
            # Unscoped instances are visible from every space
            query = query.filter(or_(
                InfrastructureInstance.space_id == space_id,
                InfrastructureInstance.space_id.is_(None)
            ))
        if instance_type:
            query = query.filter(InfrastructureInstance.type == instance_type)
        if status:
            query = query.filter(InfrastructureInstance.status == status)
        instances = query.order_by(InfrastructureInstance.created_at).all()

        if tag:
            # Tags live in a JSON column; filter portably in Python
            instances = [instance for instance in instances if tag in (instance.tags or [])]
        return instances

    def get_instance(self, instance_id: str) -> Optional[InfrastructureInstance]:
        return self.db.query(InfrastructureInstance).filter(InfrastructureInstance.id == instance_id).first()

    def _validate_connection_config(self, connection_type: ConnectionType, config: Dict) -> None:
        if connection_type == ConnectionType.SSH and not config.get("username"):
            raise InstanceValidationError("SSH connection config requires a username")
        if connection_type == ConnectionType.KUBERNETES and not config.get("kubeconfig"):
            logger.warning("Kubernetes instance registered without a kubeconfig")

    def _validate_address(self, name: Optional[str], host: Optional[str], port: Optional[int]) -> None:
        if name is not None and not name.strip():
            raise InstanceValidationError("Instance name is required")
        if host is not None and not host.strip():
            raise InstanceValidationError("Instance host is required")
        if port is not None and not (0 < port < 65536):
            raise InstanceValidationError(f"Invalid port: {port}")

    def create_instance(self, data: InstanceCreate, created_by: Optional[str] = None) -> InfrastructureInstance:
        self._validate_address(data.name, data.host, data.port)
        self._validate_connection_config(data.connection_type, data.connection_config)

        instance = InfrastructureInstance(
            name=data.name.strip(),
            description=data.description,
            type=data.type,
            host=data.host.strip(),
            port=data.port,
            protocol=data.protocol,
            connection_type=data.connection_type,
            connection_config=dict(data.connection_config),
            status=InstanceStatus.UNKNOWN,
            tags=[],
            space_id=data.space_id,
            created_by=created_by
        )
        self.db.add(instance)
        self.db.commit()
        self.db.refresh(instance)

        logger.info(f"Registered instance {instance.id} ({instance.name}, {instance.connection_type.value})")
        return instance

    def update_instance(self, instance: InfrastructureInstance, data: InstanceUpdate) -> InfrastructureInstance:
        """The explicit update path; the only way connection_config changes after creation"""
        update_data = data.model_dump(exclude_unset=True)
        for field in ("name", "host"):
            if field in update_data and update_data[field] is None:
                raise InstanceValidationError(f"Instance {field} is required")
        self._validate_address(update_data.get("name"), update_data.get("host"), update_data.get("port"))

        config_update = update_data.pop("connection_config", None)
        if config_update is not None:
            merged = dict(instance.connection_config or {})
            for key, value in config_update.items():
                # Blank or omitted secrets keep the stored value
                if value is None or value == "":
                    continue
                merged[key] = value
            self._validate_connection_config(instance.connection_type, merged)
            instance.connection_config = merged

        for field, value in update_data.items():
            setattr(instance, field, value.strip() if isinstance(value, str) and field in ("name", "host") else value)

        self.db.commit()
        self.db.refresh(instance)
        return instance

    def delete_instance(self, instance: InfrastructureInstance) -> None:
        logger.info(f"Deleting instance {instance.id} with {len(instance.services)} services")
        self.db.delete(instance)
        self.db.commit()

    # Services

    def list_services(self, instance_id: str) -> List[InstanceService]:
        return self.db.query(InstanceService).filter(
            InstanceService.instance_id == instance_id
        ).order_by(InstanceService.name).all()

    def get_service(self, service_id: str) -> Optional[InstanceService]:
        return self.db.query(InstanceService).filter(InstanceService.id == service_id).first()

    def _new_service(self, data: ServiceCreate, **fields) -> InstanceService:
        if not data.name.strip():
            raise InstanceValidationError("Service name is required")
        return InstanceService(
            name=data.name.strip(),
            type=data.type,
            status=data.status,
            service_config=dict(data.service_config),
            endpoints=[endpoint.model_dump() for endpoint in data.endpoints],
            health_check_url=data.health_check_url,
            management_plugin_id=data.management_plugin_id,
            management_config=data.management_config if data.management_plugin_id else None,
            **fields
        )

    def create_service(self, instance: InfrastructureInstance, data: ServiceCreate) -> InstanceService:
        service = self._new_service(data, instance_id=instance.id, source=ServiceSource.MANUAL, space_id=instance.space_id)
        self.db.add(service)
        self.db.commit()
        self.db.refresh(service)
        return service

    def create_remote_service(self, data: RemoteServiceCreate) -> InstanceService:
        service = self._new_service(data, instance_id=None, source=ServiceSource.REMOTE, space_id=data.space_id)
        self.db.add(service)
        self.db.commit()
        self.db.refresh(service)
        return service

    def update_service(self, service: InstanceService, data: ServiceUpdate) -> InstanceService:
        update_data = data.model_dump(exclude_unset=True)
        if "name" in update_data:
            if not (update_data["name"] or "").strip():
                raise InstanceValidationError("Service name is required")
            update_data["name"] = update_data["name"].strip()
        if update_data.get("endpoints") is not None:
            update_data["endpoints"] = [dict(endpoint) for endpoint in update_data["endpoints"]]
        for field, value in update_data.items():
            setattr(service, field, value)
        self.db.commit()
        self.db.refresh(service)
        return service

    def delete_service(self, service: InstanceService) -> None:
        self.db.delete(service)
        self.db.commit()

    # Discovery

    def replace_discovered_services(
        self,
        instance: InfrastructureInstance,
        discovered: List[DiscoveredService],
        sweep_started_at: datetime,
    ) -> Optional[Dict[str, int]]:
        """Apply one successful sweep as the authoritative service set.

        Returns None when a sweep that started later has already been applied.
        Otherwise, in one transaction: matched services are refreshed in place,
        new ones inserted, and discovered services missing from the sweep are
        deleted, except plugin-bound ones which are kept as unknown.
        """
        # Another session may have applied a later sweep while this one ran
        instance_id = instance.id
        self.db.expire(instance)
        instance = self.db.query(InfrastructureInstance).filter(
            InfrastructureInstance.id == instance_id
        ).with_for_update().one()
        if instance.last_discovery_at and sweep_started_at < instance.last_discovery_at:
            self.db.rollback()
            logger.info(f"Discarding superseded sweep of instance {instance_id} started at {sweep_started_at}")
            return None

        now = datetime.utcnow()
        existing: Dict[Tuple[ServiceType, str], InstanceService] = {
            (ServiceType(service.type), service.name): service
            for service in instance.services
            if service.source == ServiceSource.DISCOVERED
        }
        counts = {"created": 0, "updated": 0, "removed": 0, "retained": 0}
        seen = set()

        try:
            for item in discovered:
                key = (ServiceType(item.type), item.name)
                if key in seen:
                    continue
                seen.add(key)
                endpoints = [endpoint.model_dump() for endpoint in item.endpoints]

                service = existing.get(key)
                if service is None:
                    self.db.add(InstanceService(
                        instance_id=instance.id,
                        name=item.name,
                        type=item.type,
                        status=item.status,
                        source=ServiceSource.DISCOVERED,
                        service_config=item.service_config,
                        endpoints=endpoints,
                        health_check_url=item.health_check_url,
                        space_id=instance.space_id,
                        discovered_at=now,
                        last_seen=now
                    ))
                    counts["created"] += 1
                    continue

                service.status = item.status
                service.service_config = item.service_config
                service.endpoints = endpoints
                if item.health_check_url:
                    service.health_check_url = item.health_check_url
                if service.discovered_at is None:
                    service.discovered_at = now
                service.last_seen = now
                counts["updated"] += 1

            for key, service in existing.items():
                if key in seen:
                    continue
                if service.management_plugin_id:
                    service.status = ServiceStatus.UNKNOWN
                    counts["retained"] += 1
                else:
                    self.db.delete(service)
                    counts["removed"] += 1

            instance.last_discovery_at = sweep_started_at
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(instance)
        return counts
