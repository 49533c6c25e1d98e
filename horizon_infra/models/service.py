from sqlalchemy import Column, String, DateTime, ForeignKey, JSON, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
from ..database import Base
import uuid
import enum

class ServiceType(str, enum.Enum):
    DOCKER_CONTAINER = "docker_container"
    SYSTEMD_SERVICE = "systemd_service"
    APPLICATION = "application"

class ServiceStatus(str, enum.Enum):
    RUNNING = "running"
    STOPPED = "stopped"
    ERROR = "error"      # discovery could not fetch the service's own state
    UNKNOWN = "unknown"

class ServiceSource(str, enum.Enum):
    DISCOVERED = "discovered"  # owned by discovery sweeps
    MANUAL = "manual"          # registered by hand on an instance
    REMOTE = "remote"          # reachable endpoint with no owning instance

class InstanceService(Base):
    __tablename__ = "instance_services"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    instance_id = Column(String, ForeignKey("infrastructure_instances.id", ondelete="CASCADE"), nullable=True, index=True)
    name = Column(String, nullable=False)
    type = Column(SQLEnum(ServiceType), nullable=False)
    status = Column(SQLEnum(ServiceStatus), default=ServiceStatus.UNKNOWN, nullable=False)
    source = Column(SQLEnum(ServiceSource), default=ServiceSource.MANUAL, nullable=False)

    # Connector-specific payload (image/env/ports for Docker, unit state for systemd)
    service_config = Column(JSON, default=dict)
    endpoints = Column(JSON, default=list)  # [{"url", "port", "protocol"}]
    health_check_url = Column(String, nullable=True)

    # Management plugin binding, resolved by the marketplace
    management_plugin_id = Column(String, nullable=True, index=True)
    management_config = Column(JSON, nullable=True)

    # Remote services carry their own tenant scope
    space_id = Column(String, nullable=True, index=True)

    # Timestamps
    discovered_at = Column(DateTime, nullable=True)
    last_seen = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    instance = relationship("InfrastructureInstance", back_populates="services")
