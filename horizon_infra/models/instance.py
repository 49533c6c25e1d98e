from sqlalchemy import Column, String, DateTime, Integer, Text, JSON, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
from ..database import Base
import uuid
import enum

class InstanceType(str, enum.Enum):
    VM = "vm"
    DOCKER_HOST = "docker_host"
    KUBERNETES = "kubernetes"
    CLOUD_INSTANCE = "cloud_instance"

class ConnectionType(str, enum.Enum):
    SSH = "ssh"
    DOCKER_API = "docker_api"
    KUBERNETES = "kubernetes"
    HTTP = "http"

class InstanceStatus(str, enum.Enum):
    ONLINE = "online"
    OFFLINE = "offline"
    ERROR = "error"
    UNKNOWN = "unknown"

class InfrastructureInstance(Base):
    __tablename__ = "infrastructure_instances"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    type = Column(SQLEnum(InstanceType), nullable=False)

    # Addressing
    host = Column(String, nullable=False)
    port = Column(Integer, nullable=True)
    protocol = Column(String, nullable=True)

    # Connection (credentials are stored as given, see DESIGN.md)
    connection_type = Column(SQLEnum(ConnectionType), nullable=False)
    connection_config = Column(JSON, default=dict)

    # Health, written only by the health monitor
    status = Column(SQLEnum(InstanceStatus), default=InstanceStatus.UNKNOWN, nullable=False)
    last_health_check = Column(DateTime, nullable=True)
    health_status = Column(JSON, nullable=True)
    os_type = Column(String, nullable=True)
    os_version = Column(String, nullable=True)
    resources = Column(JSON, nullable=True)  # {"cpu": cores, "memory": MB, "disk": MB}

    # Derived capability tags, written only by the tag service
    tags = Column(JSON, default=list)

    # Start time of the last applied discovery sweep
    last_discovery_at = Column(DateTime, nullable=True)

    # Tenancy
    space_id = Column(String, nullable=True, index=True)
    created_by = Column(String, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    services = relationship("InstanceService", back_populates="instance", cascade="all, delete-orphan")
