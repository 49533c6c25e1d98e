from pydantic import BaseModel, field_validator
from datetime import datetime
from typing import Any, Dict, List, Optional
from ..models.service import ServiceType, ServiceStatus, ServiceSource
from .base import CamelModel

class ServiceEndpoint(BaseModel):
    url: str
    port: Optional[int] = None
    protocol: Optional[str] = None

class DiscoveredService(CamelModel):
    """Normalized discovery output, identical for every discoverer.

    instance_id stays unset here; the sweep orchestrator fills it in.
    """
    name: str
    type: ServiceType
    status: ServiceStatus = ServiceStatus.UNKNOWN
    service_config: Dict[str, Any] = {}
    endpoints: List[ServiceEndpoint] = []
    health_check_url: Optional[str] = None
    instance_id: Optional[str] = None

class ServiceCreate(CamelModel):
    name: str
    type: ServiceType = ServiceType.APPLICATION
    status: ServiceStatus = ServiceStatus.UNKNOWN
    service_config: Dict[str, Any] = {}
    endpoints: List[ServiceEndpoint] = []
    health_check_url: Optional[str] = None
    management_plugin_id: Optional[str] = None
    management_config: Optional[Dict[str, Any]] = None

class RemoteServiceCreate(ServiceCreate):
    space_id: Optional[str] = None

class ServiceUpdate(CamelModel):
    name: Optional[str] = None
    service_config: Optional[Dict[str, Any]] = None
    endpoints: Optional[List[ServiceEndpoint]] = None
    health_check_url: Optional[str] = None

class ServiceResponse(CamelModel):
    id: str
    instance_id: Optional[str] = None
    name: str
    type: ServiceType
    status: ServiceStatus
    source: ServiceSource
    service_config: Dict[str, Any] = {}
    endpoints: List[ServiceEndpoint] = []
    health_check_url: Optional[str] = None
    management_plugin_id: Optional[str] = None
    management_config: Optional[Dict[str, Any]] = None
    space_id: Optional[str] = None
    discovered_at: Optional[datetime] = None
    last_seen: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @field_validator("service_config", "endpoints", mode="before")
    @classmethod
    def empty_when_null(cls, value, info):
        if value is None:
            return {} if info.field_name == "service_config" else []
        return value

class ServiceList(BaseModel):
    services: List[ServiceResponse]

class PluginAssignment(CamelModel):
    plugin_id: str
    management_config: Optional[Dict[str, Any]] = None

class PluginAssignmentResult(BaseModel):
    ok: bool
    warnings: List[str] = []

class SweepReport(CamelModel):
    instance_id: str
    ok: bool
    applied: bool = False
    discovered: int = 0
    created: int = 0
    updated: int = 0
    removed: int = 0
    retained: int = 0
    error: Optional[str] = None
