from pydantic import BaseModel, field_validator
from datetime import datetime
from typing import Any, Dict, List, Optional
from ..models.instance import InstanceType, ConnectionType, InstanceStatus
from .base import CamelModel

SECRET_CONFIG_KEYS = {"password", "privateKey", "private_key", "passphrase", "kubeconfig", "token", "apiKey"}
MASK = "********"

def redact_connection_config(config: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Mask credential values so they never leave the API"""
    redacted = {}
    for key, value in (config or {}).items():
        redacted[key] = MASK if key in SECRET_CONFIG_KEYS and value else value
    return redacted

class InstanceCreate(BaseModel):
    name: str
    type: InstanceType
    host: str
    port: Optional[int] = None
    protocol: Optional[str] = None
    connection_type: ConnectionType
    connection_config: Dict[str, Any] = {}
    description: Optional[str] = None
    space_id: Optional[str] = None

class InstanceUpdate(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = None
    protocol: Optional[str] = None
    connection_config: Optional[Dict[str, Any]] = None

class InstanceResources(BaseModel):
    cpu: Optional[int] = None
    memory: Optional[int] = None
    disk: Optional[int] = None

class InstanceResponse(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    type: InstanceType
    host: str
    port: Optional[int] = None
    protocol: Optional[str] = None
    connection_type: ConnectionType
    connection_config: Dict[str, Any] = {}
    status: InstanceStatus
    last_health_check: Optional[datetime] = None
    health_status: Optional[Dict[str, Any]] = None
    os_type: Optional[str] = None
    os_version: Optional[str] = None
    resources: Optional[InstanceResources] = None
    tags: List[str] = []
    last_discovery_at: Optional[datetime] = None
    space_id: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @field_validator("connection_config", mode="before")
    @classmethod
    def mask_secrets(cls, value):
        return redact_connection_config(value)

    @field_validator("tags", mode="before")
    @classmethod
    def default_tags(cls, value):
        return value or []

class InstanceList(BaseModel):
    instances: List[InstanceResponse]

class TagList(BaseModel):
    tags: List[str]

class HealthCheckResult(CamelModel):
    instance_id: str
    status: InstanceStatus
    healthy: bool
    error: Optional[str] = None

class HealthCheckSummary(BaseModel):
    results: List[HealthCheckResult]

class CommandRequest(BaseModel):
    command: str

class CommandResult(BaseModel):
    output: str

class ConnectionTestResult(BaseModel):
    ok: bool
    error: Optional[str] = None
