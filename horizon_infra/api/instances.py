from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import Callable, Optional

from ..errors import CommandExecutionError, InstanceConnectionError, InstanceValidationError
from ..models import ConnectionType, InfrastructureInstance, InstanceStatus, InstanceType
from ..schemas import (
    CommandRequest,
    CommandResult,
    ConnectionTestResult,
    HealthCheckSummary,
    InstanceCreate,
    InstanceList,
    InstanceResponse,
    InstanceUpdate,
    ServiceCreate,
    ServiceList,
    ServiceResponse,
    SweepReport,
    TagList,
)
from ..services import DiscoveryService, HealthMonitor, InstanceRegistry, TagService
from ..services.connectors import Connector
from ..utils.session_limiter import session_limiter
from .deps import (
    get_connector_factory,
    get_current_user_id,
    get_discovery_service,
    get_health_monitor,
    get_registry,
    get_tag_service,
)

router = APIRouter()

def _get_instance_or_404(registry: InstanceRegistry, instance_id: str) -> InfrastructureInstance:
    instance = registry.get_instance(instance_id)
    if not instance:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Instance not found"
        )
    return instance

@router.get("/instances", response_model=InstanceList)
async def list_instances(
    space_id: Optional[str] = Query(None, alias="spaceId"),
    instance_type: Optional[InstanceType] = Query(None, alias="type"),
    instance_status: Optional[InstanceStatus] = Query(None, alias="status"),
    tag: Optional[str] = None,
    registry: InstanceRegistry = Depends(get_registry)
):
    """List instances, optionally filtered by space, type, status or capability tag"""
    instances = registry.list_instances(
        space_id=space_id,
        instance_type=instance_type,
        status=instance_status,
        tag=tag
    )
    return {"instances": instances}

@router.post("/instances", response_model=InstanceResponse, status_code=status.HTTP_201_CREATED)
async def create_instance(
    instance_data: InstanceCreate,
    current_user_id: Optional[str] = Depends(get_current_user_id),
    registry: InstanceRegistry = Depends(get_registry)
):
    """Register a new instance. Its status stays unknown until the first health check."""
    try:
        return registry.create_instance(instance_data, created_by=current_user_id)
    except InstanceValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message
        )

@router.post("/instances/health-check", response_model=HealthCheckSummary)
async def check_all_instances(
    space_id: Optional[str] = Query(None, alias="spaceId"),
    registry: InstanceRegistry = Depends(get_registry),
    monitor: HealthMonitor = Depends(get_health_monitor)
):
    """Probe every instance (of a space) and record the results"""
    instances = registry.list_instances(space_id=space_id)
    results = await monitor.probe_all(instances)
    return {"results": results}

@router.get("/instances/{instance_id}", response_model=InstanceResponse)
async def get_instance(
    instance_id: str,
    registry: InstanceRegistry = Depends(get_registry)
):
    """Get a specific instance"""
    return _get_instance_or_404(registry, instance_id)

@router.patch("/instances/{instance_id}", response_model=InstanceResponse)
async def update_instance(
    instance_id: str,
    instance_data: InstanceUpdate,
    registry: InstanceRegistry = Depends(get_registry)
):
    """Update addressing or connection settings of an instance"""
    instance = _get_instance_or_404(registry, instance_id)
    try:
        return registry.update_instance(instance, instance_data)
    except InstanceValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message
        )

@router.delete("/instances/{instance_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_instance(
    instance_id: str,
    registry: InstanceRegistry = Depends(get_registry),
    tag_service: TagService = Depends(get_tag_service)
):
    """Delete an instance together with its services"""
    instance = _get_instance_or_404(registry, instance_id)
    registry.delete_instance(instance)
    tag_service.invalidate(instance_id)
    session_limiter.forget(instance_id)
    return None

@router.get("/instances/{instance_id}/services", response_model=ServiceList)
async def list_instance_services(
    instance_id: str,
    registry: InstanceRegistry = Depends(get_registry)
):
    """List the services known on an instance"""
    _get_instance_or_404(registry, instance_id)
    return {"services": registry.list_services(instance_id)}

@router.post("/instances/{instance_id}/services", response_model=ServiceResponse, status_code=status.HTTP_201_CREATED)
async def create_instance_service(
    instance_id: str,
    service_data: ServiceCreate,
    registry: InstanceRegistry = Depends(get_registry),
    tag_service: TagService = Depends(get_tag_service)
):
    """Register a service on an instance by hand"""
    instance = _get_instance_or_404(registry, instance_id)
    try:
        service = registry.create_service(instance, service_data)
    except InstanceValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message
        )

    if service.management_plugin_id:
        tag_service.invalidate(instance.id)
        await tag_service.recompute(instance)
    return service

@router.get("/instances/{instance_id}/tags", response_model=TagList)
async def get_instance_tags(
    instance_id: str,
    registry: InstanceRegistry = Depends(get_registry),
    tag_service: TagService = Depends(get_tag_service)
):
    """Capability tags derived from the plugins bound to the instance's services"""
    instance = _get_instance_or_404(registry, instance_id)
    return {"tags": await tag_service.get_tags(instance)}

@router.post("/instances/{instance_id}/discover", response_model=SweepReport)
async def discover_instance_services(
    instance_id: str,
    registry: InstanceRegistry = Depends(get_registry),
    discovery: DiscoveryService = Depends(get_discovery_service)
):
    """Run a discovery sweep now. A failed sweep reports ok=false and changes nothing."""
    instance = _get_instance_or_404(registry, instance_id)
    return await discovery.run_sweep(instance)

@router.post("/instances/{instance_id}/health-check", response_model=InstanceResponse)
async def check_instance(
    instance_id: str,
    registry: InstanceRegistry = Depends(get_registry),
    monitor: HealthMonitor = Depends(get_health_monitor)
):
    """Probe one instance and return it with the refreshed status"""
    instance = _get_instance_or_404(registry, instance_id)
    await monitor.probe(instance)
    return instance

@router.post("/instances/{instance_id}/test-connection", response_model=ConnectionTestResult)
async def test_instance_connection(
    instance_id: str,
    registry: InstanceRegistry = Depends(get_registry),
    connector_factory: Callable[[InfrastructureInstance], Connector] = Depends(get_connector_factory)
):
    """Try to connect with the stored settings and report why it failed, if it did"""
    instance = _get_instance_or_404(registry, instance_id)
    try:
        connector = connector_factory(instance)
        await connector.connect()
        await connector.disconnect()
    except (InstanceConnectionError, InstanceValidationError) as e:
        return {"ok": False, "error": e.message}
    return {"ok": True}

@router.post("/instances/{instance_id}/execute", response_model=CommandResult)
async def execute_instance_command(
    instance_id: str,
    command: CommandRequest,
    registry: InstanceRegistry = Depends(get_registry),
    connector_factory: Callable[[InfrastructureInstance], Connector] = Depends(get_connector_factory)
):
    """Run a shell command on an SSH instance"""
    instance = _get_instance_or_404(registry, instance_id)
    if instance.connection_type != ConnectionType.SSH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Commands can only be executed on SSH instances"
        )

    connector = connector_factory(instance)
    try:
        output = await connector.execute_command(command.command)
    except CommandExecutionError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"message": e.message, "exitStatus": e.exit_status, "output": e.output}
        )
    except InstanceConnectionError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=e.message
        )
    return {"output": output}
