from fastapi import APIRouter, Depends, HTTPException, status

from ..errors import InstanceValidationError, PluginNotFoundError
from ..models import InstanceService
from ..schemas import (
    PluginAssignment,
    PluginAssignmentResult,
    RemoteServiceCreate,
    ServiceResponse,
    ServiceUpdate,
)
from ..services import InstanceRegistry, PluginBindingService, TagService
from ..services.marketplace_client import ComponentLoader
from .deps import get_binding_service, get_component_loader, get_registry, get_tag_service

router = APIRouter()

def _get_service_or_404(registry: InstanceRegistry, service_id: str) -> InstanceService:
    service = registry.get_service(service_id)
    if not service:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Service not found"
        )
    return service

@router.post("/services/remote", response_model=ServiceResponse, status_code=status.HTTP_201_CREATED)
async def create_remote_service(
    service_data: RemoteServiceCreate,
    registry: InstanceRegistry = Depends(get_registry)
):
    """Register a service reachable at its own endpoints, with no owning instance"""
    try:
        return registry.create_remote_service(service_data)
    except InstanceValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message
        )

@router.get("/services/{service_id}", response_model=ServiceResponse)
async def get_service(
    service_id: str,
    registry: InstanceRegistry = Depends(get_registry)
):
    """Get a specific service"""
    return _get_service_or_404(registry, service_id)

@router.patch("/services/{service_id}", response_model=ServiceResponse)
async def update_service(
    service_id: str,
    service_data: ServiceUpdate,
    registry: InstanceRegistry = Depends(get_registry)
):
    """Rename a service or edit its configuration and endpoints"""
    service = _get_service_or_404(registry, service_id)
    try:
        return registry.update_service(service, service_data)
    except InstanceValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message
        )

@router.delete("/services/{service_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_service(
    service_id: str,
    registry: InstanceRegistry = Depends(get_registry),
    tag_service: TagService = Depends(get_tag_service)
):
    """Remove a service"""
    service = _get_service_or_404(registry, service_id)
    instance = service.instance
    had_plugin = bool(service.management_plugin_id)
    registry.delete_service(service)

    if instance is not None and had_plugin:
        tag_service.invalidate(instance.id)
        await tag_service.recompute(instance)
    return None

@router.post("/services/{service_id}/assign-plugin", response_model=PluginAssignmentResult)
async def assign_plugin(
    service_id: str,
    assignment: PluginAssignment,
    registry: InstanceRegistry = Depends(get_registry),
    binding: PluginBindingService = Depends(get_binding_service)
):
    """Bind a management plugin to a service. Re-assigning the same plugin is a no-op."""
    service = _get_service_or_404(registry, service_id)
    try:
        warnings = await binding.assign(service, assignment.plugin_id, assignment.management_config)
    except PluginNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=e.message
        )
    return {"ok": True, "warnings": warnings}

@router.delete("/services/{service_id}/assign-plugin", response_model=PluginAssignmentResult)
async def unassign_plugin(
    service_id: str,
    registry: InstanceRegistry = Depends(get_registry),
    binding: PluginBindingService = Depends(get_binding_service)
):
    """Drop the plugin binding; the service falls back to the generic view"""
    service = _get_service_or_404(registry, service_id)
    await binding.unassign(service)
    return {"ok": True}

@router.get("/services/{service_id}/management-view")
async def get_management_view(
    service_id: str,
    registry: InstanceRegistry = Depends(get_registry),
    binding: PluginBindingService = Depends(get_binding_service),
    loader: ComponentLoader = Depends(get_component_loader)
):
    """What the UI should mount for this service: the bound plugin or the generic view"""
    service = _get_service_or_404(registry, service_id)
    try:
        return binding.get_management_view(service, loader)
    except PluginNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=e.message
        )
