from typing import Callable, Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db
from ..models import InfrastructureInstance
from ..services import (
    DiscoveryService,
    HealthMonitor,
    InstanceRegistry,
    MarketplaceClient,
    MarketplaceComponentLoader,
    PluginBindingService,
    StaticPluginCatalog,
    TagService,
)
from ..services.connectors import Connector, create_connector
from ..services.marketplace_client import ComponentLoader, PluginCatalog

async def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> Optional[str]:
    """Caller identity forwarded by the platform gateway, recorded as created_by"""
    return x_user_id

def get_plugin_catalog() -> PluginCatalog:
    if settings.MARKETPLACE_URL:
        return MarketplaceClient()
    return StaticPluginCatalog()

def get_component_loader() -> ComponentLoader:
    return MarketplaceComponentLoader()

def get_connector_factory() -> Callable[[InfrastructureInstance], Connector]:
    return create_connector

def get_registry(db: Session = Depends(get_db)) -> InstanceRegistry:
    return InstanceRegistry(db)

def get_tag_service(
    db: Session = Depends(get_db),
    catalog: PluginCatalog = Depends(get_plugin_catalog)
) -> TagService:
    return TagService(db, catalog)

def get_health_monitor(
    db: Session = Depends(get_db),
    connector_factory: Callable = Depends(get_connector_factory)
) -> HealthMonitor:
    return HealthMonitor(db, connector_factory=connector_factory)

def get_discovery_service(
    db: Session = Depends(get_db),
    tag_service: TagService = Depends(get_tag_service),
    connector_factory: Callable = Depends(get_connector_factory)
) -> DiscoveryService:
    return DiscoveryService(db, tag_service, connector_factory=connector_factory)

def get_binding_service(
    db: Session = Depends(get_db),
    catalog: PluginCatalog = Depends(get_plugin_catalog),
    tag_service: TagService = Depends(get_tag_service)
) -> PluginBindingService:
    return PluginBindingService(db, catalog, tag_service)
