from .registry_service import InstanceRegistry
from .health_monitor import HealthMonitor
from .discovery_service import DiscoveryService
from .tag_service import TagService
from .plugin_binding_service import PluginBindingService
from .marketplace_client import MarketplaceClient, MarketplaceComponentLoader, StaticPluginCatalog

__all__ = [
    "InstanceRegistry",
    "HealthMonitor",
    "DiscoveryService",
    "TagService",
    "PluginBindingService",
    "MarketplaceClient",
    "MarketplaceComponentLoader",
    "StaticPluginCatalog"
]
