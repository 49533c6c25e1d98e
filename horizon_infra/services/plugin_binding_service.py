import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..errors import PluginNotFoundError
from ..models import InstanceService
from .marketplace_client import ComponentLoader, PluginCatalog
from .tag_service import GENERIC_SERVICE_TYPES, TagService

logger = logging.getLogger(__name__)

class PluginBindingService:
    """Binds management plugins to single services.

    Only the binding is stored here. What the plugin renders or does is the
    marketplace's concern, reached through an injected ComponentLoader.
    """

    def __init__(self, db: Session, catalog: PluginCatalog, tag_service: TagService):
        self.db = db
        self.catalog = catalog
        self.tag_service = tag_service

    async def assign(
        self,
        service: InstanceService,
        plugin_id: str,
        management_config: Optional[Dict[str, Any]] = None,
    ) -> List[str]:
        """Bind plugin_id to the service and return non-fatal validation warnings"""
        if service.management_plugin_id == plugin_id:
            return []

        warnings = []
        plugin: Optional[Dict[str, Any]]
        try:
            plugin = await self.catalog.get_plugin(plugin_id)
        except Exception as e:
            logger.warning(f"Binding plugin {plugin_id} to service {service.id} without validation: {e}")
            warnings.append(f"Plugin {plugin_id} could not be validated: {e}")
            plugin = {}
        else:
            if plugin is None:
                raise PluginNotFoundError(f"Plugin {plugin_id} not found")

        declared_type = (plugin.get("capabilities") or {}).get("serviceType")
        if declared_type in GENERIC_SERVICE_TYPES and declared_type != service.type.value:
            warnings.append(
                f"Plugin {plugin_id} targets {declared_type} services but {service.name} is a {service.type.value}"
            )

        service.management_plugin_id = plugin_id
        service.management_config = management_config or {}
        self.db.commit()
        logger.info(f"Bound plugin {plugin_id} to service {service.id}")

        await self._refresh_tags(service)
        return warnings

    async def unassign(self, service: InstanceService) -> None:
        if not service.management_plugin_id:
            return
        plugin_id = service.management_plugin_id
        service.management_plugin_id = None
        service.management_config = None
        self.db.commit()
        logger.info(f"Unbound plugin {plugin_id} from service {service.id}")

        await self._refresh_tags(service)

    def get_management_view(self, service: InstanceService, loader: ComponentLoader) -> Dict[str, Any]:
        if not service.management_plugin_id:
            return {"view": "generic", "serviceId": service.id}
        return {
            "view": "plugin",
            "serviceId": service.id,
            "managementConfig": service.management_config or {},
            "component": loader.load(service.management_plugin_id),
        }

    async def _refresh_tags(self, service: InstanceService) -> None:
        if not service.instance_id:
            return
        self.tag_service.invalidate(service.instance_id)
        await self.tag_service.recompute(service.instance)
