import logging
import time
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..config import settings
from ..models import InfrastructureInstance, ServiceType
from .marketplace_client import PluginCatalog

logger = logging.getLogger(__name__)

GENERIC_SERVICE_TYPES = {service_type.value for service_type in ServiceType}

TAG_SUFFIXES = ("-management", "-manager", "-plugin", "-ui")

TAG_ALIASES = {
    "kong-gateway": "kong",
    "minio-server": "minio",
    "postgres": "postgresql",
    "grafana-dashboards": "grafana",
    "prometheus-server": "prometheus",
}

# instance id -> (expires at, tags); shared by every request
_tag_cache: Dict[str, Tuple[float, List[str]]] = {}

def canonical_tag(value: str) -> Optional[str]:
    tag = value.strip().lower().replace("_", "-").replace(" ", "-")
    for suffix in TAG_SUFFIXES:
        if tag.endswith(suffix) and len(tag) > len(suffix):
            tag = tag[: -len(suffix)]
            break
    tag = TAG_ALIASES.get(tag, tag)
    return tag or None

def tag_for_plugin(plugin: Dict[str, Any]) -> Optional[str]:
    """Capability tag a plugin grants.

    capabilities.serviceType names the product (e.g. "minio") unless it holds
    one of the generic service types, in which case the slug is used.
    """
    service_type = (plugin.get("capabilities") or {}).get("serviceType")
    if isinstance(service_type, str) and service_type and service_type not in GENERIC_SERVICE_TYPES:
        return canonical_tag(service_type)
    slug = plugin.get("slug") or plugin.get("name")
    return canonical_tag(slug) if slug else None

def clear_tag_cache() -> None:
    _tag_cache.clear()

class TagService:
    def __init__(self, db: Session, catalog: PluginCatalog, ttl_seconds: int = settings.TAG_CACHE_TTL_SECONDS):
        self.db = db
        self.catalog = catalog
        self.ttl_seconds = ttl_seconds

    async def derive_tags(self, instance: InfrastructureInstance) -> List[str]:
        """Union of the tags granted by plugins bound to the instance's services"""
        plugin_ids = {service.management_plugin_id for service in instance.services if service.management_plugin_id}
        tags = set()
        for plugin_id in plugin_ids:
            try:
                plugin = await self.catalog.get_plugin(plugin_id)
            except Exception as e:
                logger.warning(f"Could not resolve plugin {plugin_id} for instance {instance.id}: {e}")
                continue
            if not plugin:
                logger.debug(f"Plugin {plugin_id} unknown to the marketplace, no tag")
                continue
            tag = tag_for_plugin(plugin)
            if tag:
                tags.add(tag)
        return sorted(tags)

    async def recompute(self, instance: InfrastructureInstance) -> List[str]:
        tags = await self.derive_tags(instance)
        if list(instance.tags or []) != tags:
            instance.tags = tags
            self.db.commit()
            logger.info(f"Tags for instance {instance.id}: {tags}")
        _tag_cache[instance.id] = (time.monotonic() + self.ttl_seconds, tags)
        return tags

    async def get_tags(self, instance: InfrastructureInstance) -> List[str]:
        cached = _tag_cache.get(instance.id)
        if cached and cached[0] > time.monotonic():
            return list(cached[1])
        return await self.recompute(instance)

    def invalidate(self, instance_id: str) -> None:
        _tag_cache.pop(instance_id, None)
