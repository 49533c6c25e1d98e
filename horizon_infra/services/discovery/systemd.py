import logging
import shlex
from typing import Dict, List, Optional

from ...errors import DiscoveryError, InstanceConnectionError
from ...models.service import ServiceStatus, ServiceType
from ...schemas.service import DiscoveredService
from ..connectors.ssh import SSHConnector
from .base import Discoverer

logger = logging.getLogger(__name__)

LIST_UNITS_COMMAND = "systemctl list-units --type=service --no-pager --no-legend"
SHOW_UNIT_COMMAND = "systemctl show {unit} --property=ActiveState,MainPID,ExecStart"

# systemctl prefixes failed units with a bullet when --plain is not given
BULLETS = {"●", "*", "○"}

def parse_unit_line(line: str) -> Optional[Dict[str, str]]:
    parts = line.split()
    if parts and parts[0] in BULLETS:
        parts = parts[1:]
    if len(parts) < 3:
        return None
    return {
        "unit": parts[0],
        "load": parts[1],
        "active": parts[2],
        "sub": parts[3] if len(parts) > 3 else "",
        "description": " ".join(parts[4:]),
    }

def parse_properties(output: str) -> Dict[str, str]:
    properties = {}
    for line in output.splitlines():
        key, sep, value = line.partition("=")
        if sep:
            properties[key.strip()] = value.strip()
    return properties

class SystemdDiscoverer(Discoverer):
    """One service per loaded systemd service unit, listed over SSH"""

    source = "systemd"

    def __init__(self, connector: SSHConnector):
        self.connector = connector

    async def _unit_details(self, unit: str) -> str:
        try:
            return await self.connector.execute_command(SHOW_UNIT_COMMAND.format(unit=shlex.quote(unit)))
        except Exception as e:
            logger.debug(f"[Discovery] systemctl show {unit} failed: {e}")
            return ""

    async def _enumerate(self) -> List[DiscoveredService]:
        try:
            output = await self.connector.execute_command(LIST_UNITS_COMMAND)
        except InstanceConnectionError as e:
            raise DiscoveryError(f"Listing systemd units failed: {e.message}")
        services = []
        for line in output.splitlines():
            if not line.strip():
                continue
            unit = parse_unit_line(line)
            if unit is None:
                logger.debug(f"[Discovery] Skipping unparseable unit line: {line!r}")
                continue

            details = await self._unit_details(unit["unit"])
            services.append(DiscoveredService(
                name=unit["unit"],
                type=ServiceType.SYSTEMD_SERVICE,
                status=ServiceStatus.RUNNING if unit["active"] == "active" else ServiceStatus.STOPPED,
                service_config={
                    **unit,
                    "details": details,
                    "properties": parse_properties(details),
                },
            ))
        return services
