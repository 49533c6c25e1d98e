import io
import logging
import os
import re
from typing import Any, Callable, Dict, Optional, Tuple

import paramiko

from ...config import settings
from ...errors import CommandExecutionError, InstanceAuthError, InstanceConnectionError
from ...utils.timeouts import run_blocking
from .base import Connector

logger = logging.getLogger(__name__)

HEALTH_CHECK_COMMAND = 'echo "health check"'

SYSTEM_INFO_COMMANDS = {
    "uname": "uname -a",
    "nproc": "nproc",
    "free": "free -m",
    "df": "df -h /",
}

# Tried in order when a private key is supplied inline
KEY_CLASSES = (paramiko.RSAKey, paramiko.ECDSAKey, paramiko.Ed25519Key)

_SIZE_UNITS_MB = {"K": 1 / 1024, "M": 1, "G": 1024, "T": 1024 ** 2, "P": 1024 ** 3}


def size_to_mb(value: str) -> Optional[int]:
    """Convert a `df -h` size such as "50G" or "1.5T" to whole megabytes"""
    match = re.fullmatch(r"([\d.]+)([KMGTP])?i?B?", value.strip(), re.IGNORECASE)
    if not match:
        return None
    number, unit = match.groups()
    try:
        amount = float(number)
    except ValueError:
        return None
    if unit is None:
        # df prints plain byte counts without a suffix
        return int(amount / (1024 * 1024))
    return int(amount * _SIZE_UNITS_MB[unit.upper()])


def parse_uname(output: str) -> Dict[str, str]:
    parts = output.split()
    if len(parts) < 3:
        return {}
    return {"os_type": parts[0], "os_version": parts[2]}


def parse_nproc(output: str) -> Optional[int]:
    try:
        return int(output.strip())
    except ValueError:
        return None


def parse_free(output: str) -> Optional[int]:
    for line in output.splitlines():
        parts = line.split()
        if parts and parts[0] == "Mem:" and len(parts) > 1:
            try:
                return int(parts[1])
            except ValueError:
                return None
    return None


def parse_df(output: str) -> Optional[int]:
    lines = [line for line in output.splitlines() if line.strip()]
    if len(lines) < 2:
        return None
    parts = lines[1].split()
    if len(parts) < 2:
        return None
    return size_to_mb(parts[1])


def parse_system_info(outputs: Dict[str, Optional[str]]) -> Dict[str, Any]:
    """Build the partial system info mapping; unparseable fields are left out"""
    info: Dict[str, Any] = {}
    if outputs.get("uname"):
        info.update(parse_uname(outputs["uname"]))

    resources = {}
    if outputs.get("nproc"):
        cpu = parse_nproc(outputs["nproc"])
        if cpu is not None:
            resources["cpu"] = cpu
    if outputs.get("free"):
        memory = parse_free(outputs["free"])
        if memory is not None:
            resources["memory"] = memory
    if outputs.get("df"):
        disk = parse_df(outputs["df"])
        if disk is not None:
            resources["disk"] = disk
    if resources:
        info["resources"] = resources
    return info


class SSHConnector(Connector):
    """SSH connector. Every public operation opens its own session and closes it.

    There is no session reuse: N concurrent callers mean N concurrent SSH
    sessions. Bound that at the call site (see utils.session_limiter).
    """

    connection_type = "ssh"

    def __init__(
        self,
        host: str,
        port: Optional[int] = None,
        protocol: Optional[str] = None,
        config: Optional[Dict[str, Any]] = None,
        client_factory: Callable[[], Any] = paramiko.SSHClient,
        connect_timeout: float = settings.SSH_CONNECT_TIMEOUT,
        command_timeout: float = settings.SSH_COMMAND_TIMEOUT,
    ):
        super().__init__(host, port or 22, protocol or "ssh", config)
        self.client_factory = client_factory
        self.connect_timeout = connect_timeout
        self.command_timeout = command_timeout

    def _load_private_key(self) -> paramiko.PKey:
        key_text = self.config["privateKey"]
        passphrase = self.config.get("passphrase") or None
        for key_class in KEY_CLASSES:
            try:
                return key_class.from_private_key(io.StringIO(key_text), password=passphrase)
            except paramiko.SSHException:
                continue
        raise InstanceAuthError(f"Private key for {self.host} could not be loaded (wrong passphrase or unsupported type)")

    def _connect_params(self) -> Dict[str, Any]:
        username = self.config.get("username")
        if not username:
            raise InstanceConnectionError(f"SSH connection to {self.host} requires a username")

        params = {
            "hostname": self.host,
            "port": self.port,
            "username": username,
            "timeout": self.connect_timeout,
            "banner_timeout": self.connect_timeout,
            "auth_timeout": self.connect_timeout,
            "allow_agent": False,
            "look_for_keys": False,
        }
        if self.config.get("privateKey"):
            params["pkey"] = self._load_private_key()
        elif self.config.get("privateKeyPath"):
            params["key_filename"] = os.path.expanduser(self.config["privateKeyPath"])
            if self.config.get("passphrase"):
                params["passphrase"] = self.config["passphrase"]
        elif self.config.get("password"):
            params["password"] = self.config["password"]
        else:
            # No explicit credential: fall back to the agent and default keys
            params["allow_agent"] = True
            params["look_for_keys"] = True
        return params

    def _open_session(self):
        params = self._connect_params()
        client = self.client_factory()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            client.connect(**params)
        except paramiko.AuthenticationException as e:
            client.close()
            raise InstanceAuthError(f"SSH authentication to {self.host} failed: {e}")
        except (paramiko.SSHException, OSError, EOFError) as e:
            client.close()
            raise InstanceConnectionError(f"SSH connection to {self.host}:{self.port} failed: {e}")
        return client

    def _with_session(self, work: Callable[[Any], Any]):
        client = self._open_session()
        try:
            return work(client)
        except (paramiko.SSHException, OSError, EOFError) as e:
            raise InstanceConnectionError(f"SSH session to {self.host} failed: {e}")
        finally:
            client.close()

    def _run(self, client, command: str) -> Tuple[str, str, int]:
        stdin, stdout, stderr = client.exec_command(command, timeout=self.command_timeout)
        stdout_data = stdout.read().decode(errors="replace")
        stderr_data = stderr.read().decode(errors="replace")
        exit_status = stdout.channel.recv_exit_status()
        return stdout_data, stderr_data, exit_status

    def _collect_system_info(self, client) -> Dict[str, Optional[str]]:
        outputs: Dict[str, Optional[str]] = {}
        for key, command in SYSTEM_INFO_COMMANDS.items():
            try:
                stdout_data, _, exit_status = self._run(client, command)
                outputs[key] = stdout_data if exit_status == 0 else None
            except (paramiko.SSHException, OSError) as e:
                logger.debug(f"[SSH] {command!r} failed on {self.host}: {e}")
                outputs[key] = None
        return outputs

    async def connect(self) -> None:
        await run_blocking(self._with_session, lambda client: None)
        logger.info(f"[SSH] Connected to {self.host}:{self.port}")

    async def execute_command(self, command: str) -> str:
        stdout_data, stderr_data, exit_status = await run_blocking(
            self._with_session, lambda client: self._run(client, command)
        )
        if exit_status != 0:
            raise CommandExecutionError(
                f"Command exited with status {exit_status} on {self.host}: {stderr_data.strip()}",
                exit_status=exit_status,
                output=stdout_data,
            )
        return stdout_data

    async def check_health(self) -> bool:
        try:
            output = await self.execute_command(HEALTH_CHECK_COMMAND)
            return "health check" in output
        except Exception as e:
            logger.warning(f"[SSH] Health check failed for {self.host}: {e}")
            return False

    async def get_system_info(self) -> Dict[str, Any]:
        outputs = await run_blocking(self._with_session, self._collect_system_info)
        return parse_system_info(outputs)
