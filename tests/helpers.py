"""Fakes shared by the connector, discovery and API tests.

FakeSSHServer stands in for paramiko.SSHClient (pass it as client_factory);
docker_transport builds an httpx.MockTransport answering like a Docker daemon.
"""

from typing import Any, Dict, List, Optional, Set

import httpx

UNAME = "Linux db1 5.15.0-91-generic #101-Ubuntu SMP Tue Nov 14 13:30:08 UTC 2023 x86_64 x86_64 x86_64 GNU/Linux\n"
NPROC = "4\n"
FREE = (
    "               total        used        free      shared  buff/cache   available\n"
    "Mem:            7962        2113        3021          12        2828        5547\n"
    "Swap:           2047           0        2047\n"
)
DF = (
    "Filesystem      Size  Used Avail Use% Mounted on\n"
    "/dev/sda1        50G   12G   36G  25% /\n"
)

LINUX_HOST = {
    'echo "health check"': "health check\n",
    "uname -a": UNAME,
    "nproc": NPROC,
    "free -m": FREE,
    "df -h /": DF,
}


class FakeChannel:
    def __init__(self, exit_status: int):
        self.exit_status = exit_status

    def recv_exit_status(self) -> int:
        return self.exit_status


class FakeStream:
    def __init__(self, data: str, exit_status: int = 0):
        self._data = data.encode()
        self.channel = FakeChannel(exit_status)

    def read(self) -> bytes:
        return self._data


class FakeSSHClient:
    def __init__(self, server: "FakeSSHServer"):
        self.server = server

    def set_missing_host_key_policy(self, policy):
        pass

    def connect(self, **kwargs):
        self.server.connect_kwargs.append(kwargs)
        if self.server.connect_error is not None:
            raise self.server.connect_error
        self.server.sessions_opened += 1

    def exec_command(self, command: str, timeout: Optional[float] = None):
        self.server.commands.append(command)
        response = self.server.responses.get(command)
        if isinstance(response, Exception):
            raise response
        if response is None:
            return None, FakeStream("", 127), FakeStream(f"{command}: command not found\n")
        if isinstance(response, tuple):
            output, exit_status = response
            return None, FakeStream(output, exit_status), FakeStream("failed\n" if exit_status else "")
        return None, FakeStream(response), FakeStream("")

    def close(self):
        self.server.sessions_closed += 1


class FakeSSHServer:
    """Callable client factory; records every session and command"""

    def __init__(self, responses: Optional[Dict[str, Any]] = None, connect_error: Optional[Exception] = None):
        self.responses = dict(responses or {})
        self.connect_error = connect_error
        self.connect_kwargs: List[Dict[str, Any]] = []
        self.commands: List[str] = []
        self.sessions_opened = 0
        self.sessions_closed = 0

    def __call__(self) -> FakeSSHClient:
        return FakeSSHClient(self)


def container(container_id: str, name: Optional[str], status: str, ports: Optional[list] = None) -> Dict[str, Any]:
    return {
        "Id": container_id,
        "Names": [f"/{name}"] if name else [],
        "Image": "nginx:latest",
        "State": "running" if status.startswith("Up") else "exited",
        "Status": status,
        "Ports": ports or [],
        "Labels": {},
    }


def inspect(ports: Dict[str, Any], env: Optional[list] = None) -> Dict[str, Any]:
    return {
        "Config": {"Env": env or ["PATH=/usr/bin"]},
        "NetworkSettings": {"Ports": ports},
    }


class FakeDockerDaemon:
    """Mutable Docker daemon state served through an httpx.MockTransport"""

    def __init__(self, containers: Optional[list] = None, details: Optional[Dict[str, Any]] = None):
        self.containers = list(containers or [])
        self.details = dict(details or {})
        self.fail_inspect: Set[str] = set()
        self.fail_list = False
        self.down = False
        self.info = {"NCPU": 8, "MemTotal": 8 * 1024 * 1024 * 1024, "OSType": "linux", "OperatingSystem": "Ubuntu 22.04.3 LTS"}
        self.requests: List[str] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.requests.append(path)
        if self.down:
            raise httpx.ConnectError("Connection refused", request=request)
        if path == "/_ping":
            return httpx.Response(200, text="OK")
        if path == "/info":
            return httpx.Response(200, json=self.info)
        if path == "/containers/json":
            if self.fail_list:
                return httpx.Response(500, json={"message": "daemon error"})
            return httpx.Response(200, json=self.containers)
        if path.startswith("/containers/") and path.endswith("/json"):
            container_id = path.split("/")[2]
            if container_id in self.fail_inspect or container_id not in self.details:
                return httpx.Response(404, json={"message": "No such container"})
            return httpx.Response(200, json=self.details[container_id])
        return httpx.Response(404)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)
