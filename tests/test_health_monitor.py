"""
Tests for the health monitor: status rule, snapshot and resource updates,
and per-instance failure isolation.
"""

import asyncio

from horizon_infra.models import InstanceStatus
from horizon_infra.services import HealthMonitor
from horizon_infra.services.connectors import SSHConnector
from horizon_infra.services.connectors.base import Connector
from horizon_infra.utils.session_limiter import SessionLimiter
from tests.helpers import LINUX_HOST, FakeSSHServer


class StubConnector(Connector):
    connection_type = "ssh"

    def __init__(self, healthy=True, info=None, info_error=None, delay=0):
        super().__init__("stub")
        self.healthy = healthy
        self.info = info or {}
        self.info_error = info_error
        self.delay = delay
        self.disconnected = False

    async def check_health(self):
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.healthy

    async def get_system_info(self):
        if self.info_error:
            raise self.info_error
        return self.info

    async def disconnect(self):
        self.disconnected = True


def ssh_factory(server):
    def factory(instance):
        return SSHConnector(instance.host, port=instance.port, config=instance.connection_config, client_factory=server)
    return factory


class TestHealthMonitor:
    async def test_successful_probe_marks_online(self, db_session, make_instance):
        instance = make_instance()
        assert instance.status == InstanceStatus.UNKNOWN

        result = await HealthMonitor(db_session, connector_factory=ssh_factory(FakeSSHServer(LINUX_HOST))).probe(instance)

        assert result.status == InstanceStatus.ONLINE
        assert result.healthy is True
        assert instance.status == InstanceStatus.ONLINE
        assert instance.last_health_check is not None
        assert instance.resources == {"cpu": 4, "memory": 7962, "disk": 51200}
        assert instance.os_type == "Linux"
        assert instance.os_version == "5.15.0-91-generic"
        assert instance.health_status["healthy"] is True
        assert instance.health_status["connectionType"] == "ssh"

    async def test_negative_health_check_marks_offline(self, db_session, make_instance):
        instance = make_instance()
        server = FakeSSHServer(connect_error=ConnectionRefusedError("refused"))

        result = await HealthMonitor(db_session, connector_factory=ssh_factory(server)).probe(instance)

        assert result.status == InstanceStatus.OFFLINE
        assert instance.status == InstanceStatus.OFFLINE
        assert instance.health_status["healthy"] is False
        assert "error" not in instance.health_status

    async def test_exception_marks_error(self, db_session, make_instance):
        instance = make_instance()
        connector = StubConnector(info_error=RuntimeError("proc unreadable"))

        result = await HealthMonitor(db_session, connector_factory=lambda i: connector).probe(instance)

        assert result.status == InstanceStatus.ERROR
        assert instance.status == InstanceStatus.ERROR
        assert instance.health_status["error"] == "proc unreadable"
        assert connector.disconnected is True

    async def test_deadline_marks_error(self, db_session, make_instance):
        instance = make_instance()
        monitor = HealthMonitor(db_session, connector_factory=lambda i: StubConnector(delay=1), timeout=0.05)

        result = await monitor.probe(instance)

        assert result.status == InstanceStatus.ERROR
        assert "timed out" in result.error

    async def test_resources_are_merged(self, db_session, make_instance):
        instance = make_instance(resources={"cpu": 2, "memory": 1024, "disk": 20480})
        connector = StubConnector(info={"resources": {"cpu": 4}})

        await HealthMonitor(db_session, connector_factory=lambda i: connector).probe(instance)

        assert instance.resources == {"cpu": 4, "memory": 1024, "disk": 20480}

    async def test_probe_all_isolates_failures(self, db_session, make_instance):
        good = make_instance(name="good", host="10.0.0.1")
        broken = make_instance(name="broken", host="10.0.0.2")
        down = make_instance(name="down", host="10.0.0.3")

        def factory(instance):
            if instance.host == "10.0.0.2":
                raise ValueError("corrupt connection config")
            return StubConnector(healthy=instance.host == "10.0.0.1")

        results = await HealthMonitor(db_session, connector_factory=factory).probe_all([good, broken, down])

        assert [r.status for r in results] == [InstanceStatus.ONLINE, InstanceStatus.ERROR, InstanceStatus.OFFLINE]
        assert good.status == InstanceStatus.ONLINE
        assert broken.status == InstanceStatus.ERROR
        assert down.status == InstanceStatus.OFFLINE


    async def test_probe_all_can_skip_busy_instances(self, db_session, make_instance):
        busy = make_instance(name="busy", host="10.0.0.1")
        idle = make_instance(name="idle", host="10.0.0.2")
        limiter = SessionLimiter(max_sessions_per_instance=1)
        monitor = HealthMonitor(db_session, connector_factory=lambda i: StubConnector(), limiter=limiter)

        async with limiter.acquire(busy.id):
            results = await monitor.probe_all([busy, idle], skip_busy=True)

        assert [r.instance_id for r in results] == [idle.id]
        assert busy.status == InstanceStatus.UNKNOWN
        assert idle.status == InstanceStatus.ONLINE


class TestSessionLimiter:
    async def test_bounds_concurrent_sessions(self):
        limiter = SessionLimiter(max_sessions_per_instance=2)
        peak = 0

        async def work():
            nonlocal peak
            async with limiter.acquire("i-1"):
                peak = max(peak, limiter.active_sessions["i-1"])
                await asyncio.sleep(0.01)

        await asyncio.gather(*(work() for _ in range(5)))

        assert peak == 2
        assert limiter.active_sessions["i-1"] == 0
        assert not limiter.is_saturated("i-1")

    async def test_forget_drops_idle_instances_only(self):
        limiter = SessionLimiter(max_sessions_per_instance=1)
        async with limiter.acquire("i-gone"):
            pass

        async with limiter.acquire("i-busy"):
            limiter.forget("i-busy")
            assert limiter.is_saturated("i-busy")
        limiter.forget("i-gone")

        assert "i-gone" not in limiter._semaphores
        assert "i-gone" not in limiter.active_sessions
        assert "i-busy" in limiter._semaphores
