"""
End-to-end tests for the infrastructure REST routes, with fake SSH and
Docker backends behind the connector factory.
"""

from horizon_infra.models import ServiceSource
from horizon_infra.schemas.instance import MASK
from horizon_infra.services.connectors import DockerAPIConnector, SSHConnector
from horizon_infra.services.tag_service import _tag_cache
from horizon_infra.utils.session_limiter import session_limiter
from tests.helpers import LINUX_HOST, FakeDockerDaemon, FakeSSHServer, container, inspect

BASE = "/api/infrastructure"

SSH_INSTANCE = {
    "name": "db1",
    "type": "vm",
    "host": "10.0.0.5",
    "port": 22,
    "connection_type": "ssh",
    "connection_config": {"username": "root", "password": "s3cret"},
}


def create_instance(client, **overrides):
    payload = dict(SSH_INSTANCE, **overrides)
    response = client.post(f"{BASE}/instances", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def use_ssh_server(connector_factory, server):
    connector_factory.factory = lambda instance: SSHConnector(
        instance.host, port=instance.port, config=instance.connection_config, client_factory=server
    )


def use_docker_daemon(connector_factory, daemon):
    connector_factory.factory = lambda instance: DockerAPIConnector(
        instance.host, port=instance.port, config=instance.connection_config, transport=daemon.transport()
    )


class TestInstanceLifecycle:
    def test_register_then_probe(self, client, connector_factory):
        created = create_instance(client)
        assert created["status"] == "unknown"
        assert created["tags"] == []
        assert created["connectionType"] == "ssh"

        use_ssh_server(connector_factory, FakeSSHServer(LINUX_HOST))
        response = client.post(f"{BASE}/instances/{created['id']}/health-check")

        assert response.status_code == 200
        probed = response.json()
        assert probed["status"] == "online"
        assert probed["resources"]["cpu"] == 4
        assert probed["resources"]["memory"] == 7962
        assert probed["osType"] == "Linux"
        assert probed["lastHealthCheck"] is not None

    def test_unreachable_instance_goes_offline(self, client, connector_factory):
        created = create_instance(client)
        use_ssh_server(connector_factory, FakeSSHServer(connect_error=ConnectionRefusedError("refused")))

        response = client.post(f"{BASE}/instances/{created['id']}/health-check")

        assert response.json()["status"] == "offline"

    def test_bulk_health_check(self, client, connector_factory):
        first = create_instance(client, name="a", host="10.0.0.1")
        second = create_instance(client, name="b", host="10.0.0.2")
        use_ssh_server(connector_factory, FakeSSHServer(LINUX_HOST))

        response = client.post(f"{BASE}/instances/health-check")

        results = {r["instanceId"]: r["status"] for r in response.json()["results"]}
        assert results == {first["id"]: "online", second["id"]: "online"}

    def test_new_instance_has_no_services_or_tags(self, client):
        created = create_instance(client)

        assert client.get(f"{BASE}/instances/{created['id']}/services").json() == {"services": []}
        assert client.get(f"{BASE}/instances/{created['id']}/tags").json() == {"tags": []}

    def test_secrets_are_masked(self, client):
        created = create_instance(client)
        fetched = client.get(f"{BASE}/instances/{created['id']}").json()

        for body in (created, fetched):
            assert body["connectionConfig"] == {"username": "root", "password": MASK}

    def test_patch_keeps_password_when_blank(self, client, connector_factory):
        created = create_instance(client)

        response = client.patch(
            f"{BASE}/instances/{created['id']}",
            json={"host": "10.0.0.6", "connectionConfig": {"username": "admin", "password": ""}},
        )

        assert response.status_code == 200
        assert response.json()["host"] == "10.0.0.6"
        server = FakeSSHServer(LINUX_HOST)
        use_ssh_server(connector_factory, server)
        client.post(f"{BASE}/instances/{created['id']}/test-connection")
        assert server.connect_kwargs[0]["username"] == "admin"
        assert server.connect_kwargs[0]["password"] == "s3cret"

    def test_unknown_instance(self, client):
        assert client.get(f"{BASE}/instances/missing").status_code == 404
        assert client.delete(f"{BASE}/instances/missing").status_code == 404


class TestValidation:
    def test_blank_name_rejected(self, client):
        response = client.post(f"{BASE}/instances", json=dict(SSH_INSTANCE, name="  "))

        assert response.status_code == 400

    def test_ssh_requires_username(self, client):
        response = client.post(f"{BASE}/instances", json=dict(SSH_INSTANCE, connection_config={"password": "x"}))

        assert response.status_code == 400
        assert "username" in response.json()["detail"]

    def test_missing_host_rejected(self, client):
        payload = dict(SSH_INSTANCE)
        del payload["host"]

        assert client.post(f"{BASE}/instances", json=payload).status_code == 422

    def test_invalid_port_rejected(self, client):
        assert client.post(f"{BASE}/instances", json=dict(SSH_INSTANCE, port=70000)).status_code == 400

    def test_patch_rejects_null_name_or_host(self, client):
        created = create_instance(client)
        url = f"{BASE}/instances/{created['id']}"

        for payload in ({"host": None}, {"name": None}):
            response = client.patch(url, json=payload)

            assert response.status_code == 400
            assert "required" in response.json()["detail"]

        fetched = client.get(url).json()
        assert (fetched["name"], fetched["host"]) == ("db1", "10.0.0.5")


class TestListing:
    def test_filters(self, client):
        db1 = create_instance(client, name="db1", space_id="space-a")
        create_instance(client, name="shared")
        create_instance(client, name="other", space_id="space-b")
        docker = create_instance(
            client, name="docker1", type="docker_host", connection_type="docker_api", connection_config={}, port=2375
        )

        def names(**params):
            response = client.get(f"{BASE}/instances", params=params)
            return sorted(i["name"] for i in response.json()["instances"])

        assert names() == ["db1", "docker1", "other", "shared"]
        assert names(spaceId="space-a") == ["db1", "docker1", "shared"]
        assert names(type="docker_host") == ["docker1"]
        assert names(status="unknown") == ["db1", "docker1", "other", "shared"]
        assert names(status="online") == []
        assert docker["spaceId"] is None
        assert db1["spaceId"] == "space-a"

    def test_filter_by_tag(self, client):
        instance = create_instance(client)
        service = client.post(f"{BASE}/instances/{instance['id']}/services", json={"name": "minio"}).json()
        client.post(f"{BASE}/services/{service['id']}/assign-plugin", json={"pluginId": "plugin-minio"})
        create_instance(client, name="plain", host="10.0.0.9")

        response = client.get(f"{BASE}/instances", params={"tag": "minio"})

        assert [i["name"] for i in response.json()["instances"]] == ["db1"]


class TestDiscoveryRoute:
    def test_discover_docker_host(self, client, connector_factory):
        instance = create_instance(
            client, name="docker1", type="docker_host", connection_type="docker_api", connection_config={}, port=2375
        )
        use_docker_daemon(connector_factory, FakeDockerDaemon(
            containers=[container("c-web", "web", "Up 2 hours")],
            details={"c-web": inspect({"80/tcp": [{"HostIp": "", "HostPort": "8080"}]})},
        ))

        report = client.post(f"{BASE}/instances/{instance['id']}/discover").json()

        assert report["ok"] is True
        assert report["applied"] is True
        assert report["created"] == 1
        services = client.get(f"{BASE}/instances/{instance['id']}/services").json()["services"]
        assert services[0]["name"] == "web"
        assert services[0]["source"] == "discovered"
        assert services[0]["endpoints"] == [{"url": "localhost", "port": 8080, "protocol": "tcp"}]

    def test_failed_discovery_reports_error(self, client, connector_factory):
        instance = create_instance(
            client, name="docker1", type="docker_host", connection_type="docker_api", connection_config={}, port=2375
        )
        daemon = FakeDockerDaemon()
        daemon.down = True
        use_docker_daemon(connector_factory, daemon)

        report = client.post(f"{BASE}/instances/{instance['id']}/discover").json()

        assert report["ok"] is False
        assert report["error"]


class TestConnectionRoutes:
    def test_test_connection_failure(self, client, connector_factory):
        instance = create_instance(client)
        use_ssh_server(connector_factory, FakeSSHServer(connect_error=ConnectionRefusedError("refused")))

        body = client.post(f"{BASE}/instances/{instance['id']}/test-connection").json()

        assert body["ok"] is False
        assert body["error"]

    def test_test_connection_success(self, client, connector_factory):
        instance = create_instance(client)
        use_ssh_server(connector_factory, FakeSSHServer(LINUX_HOST))

        assert client.post(f"{BASE}/instances/{instance['id']}/test-connection").json()["ok"] is True

    def test_execute_command(self, client, connector_factory):
        instance = create_instance(client)
        use_ssh_server(connector_factory, FakeSSHServer(LINUX_HOST))

        response = client.post(f"{BASE}/instances/{instance['id']}/execute", json={"command": "nproc"})

        assert response.status_code == 200
        assert response.json() == {"output": "4\n"}

    def test_execute_failing_command(self, client, connector_factory):
        instance = create_instance(client)
        use_ssh_server(connector_factory, FakeSSHServer(LINUX_HOST))

        response = client.post(f"{BASE}/instances/{instance['id']}/execute", json={"command": "false"})

        assert response.status_code == 502
        assert response.json()["detail"]["exitStatus"] == 127

    def test_execute_requires_ssh(self, client):
        instance = create_instance(
            client, name="docker1", type="docker_host", connection_type="docker_api", connection_config={}
        )

        response = client.post(f"{BASE}/instances/{instance['id']}/execute", json={"command": "ls"})

        assert response.status_code == 400


class TestServiceRoutes:
    def test_assign_plugin_twice_is_a_no_op(self, client):
        instance = create_instance(client)
        service = client.post(f"{BASE}/instances/{instance['id']}/services", json={"name": "minio"}).json()
        url = f"{BASE}/services/{service['id']}/assign-plugin"

        first = client.post(url, json={"pluginId": "plugin-minio", "managementConfig": {"bucket": "logs"}})
        second = client.post(url, json={"pluginId": "plugin-minio", "managementConfig": {"bucket": "other"}})

        assert first.json() == {"ok": True, "warnings": []}
        assert second.json() == {"ok": True, "warnings": []}
        fetched = client.get(f"{BASE}/services/{service['id']}").json()
        assert fetched["managementPluginId"] == "plugin-minio"
        assert fetched["managementConfig"] == {"bucket": "logs"}
        assert client.get(f"{BASE}/instances/{instance['id']}/tags").json() == {"tags": ["minio"]}

    def test_assign_unknown_plugin(self, client):
        instance = create_instance(client)
        service = client.post(f"{BASE}/instances/{instance['id']}/services", json={"name": "minio"}).json()

        response = client.post(f"{BASE}/services/{service['id']}/assign-plugin", json={"pluginId": "plugin-gone"})

        assert response.status_code == 404

    def test_unassign_and_management_view(self, client):
        instance = create_instance(client)
        service = client.post(f"{BASE}/instances/{instance['id']}/services", json={"name": "minio"}).json()
        client.post(f"{BASE}/services/{service['id']}/assign-plugin", json={"pluginId": "plugin-minio"})

        response = client.delete(f"{BASE}/services/{service['id']}/assign-plugin")

        assert response.json()["ok"] is True
        assert client.get(f"{BASE}/instances/{instance['id']}/tags").json() == {"tags": []}
        view = client.get(f"{BASE}/services/{service['id']}/management-view").json()
        assert view == {"view": "generic", "serviceId": service["id"]}

    def test_manual_service(self, client):
        instance = create_instance(client)

        response = client.post(
            f"{BASE}/instances/{instance['id']}/services",
            json={"name": "legacy-app", "endpoints": [{"url": "10.0.0.5", "port": 8080, "protocol": "http"}]},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["source"] == ServiceSource.MANUAL.value
        assert body["instanceId"] == instance["id"]
        assert body["type"] == "application"

    def test_remote_service(self, client):
        response = client.post(
            f"{BASE}/services/remote",
            json={"name": "s3", "spaceId": "space-a", "endpoints": [{"url": "https://s3.example.com"}]},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["instanceId"] is None
        assert body["source"] == "remote"
        assert body["spaceId"] == "space-a"

    def test_update_and_delete_service(self, client):
        instance = create_instance(client)
        service = client.post(f"{BASE}/instances/{instance['id']}/services", json={"name": "app"}).json()

        renamed = client.patch(f"{BASE}/services/{service['id']}", json={"name": "api"})
        assert renamed.json()["name"] == "api"
        assert client.patch(f"{BASE}/services/{service['id']}", json={"name": ""}).status_code == 400

        assert client.delete(f"{BASE}/services/{service['id']}").status_code == 204
        assert client.get(f"{BASE}/services/{service['id']}").status_code == 404

    def test_deleting_instance_drops_cached_state(self, client, connector_factory):
        instance = create_instance(client)
        use_ssh_server(connector_factory, FakeSSHServer(LINUX_HOST))
        client.post(f"{BASE}/instances/{instance['id']}/health-check")
        client.get(f"{BASE}/instances/{instance['id']}/tags")
        assert instance["id"] in session_limiter._semaphores
        assert instance["id"] in _tag_cache

        client.delete(f"{BASE}/instances/{instance['id']}")

        assert instance["id"] not in session_limiter._semaphores
        assert instance["id"] not in _tag_cache

    def test_deleting_instance_removes_services(self, client):
        instance = create_instance(client)
        service = client.post(f"{BASE}/instances/{instance['id']}/services", json={"name": "app"}).json()

        assert client.delete(f"{BASE}/instances/{instance['id']}").status_code == 204

        assert client.get(f"{BASE}/instances/{instance['id']}").status_code == 404
        assert client.get(f"{BASE}/services/{service['id']}").status_code == 404


def test_service_health(client):
    assert client.get("/health").json()["status"] == "healthy"
