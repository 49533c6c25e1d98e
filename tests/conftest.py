import os
import tempfile

# Settings are read at import time; keep the app's own database out of the repo
os.environ.setdefault("DATABASE_URL", f"sqlite:///{os.path.join(tempfile.gettempdir(), 'horizon_infra_test.db')}")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from horizon_infra.database import Base, get_db
from horizon_infra.models import (
    ConnectionType,
    InfrastructureInstance,
    InstanceService,
    InstanceType,
    ServiceSource,
    ServiceStatus,
    ServiceType,
)
from horizon_infra.services import StaticPluginCatalog
from horizon_infra.services.connectors import create_connector
from horizon_infra.services.tag_service import clear_tag_cache

PLUGINS = {
    "plugin-minio": {"id": "plugin-minio", "slug": "minio-management", "capabilities": {"serviceType": "minio"}},
    "plugin-minio-alt": {"id": "plugin-minio-alt", "slug": "minio-console", "capabilities": {"serviceType": "minio"}},
    "plugin-kong": {"id": "plugin-kong", "slug": "kong-gateway", "capabilities": {"serviceType": "docker_container"}},
    "plugin-grafana": {"id": "plugin-grafana", "slug": "grafana", "capabilities": {}},
    "plugin-systemd-only": {"id": "plugin-systemd-only", "slug": "unit-manager", "capabilities": {"serviceType": "systemd_service"}},
}


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(autouse=True)
def fresh_tag_cache():
    clear_tag_cache()
    yield
    clear_tag_cache()


@pytest.fixture
def catalog():
    return StaticPluginCatalog(PLUGINS)


@pytest.fixture
def make_instance(db_session):
    def _make_instance(**overrides) -> InfrastructureInstance:
        fields = {
            "name": "db1",
            "type": InstanceType.VM,
            "host": "10.0.0.5",
            "port": 22,
            "connection_type": ConnectionType.SSH,
            "connection_config": {"username": "root", "password": "s3cret"},
            "tags": [],
        }
        fields.update(overrides)
        instance = InfrastructureInstance(**fields)
        db_session.add(instance)
        db_session.commit()
        db_session.refresh(instance)
        return instance
    return _make_instance


@pytest.fixture
def make_service(db_session):
    def _make_service(instance, **overrides) -> InstanceService:
        fields = {
            "instance_id": instance.id,
            "name": "minio",
            "type": ServiceType.DOCKER_CONTAINER,
            "status": ServiceStatus.RUNNING,
            "source": ServiceSource.DISCOVERED,
            "service_config": {},
            "endpoints": [],
        }
        fields.update(overrides)
        service = InstanceService(**fields)
        db_session.add(service)
        db_session.commit()
        db_session.refresh(service)
        return service
    return _make_service


class ConnectorFactorySwitch:
    """Lets a test swap the connector factory used by the API"""

    def __init__(self):
        self.factory = create_connector

    def __call__(self, instance):
        return self.factory(instance)


@pytest.fixture
def connector_factory():
    return ConnectorFactorySwitch()


@pytest.fixture
def client(db_session, catalog, connector_factory):
    from horizon_infra.api.deps import get_connector_factory, get_plugin_catalog
    from horizon_infra.main import app

    app.dependency_overrides[get_db] = lambda: db_session
    app.dependency_overrides[get_plugin_catalog] = lambda: catalog
    app.dependency_overrides[get_connector_factory] = lambda: connector_factory
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
