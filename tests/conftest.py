"""
Pytest configuration and fixtures.
"""
from typing import AsyncGenerator, Dict, List, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from atlas_broker.api.deps import get_broker_service
from atlas_broker.config.settings import settings
from atlas_broker.core.locator import INSTANCE_ID_LABEL
from atlas_broker.exceptions import AtlasError
from atlas_broker.main import app
from atlas_broker.models.cluster import Cluster, ProviderSettings
from atlas_broker.services.broker_service import BrokerService
from atlas_broker.services.catalog import Catalog

AWS_SERVICE_ID = "aosb-cluster-service-aws"
AWS_M10_PLAN_ID = "aosb-cluster-plan-aws-m10"
AWS_M30_PLAN_ID = "aosb-cluster-plan-aws-m30"
GCP_SERVICE_ID = "aosb-cluster-service-gcp"


class FakeAtlasClient:
    """In-memory stand-in for AtlasClient that records every call."""

    def __init__(self, clusters: Optional[List[Cluster]] = None):
        self.clusters: List[Cluster] = list(clusters or [])
        self.created: List[Cluster] = []
        self.updated: List[Cluster] = []
        self.deleted: List[str] = []
        self.list_calls = 0
        self.errors: Dict[str, Exception] = {}

    def _raise_if_failing(self, operation: str) -> None:
        if operation in self.errors:
            raise self.errors[operation]

    def _find(self, name: str) -> Cluster:
        for cluster in self.clusters:
            if cluster.name == name:
                return cluster
        raise AtlasError(404, "CLUSTER_NOT_FOUND", f"No cluster named {name} exists")

    def set_state(self, name: str, state: str) -> None:
        self._find(name).state = state

    def remove(self, name: str) -> None:
        self.clusters = [c for c in self.clusters if c.name != name]

    async def list_clusters(self) -> List[Cluster]:
        self.list_calls += 1
        self._raise_if_failing("list")
        return [c.model_copy(deep=True) for c in self.clusters]

    async def create_cluster(self, cluster: Cluster) -> Cluster:
        self._raise_if_failing("create")
        self.created.append(cluster.model_copy(deep=True))
        stored = cluster.model_copy(deep=True)
        stored.state = "CREATING"
        self.clusters.append(stored)
        return stored.model_copy(deep=True)

    async def update_cluster(self, cluster: Cluster) -> Cluster:
        self._raise_if_failing("update")
        self.updated.append(cluster.model_copy(deep=True))
        stored = self._find(cluster.name)
        stored.state = "UPDATING"
        return stored.model_copy(deep=True)

    async def delete_cluster(self, name: str) -> None:
        self._raise_if_failing("delete")
        self.deleted.append(name)
        self._find(name).state = "DELETING"

    def get_dashboard_url(self, cluster_name: str) -> str:
        return f"https://cloud.example.com/v2/group-1#clusters/detail/{cluster_name}"

    async def ping(self) -> bool:
        return True


def make_cluster(
    name: str,
    state: str = "IDLE",
    instance_id: Optional[str] = None,
    provider_name: Optional[str] = "AWS",
    instance_size_name: Optional[str] = "M10",
) -> Cluster:
    """Build a cluster as Atlas would list it."""
    cluster = Cluster(
        name=name,
        state=state,
        provider_settings=ProviderSettings(
            provider_name=provider_name,
            instance_size_name=instance_size_name,
        ),
    )
    if instance_id:
        cluster.set_label(INSTANCE_ID_LABEL, instance_id)
    return cluster


@pytest.fixture(scope="session")
def test_settings():
    """Override settings for testing."""
    settings.environment = "testing"
    settings.debug = True
    return settings


@pytest.fixture
def fake_atlas() -> FakeAtlasClient:
    """Empty fake Atlas project."""
    return FakeAtlasClient()


@pytest.fixture
def broker(fake_atlas: FakeAtlasClient) -> BrokerService:
    """Broker service wired to the fake Atlas project."""
    return BrokerService(fake_atlas, Catalog())


@pytest_asyncio.fixture
async def test_client(broker: BrokerService) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client for the application, using the fake Atlas project."""
    app.dependency_overrides[get_broker_service] = lambda: broker
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def mock_instance_id():
    """Instance ID longer than the maximum cluster name length."""
    return "abc123de-4f56-7890-abcd-ef0123456789"
