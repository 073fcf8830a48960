"""
Tests for the Atlas HTTP client, using a mocked transport.
"""
import json
from typing import Callable, List

import httpx
import pytest

from atlas_broker.exceptions import AtlasError, RemoteAPIError
from atlas_broker.models.broker import LastOperationState, PollDetails, ProvisionDetails
from atlas_broker.models.cluster import Cluster, ProviderSettings
from atlas_broker.services.atlas_client import INVALID_RESPONSE, AtlasClient
from atlas_broker.services.broker_service import BrokerService
from atlas_broker.services.catalog import Catalog

GROUP_PATH = "/api/atlas/v1.0/groups/group-1"


def make_client(handler: Callable[[httpx.Request], httpx.Response], max_retries: int = 0) -> AtlasClient:
    return AtlasClient(
        base_url="https://cloud.example.com/",
        group_id="group-1",
        public_key="public",
        private_key="private",
        max_retries=max_retries,
        transport=httpx.MockTransport(handler),
    )


class Recorder:
    """Transport handler answering from a list of canned responses."""

    def __init__(self, *responses: httpx.Response):
        self.responses: List[httpx.Response] = list(responses)
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0)


@pytest.mark.asyncio
async def test_create_cluster_sends_payload():
    recorder = Recorder(httpx.Response(201, json={"name": "orders-db", "stateName": "CREATING"}))
    client = make_client(recorder)
    cluster = Cluster(
        name="orders-db",
        state="IDLE",
        provider_settings=ProviderSettings(provider_name="AWS", instance_size_name="M10"),
    )

    created = await client.create_cluster(cluster)

    request = recorder.requests[0]
    assert request.method == "POST"
    assert request.url.path == f"{GROUP_PATH}/clusters"
    assert json.loads(request.content) == {
        "name": "orders-db",
        "providerSettings": {"providerName": "AWS", "instanceSizeName": "M10"},
    }
    assert created.state == "CREATING"
    await client.close()


@pytest.mark.asyncio
async def test_update_cluster_patches_by_name():
    recorder = Recorder(httpx.Response(200, json={"name": "orders-db", "stateName": "UPDATING"}))
    client = make_client(recorder)

    updated = await client.update_cluster(Cluster(name="orders-db", disk_size_gb=80))

    request = recorder.requests[0]
    assert request.method == "PATCH"
    assert request.url.path == f"{GROUP_PATH}/clusters/orders-db"
    assert json.loads(request.content) == {"name": "orders-db", "diskSizeGB": 80.0}
    assert updated.state == "UPDATING"
    await client.close()


@pytest.mark.asyncio
async def test_delete_cluster_accepts_empty_body():
    recorder = Recorder(httpx.Response(202))
    client = make_client(recorder)

    assert await client.delete_cluster("orders-db") is None
    assert recorder.requests[0].method == "DELETE"
    assert recorder.requests[0].url.path == f"{GROUP_PATH}/clusters/orders-db"
    await client.close()


@pytest.mark.asyncio
async def test_list_clusters():
    recorder = Recorder(
        httpx.Response(
            200,
            json={
                "results": [
                    {"name": "a", "stateName": "IDLE", "labels": None},
                    {"name": "b", "stateName": "CREATING", "unknownAttribute": 1},
                ],
                "totalCount": 2,
            },
        )
    )
    client = make_client(recorder)

    clusters = await client.list_clusters()

    assert [c.name for c in clusters] == ["a", "b"]
    assert clusters[0].labels == []
    assert recorder.requests[0].url.params["itemsPerPage"] == "500"
    await client.close()


@pytest.mark.asyncio
async def test_error_document_is_parsed():
    recorder = Recorder(
        httpx.Response(
            404,
            json={
                "detail": "No cluster named orders-db exists in group group-1.",
                "error": 404,
                "errorCode": "CLUSTER_NOT_FOUND",
                "reason": "Not Found",
            },
        )
    )
    client = make_client(recorder)

    with pytest.raises(AtlasError) as exc_info:
        await client.get_cluster("orders-db")

    assert exc_info.value.status_code == 404
    assert exc_info.value.error_code == "CLUSTER_NOT_FOUND"
    assert "No cluster named" in exc_info.value.detail
    await client.close()


@pytest.mark.asyncio
async def test_non_json_error_body():
    recorder = Recorder(httpx.Response(502, text="Bad Gateway"))
    client = make_client(recorder)

    with pytest.raises(AtlasError) as exc_info:
        await client.delete_cluster("orders-db")

    assert exc_info.value.status_code == 502
    assert exc_info.value.error_code is None
    assert exc_info.value.detail == "Bad Gateway"
    await client.close()


@pytest.mark.asyncio
async def test_reads_are_retried():
    recorder = Recorder(
        httpx.Response(503, json={"errorCode": "SERVICE_UNAVAILABLE"}),
        httpx.Response(200, json={"results": []}),
    )
    client = make_client(recorder, max_retries=1)

    assert await client.list_clusters() == []
    assert len(recorder.requests) == 2
    await client.close()


@pytest.mark.asyncio
async def test_mutations_are_not_retried():
    recorder = Recorder(
        httpx.Response(503, json={"errorCode": "SERVICE_UNAVAILABLE"}),
        httpx.Response(201, json={"name": "orders-db"}),
    )
    client = make_client(recorder, max_retries=3)

    with pytest.raises(AtlasError):
        await client.create_cluster(Cluster(name="orders-db"))

    assert len(recorder.requests) == 1
    await client.close()


def test_dashboard_url():
    client = make_client(Recorder())
    assert client.get_dashboard_url("orders-db") == (
        "https://cloud.example.com/v2/group-1#clusters/detail/orders-db"
    )


@pytest.mark.asyncio
async def test_ping():
    recorder = Recorder(
        httpx.Response(200, json={"id": "group-1"}),
        httpx.Response(401, json={"errorCode": "UNAUTHORIZED"}),
    )
    client = make_client(recorder)

    assert await client.ping() is True
    assert await client.ping() is False
    assert recorder.requests[0].url.path == f"{GROUP_PATH}/"
    await client.close()


@pytest.mark.asyncio
async def test_retry_after_header_is_parsed():
    recorder = Recorder(
        httpx.Response(429, headers={"Retry-After": "7"}, json={"errorCode": "RATE_LIMITED"}),
    )
    client = make_client(recorder)

    with pytest.raises(AtlasError) as exc_info:
        await client.list_clusters()

    assert exc_info.value.status_code == 429
    assert exc_info.value.retry_after == 7.0
    await client.close()


@pytest.mark.asyncio
async def test_global_cluster_does_not_break_lookup():
    recorder = Recorder(
        httpx.Response(
            200,
            json={
                "results": [
                    {"name": "global-one", "clusterType": "GEOSHARDED", "stateName": "IDLE"},
                    {"name": "orders-db", "clusterType": "REPLICASET", "stateName": "IDLE"},
                ]
            },
        )
    )
    client = make_client(recorder)
    broker = BrokerService(client, Catalog())

    result = await broker.last_operation("orders-db", PollDetails(operation="provision"))

    assert result.state == LastOperationState.SUCCEEDED
    await client.close()


@pytest.mark.asyncio
async def test_unparsable_cluster_is_atlas_error_and_not_retried():
    recorder = Recorder(
        httpx.Response(200, json={"results": [{"name": 42, "labels": "none"}]}),
        httpx.Response(200, json={"results": []}),
    )
    client = make_client(recorder, max_retries=2)

    with pytest.raises(AtlasError) as exc_info:
        await client.list_clusters()

    assert exc_info.value.status_code is None
    assert exc_info.value.error_code == INVALID_RESPONSE
    assert len(recorder.requests) == 1
    await client.close()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, text="<html>maintenance</html>"),
        httpx.Response(200, json=["orders-db"]),
        httpx.Response(200, json={"totalCount": 0}),
    ],
)
async def test_malformed_cluster_list(response):
    client = make_client(Recorder(response))

    with pytest.raises(AtlasError) as exc_info:
        await client.list_clusters()

    assert exc_info.value.error_code == INVALID_RESPONSE
    await client.close()


@pytest.mark.asyncio
async def test_unparsable_list_reaches_platform_as_remote_error():
    client = make_client(Recorder(httpx.Response(200, json={"results": [{"labels": [{"key": 1}]}]})))
    broker = BrokerService(client, Catalog())

    with pytest.raises(RemoteAPIError) as exc_info:
        await broker.last_operation("orders-db", PollDetails(operation="deprovision"))

    assert exc_info.value.status_code == 500
    await client.close()


@pytest.mark.asyncio
async def test_list_network_failure_after_retries():
    attempts = []

    def refuse(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(refuse, max_retries=1)
    broker = BrokerService(client, Catalog())

    with pytest.raises(RemoteAPIError) as exc_info:
        await broker.last_operation("orders-db", PollDetails(operation="deprovision"))

    assert exc_info.value.status_code == 500
    assert len(attempts) == 2
    await client.close()


@pytest.mark.asyncio
async def test_create_network_failure_is_not_retried():
    attempts = []

    def refuse(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(refuse, max_retries=3)
    broker = BrokerService(client, Catalog())

    with pytest.raises(RemoteAPIError):
        await broker.provision(
            "orders-db",
            ProvisionDetails(service_id="aosb-cluster-service-aws", plan_id="aosb-cluster-plan-aws-m10"),
            True,
        )

    assert len(attempts) == 1
    await client.close()
