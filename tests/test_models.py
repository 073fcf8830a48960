"""
Tests for the Atlas cluster model.
"""
import pytest
from pydantic import ValidationError

from atlas_broker.models.cluster import Cluster, ClusterType

ATLAS_CLUSTER = {
    "id": "5d1113b25a115342acc2d1aa",
    "groupId": "5b1113b25a115342acc2d1aa",
    "name": "orders-db",
    "clusterType": "REPLICASET",
    "diskSizeGB": 10.0,
    "mongoDBMajorVersion": "4.0",
    "mongoURI": "mongodb://orders-db-shard-00-00.mongodb.net:27017",
    "providerSettings": {
        "providerName": "AWS",
        "instanceSizeName": "M10",
        "regionName": "US_EAST_1",
        "autoScaling": {"compute": {"enabled": False}},
    },
    "labels": [{"key": "aosb-instance-id", "value": "instance-1"}],
    "stateName": "IDLE",
    "srvAddress": "mongodb+srv://orders-db.mongodb.net",
}


def test_parses_atlas_response_with_unknown_fields():
    cluster = Cluster.model_validate(ATLAS_CLUSTER)

    assert cluster.name == "orders-db"
    assert cluster.cluster_type == ClusterType.REPLICASET
    assert cluster.state == "IDLE"
    assert cluster.srv_address == "mongodb+srv://orders-db.mongodb.net"
    assert cluster.provider_settings.provider_name == "AWS"
    assert cluster.provider_settings.instance_size_name == "M10"
    assert cluster.get_label("aosb-instance-id") == "instance-1"


def test_null_labels_parse_as_empty():
    cluster = Cluster.model_validate({"name": "orders-db", "labels": None})
    assert cluster.labels == []


def test_get_label_missing_key():
    assert Cluster(name="orders-db").get_label("aosb-instance-id") is None


def test_set_label_keeps_one_entry_per_key():
    cluster = Cluster(name="orders-db")
    cluster.set_label("team", "payments")
    cluster.set_label("aosb-instance-id", "first")
    cluster.set_label("aosb-instance-id", "second")

    assert cluster.get_label("aosb-instance-id") == "second"
    assert cluster.get_label("team") == "payments"
    assert [label.key for label in cluster.labels].count("aosb-instance-id") == 1


def test_payload_uses_atlas_names_and_skips_read_only_fields():
    cluster = Cluster.model_validate(ATLAS_CLUSTER)
    payload = cluster.to_payload()

    assert payload["name"] == "orders-db"
    assert payload["clusterType"] == "REPLICASET"
    assert payload["providerSettings"] == {
        "providerName": "AWS",
        "instanceSizeName": "M10",
        "regionName": "US_EAST_1",
    }
    assert payload["labels"] == [{"key": "aosb-instance-id", "value": "instance-1"}]
    assert "stateName" not in payload
    assert "srvAddress" not in payload
    assert "backupEnabled" not in payload


def test_payload_omits_empty_labels():
    assert Cluster(name="orders-db").to_payload() == {"name": "orders-db"}


def test_strict_validation_rejects_unknown_top_level_field():
    with pytest.raises(ValidationError):
        Cluster.model_validate({"nmae": "orders-db"}, context={"forbid_extra": True})


def test_strict_validation_rejects_unknown_nested_field():
    data = {"providerSettings": {"providerName": "AWS", "instanceSize": "M10"}}

    with pytest.raises(ValidationError):
        Cluster.model_validate(data, context={"forbid_extra": True})

    # Permissive without the context.
    assert Cluster.model_validate(data).provider_settings.provider_name == "AWS"


def test_strict_validation_accepts_python_names():
    cluster = Cluster.model_validate(
        {"disk_size_gb": 40, "provider_settings": {"region_name": "EU_WEST_1"}},
        context={"forbid_extra": True},
    )
    assert cluster.disk_size_gb == 40
    assert cluster.provider_settings.region_name == "EU_WEST_1"


def test_remote_documents_are_not_bound_by_user_rules():
    cluster = Cluster.model_validate(
        {
            "name": "global-one",
            "clusterType": "GEOSHARDED",
            "numShards": 0,
            "replicationSpecs": [{"numShards": 0, "regionsConfig": {"US_EAST_1": {"priority": -1}}}],
            "futureAttribute": True,
        }
    )

    assert cluster.cluster_type == "GEOSHARDED"
    assert cluster.num_shards == 0


def test_remote_documents_accept_unknown_cluster_types():
    assert Cluster.model_validate({"clusterType": "SERVERLESS"}).cluster_type == "SERVERLESS"


@pytest.mark.parametrize(
    "data",
    [
        {"clusterType": "SERVERLESS"},
        {"diskSizeGB": 0},
        {"numShards": 0},
        {"replicationFactor": -3},
        {"providerSettings": {"diskIOPS": -1}},
        {"replicationSpecs": [{"regionsConfig": {"US_EAST_1": {"electableNodes": -1}}}]},
    ],
)
def test_strict_validation_enforces_user_rules(data):
    with pytest.raises(ValidationError):
        Cluster.model_validate(data, context={"forbid_extra": True})


def test_strict_validation_accepts_known_cluster_types():
    for cluster_type in ClusterType:
        cluster = Cluster.model_validate({"clusterType": cluster_type.value}, context={"forbid_extra": True})
        assert cluster.cluster_type == cluster_type.value
