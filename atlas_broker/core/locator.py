"""
Resolution of service instance IDs to Atlas clusters.

Atlas has no notion of a service instance. A cluster belongs to an instance
when its name is the normalized instance ID or when it carries the instance ID
in the INSTANCE_ID_LABEL label. The label is the only link left when the
platform chose a display name for the cluster.
"""
from typing import TYPE_CHECKING

from atlas_broker.config.logging import get_logger
from atlas_broker.exceptions import InstanceNotFoundError
from atlas_broker.models.cluster import Cluster
from atlas_broker.utils.naming import normalize_cluster_name

if TYPE_CHECKING:
    from atlas_broker.services.atlas_client import AtlasClient

logger = get_logger(__name__)

# Label key under which the instance ID is saved on the cluster.
INSTANCE_ID_LABEL = "aosb-instance-id"


def matches_instance_id(cluster: Cluster, instance_id: str) -> bool:
    """Check whether ``cluster`` belongs to ``instance_id`` by name or label."""
    matches_name = cluster.name == normalize_cluster_name(instance_id)
    matches_label = cluster.get_label(INSTANCE_ID_LABEL) == instance_id
    return matches_name or matches_label


async def find_cluster_by_instance_id(client: "AtlasClient", instance_id: str) -> Cluster:
    """
    Find the cluster matching the instance ID either by name or label.

    Lists all clusters of the project in one call and returns the first match
    in the order Atlas returned them.

    Raises:
        InstanceNotFoundError: If no cluster matches
        AtlasError: If listing the clusters fails
    """
    clusters = await client.list_clusters()

    for cluster in clusters:
        if matches_instance_id(cluster, instance_id):
            logger.debug(
                "cluster_found_for_instance",
                instance_id=instance_id,
                cluster_name=cluster.name,
                state=cluster.state,
            )
            return cluster

    logger.info("cluster_not_found_for_instance", instance_id=instance_id, clusters_scanned=len(clusters))
    raise InstanceNotFoundError(instance_id)
