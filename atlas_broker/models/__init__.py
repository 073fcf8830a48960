from atlas_broker.models.cluster import Cluster, ClusterState, Label, ProviderSettings
from atlas_broker.models.broker import LastOperationState, OperationKind

__all__ = [
    "Cluster",
    "ClusterState",
    "Label",
    "ProviderSettings",
    "LastOperationState",
    "OperationKind",
]
