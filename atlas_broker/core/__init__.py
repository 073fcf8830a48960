"""
Core of the Atlas service broker: the operation-lifecycle reconciler.

- Parameter resolution from plan and user parameters
- Instance lookup by name or identity label
- Classification of remote cluster state into poll states

Import directly from submodules:
from atlas_broker.core.resolver import cluster_from_params
from atlas_broker.core.locator import find_cluster_by_instance_id, INSTANCE_ID_LABEL
from atlas_broker.core.state_machine import OperationStateMachine
"""
