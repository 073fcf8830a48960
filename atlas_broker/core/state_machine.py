"""
Operation State Machine for the Atlas service broker

Maps what Atlas reports about a cluster onto the three poll states of the
OSB last_operation endpoint. The platform remembers which operation is
outstanding and sends its token on every poll; nothing is stored here and
every poll is classified from scratch.

Classification:
- provision:   IDLE -> succeeded, CREATING -> in progress
- update:      IDLE -> succeeded, UPDATING -> in progress
- deprovision: cluster missing or DELETED -> succeeded, DELETING -> in progress
- anything else (other states, unknown tokens) -> failed

Usage:
    >>> from atlas_broker.core.state_machine import OperationStateMachine
    >>>
    >>> OperationStateMachine.classify("provision", "CREATING")
    <LastOperationState.IN_PROGRESS: 'in progress'>
    >>> OperationStateMachine.classify("deprovision", None, instance_missing=True)
    <LastOperationState.SUCCEEDED: 'succeeded'>
"""

from typing import Dict, Optional, Set, Union

from atlas_broker.config.logging import get_logger
from atlas_broker.models.broker import LastOperationState, OperationKind
from atlas_broker.models.cluster import ClusterState

logger = get_logger(__name__)


class OperationStateMachine:
    """
    Classification of remote cluster state per outstanding operation.

    A total function: every combination of operation, state and lookup
    outcome yields one of the three poll states, defaulting to failed.
    """

    # Remote states in which the operation has completed
    SUCCEEDED_STATES: Dict[OperationKind, Set[ClusterState]] = {
        OperationKind.PROVISION: {ClusterState.IDLE},
        # Assumes the cluster enters UPDATING synchronously during the update
        # request, so IDLE on the first poll means the update is applied.
        OperationKind.UPDATE: {ClusterState.IDLE},
        OperationKind.DEPROVISION: {ClusterState.DELETED},
    }

    # Remote states in which the operation is still running
    IN_PROGRESS_STATES: Dict[OperationKind, Set[ClusterState]] = {
        OperationKind.PROVISION: {ClusterState.CREATING},
        OperationKind.UPDATE: {ClusterState.UPDATING},
        OperationKind.DEPROVISION: {ClusterState.DELETING},
    }

    # Operations for which a missing cluster means success. Atlas either
    # answers 404 for a deleted cluster or still lists it as DELETED.
    SUCCEEDS_WHEN_MISSING: Set[OperationKind] = {OperationKind.DEPROVISION}

    @staticmethod
    def parse_operation(token: Union[OperationKind, str, None]) -> Optional[OperationKind]:
        """
        Parse an operation token sent by the platform.

        Returns:
            The operation kind, or None for an unknown token
        """
        if isinstance(token, OperationKind):
            return token
        try:
            return OperationKind(token)
        except ValueError:
            return None

    @staticmethod
    def parse_state(state: Optional[str]) -> Optional[ClusterState]:
        """
        Parse a remote state name, case-insensitively.

        Returns:
            The cluster state, or None for an empty or unknown name
        """
        if not state:
            return None
        try:
            return ClusterState(state.upper())
        except ValueError:
            return None

    @classmethod
    def classify(
        cls,
        operation: Union[OperationKind, str, None],
        cluster_state: Optional[str],
        instance_missing: bool = False,
        instance_id: Optional[str] = None,
    ) -> LastOperationState:
        """
        Classify the outstanding operation.

        Args:
            operation: Operation token sent with the poll
            cluster_state: Remote ``stateName`` of the cluster, if found
            instance_missing: True when no cluster matches the instance
            instance_id: Optional instance ID for logging

        Returns:
            Poll state for the platform

        Example:
            >>> OperationStateMachine.classify(OperationKind.UPDATE, "UPDATING")
            <LastOperationState.IN_PROGRESS: 'in progress'>
            >>> OperationStateMachine.classify(OperationKind.UPDATE, "REPAIRING")
            <LastOperationState.FAILED: 'failed'>
        """
        kind = cls.parse_operation(operation)
        state = None if instance_missing else cls.parse_state(cluster_state)

        result = LastOperationState.FAILED

        if kind is None:
            logger.warning("unknown_operation_token", instance_id=instance_id, operation=operation)
        elif instance_missing:
            if kind in cls.SUCCEEDS_WHEN_MISSING:
                result = LastOperationState.SUCCEEDED
        elif state in cls.SUCCEEDED_STATES[kind]:
            result = LastOperationState.SUCCEEDED
        elif state in cls.IN_PROGRESS_STATES[kind]:
            result = LastOperationState.IN_PROGRESS

        logger.debug(
            "operation_classified",
            instance_id=instance_id,
            operation=kind.value if kind else operation,
            cluster_state=cluster_state,
            instance_missing=instance_missing,
            result=result.value,
        )
        return result
