"""
Broker service.
Handles the service instance lifecycle (provision, update, deprovision, poll)
on top of Atlas clusters.

Every operation is asynchronous and stateless: a request either fails before
anything is sent to Atlas or returns as soon as Atlas accepted the change.
Completion is observed by the platform polling last_operation.
"""
from typing import Optional, Union

import httpx
from fastapi import status

from atlas_broker.config.logging import get_logger
from atlas_broker.core.locator import INSTANCE_ID_LABEL, find_cluster_by_instance_id
from atlas_broker.core.resolver import cluster_from_params
from atlas_broker.core.state_machine import OperationStateMachine
from atlas_broker.exceptions import (
    AsyncRequiredError,
    AtlasError,
    BrokerException,
    InstanceAlreadyExistsError,
    InstanceNotFoundError,
    InstanceNotRetrievableError,
    RemoteAPIError,
)
from atlas_broker.models.broker import (
    DeprovisionDetails,
    DeprovisionServiceSpec,
    LastOperation,
    OperationKind,
    PollDetails,
    ProvisionDetails,
    ProvisionedServiceSpec,
    UpdateDetails,
    UpdateServiceSpec,
)
from atlas_broker.models.cluster import Cluster
from atlas_broker.services.atlas_client import AtlasClient, atlas_client
from atlas_broker.services.catalog import Catalog, catalog
from atlas_broker.utils.naming import cluster_name_from_context

logger = get_logger(__name__)

# Failures of a call to Atlas: error responses and unparsable bodies
# (AtlasError) or network errors and timeouts (httpx.HTTPError).
REMOTE_ERRORS = (AtlasError, httpx.HTTPError)

# Atlas statuses for a rejected broker API key, reported as internal errors.
AUTH_STATUS_CODES = {status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN}


def translate_atlas_error(
    error: Union[AtlasError, httpx.HTTPError],
    instance_id: Optional[str] = None,
) -> BrokerException:
    """
    Translate an Atlas API failure into a platform facing error.

    Keeps the Atlas status for client errors so the platform sees why the
    request was rejected. Authentication failures, network failures and
    unparsable responses are internal errors of the broker.
    """
    if isinstance(error, httpx.HTTPError):
        return RemoteAPIError(
            str(error) or type(error).__name__,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"instance_id": instance_id, "error_type": type(error).__name__},
        )

    if error.error_code == "CLUSTER_NOT_FOUND":
        return InstanceNotFoundError(instance_id or "")

    if error.error_code == "DUPLICATE_CLUSTER_NAME" or error.status_code == status.HTTP_409_CONFLICT:
        return InstanceAlreadyExistsError(
            error.detail or "A cluster with this name already exists",
            details={"instance_id": instance_id, "atlas_error_code": error.error_code},
        )

    details = {"atlas_status": error.status_code, "atlas_error_code": error.error_code}
    client_error = error.status_code is not None and 400 <= error.status_code < 500
    if client_error and error.status_code not in AUTH_STATUS_CODES:
        return RemoteAPIError(error.detail, status_code=error.status_code, details=details)

    return RemoteAPIError(
        error.detail or "request failed",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        details=details,
    )


class BrokerService:
    """Service for service instance operations."""

    def __init__(self, client: AtlasClient, service_catalog: Catalog):
        self.client = client
        self.catalog = service_catalog

    @staticmethod
    def _require_async(operation: OperationKind, async_allowed: bool) -> None:
        if not async_allowed:
            raise AsyncRequiredError(operation.value)

    async def _find_cluster(self, instance_id: str) -> Cluster:
        """Locate the cluster of an instance, translating Atlas failures."""
        try:
            return await find_cluster_by_instance_id(self.client, instance_id)
        except REMOTE_ERRORS as e:
            logger.error("cluster_lookup_failed", instance_id=instance_id, error=str(e))
            raise translate_atlas_error(e, instance_id)

    async def provision(
        self,
        instance_id: str,
        details: ProvisionDetails,
        async_allowed: bool,
    ) -> ProvisionedServiceSpec:
        """
        Create a new Atlas cluster for a service instance.

        The cluster is named after the display name from the context or the
        instance ID, and labeled with the instance ID.

        Raises:
            AsyncRequiredError: If the platform does not accept async operations
            ParamParseError: If parameters or context are malformed
            PlanNotFoundError: If the service or plan is unknown
            InstanceAlreadyExistsError: If the cluster name is taken
            RemoteAPIError: If Atlas rejects the cluster
        """
        logger.info(
            "provisioning_instance",
            instance_id=instance_id,
            service_id=details.service_id,
            plan_id=details.plan_id,
        )

        self._require_async(OperationKind.PROVISION, async_allowed)

        cluster = cluster_from_params(
            self.catalog, details.service_id, details.plan_id, details.parameters
        )
        cluster.name = cluster_name_from_context(instance_id, details.context)
        cluster.set_label(INSTANCE_ID_LABEL, instance_id)

        try:
            resulting_cluster = await self.client.create_cluster(cluster)
        except REMOTE_ERRORS as e:
            logger.error(
                "atlas_cluster_create_failed",
                instance_id=instance_id,
                cluster_name=cluster.name,
                error=str(e),
            )
            raise translate_atlas_error(e, instance_id)

        # Atlas may adjust the name; the dashboard follows what Atlas created.
        cluster_name = resulting_cluster.name or cluster.name

        logger.info(
            "atlas_cluster_create_started",
            instance_id=instance_id,
            cluster_name=cluster_name,
            state=resulting_cluster.state,
        )

        return ProvisionedServiceSpec(
            is_async=True,
            operation=OperationKind.PROVISION,
            dashboard_url=self.client.get_dashboard_url(cluster_name),
        )

    async def update(
        self,
        instance_id: str,
        details: UpdateDetails,
        async_allowed: bool,
    ) -> UpdateServiceSpec:
        """
        Change the configuration of an existing Atlas cluster.

        The existing cluster is fetched first: the plan is only sent when it
        changed, but Atlas requires both provider name and instance size
        whenever provider settings are part of the update.

        Raises:
            AsyncRequiredError: If the platform does not accept async operations
            InstanceNotFoundError: If no cluster belongs to the instance
            ParamParseError: If parameters are malformed
            PlanNotFoundError: If the service or plan is unknown
            RemoteAPIError: If Atlas rejects the update
        """
        logger.info(
            "updating_instance",
            instance_id=instance_id,
            service_id=details.service_id,
            plan_id=details.plan_id,
        )

        self._require_async(OperationKind.UPDATE, async_allowed)

        existing_cluster = await self._find_cluster(instance_id)

        cluster = cluster_from_params(
            self.catalog, details.service_id, details.plan_id, details.parameters
        )
        cluster.name = existing_cluster.name

        # Labels are replaced as a whole by Atlas; keep the identity label.
        if cluster.labels:
            cluster.set_label(INSTANCE_ID_LABEL, instance_id)

        if cluster.provider_settings is not None:
            existing_provider = existing_cluster.provider_settings
            if existing_provider is not None:
                if not cluster.provider_settings.provider_name:
                    cluster.provider_settings.provider_name = existing_provider.provider_name
                if not cluster.provider_settings.instance_size_name:
                    cluster.provider_settings.instance_size_name = existing_provider.instance_size_name

        try:
            resulting_cluster = await self.client.update_cluster(cluster)
        except REMOTE_ERRORS as e:
            logger.error(
                "atlas_cluster_update_failed",
                instance_id=instance_id,
                cluster_name=cluster.name,
                error=str(e),
            )
            raise translate_atlas_error(e, instance_id)

        cluster_name = resulting_cluster.name or cluster.name

        logger.info(
            "atlas_cluster_update_started",
            instance_id=instance_id,
            cluster_name=cluster_name,
            state=resulting_cluster.state,
        )

        return UpdateServiceSpec(
            is_async=True,
            operation=OperationKind.UPDATE,
            dashboard_url=self.client.get_dashboard_url(cluster_name),
        )

    async def deprovision(
        self,
        instance_id: str,
        details: DeprovisionDetails,
        async_allowed: bool,
    ) -> DeprovisionServiceSpec:
        """
        Terminate the Atlas cluster of a service instance.

        A missing instance is an error here; the platform detects completed
        deletions by polling.

        Raises:
            AsyncRequiredError: If the platform does not accept async operations
            InstanceNotFoundError: If no cluster belongs to the instance
            RemoteAPIError: If Atlas rejects the deletion
        """
        logger.info(
            "deprovisioning_instance",
            instance_id=instance_id,
            service_id=details.service_id,
            plan_id=details.plan_id,
        )

        self._require_async(OperationKind.DEPROVISION, async_allowed)

        cluster = await self._find_cluster(instance_id)

        try:
            await self.client.delete_cluster(cluster.name)
        except REMOTE_ERRORS as e:
            logger.error(
                "atlas_cluster_delete_failed",
                instance_id=instance_id,
                cluster_name=cluster.name,
                error=str(e),
            )
            raise translate_atlas_error(e, instance_id)

        logger.info("atlas_cluster_delete_started", instance_id=instance_id, cluster_name=cluster.name)

        return DeprovisionServiceSpec(is_async=True, operation=OperationKind.DEPROVISION)

    async def get_instance(self, instance_id: str) -> None:
        """
        Fetching instances is not supported (``instances_retrievable`` is
        false in the catalog).

        Raises:
            InstanceNotRetrievableError: Always
        """
        logger.info("fetching_instance", instance_id=instance_id)
        raise InstanceNotRetrievableError(instance_id)

    async def last_operation(self, instance_id: str, details: PollDetails) -> LastOperation:
        """
        Report the state of the outstanding operation of an instance.

        A missing cluster is not an error here: it completes a deprovision
        and fails any other operation. All other lookup failures propagate.

        Raises:
            RemoteAPIError: If the clusters cannot be listed
        """
        logger.info("fetching_last_operation", instance_id=instance_id, operation=details.operation)

        cluster: Optional[Cluster] = None
        instance_missing = False

        try:
            cluster = await self._find_cluster(instance_id)
        except InstanceNotFoundError:
            instance_missing = True

        state = OperationStateMachine.classify(
            details.operation,
            cluster.state if cluster else None,
            instance_missing=instance_missing,
            instance_id=instance_id,
        )

        logger.info(
            "last_operation_state",
            instance_id=instance_id,
            operation=details.operation,
            cluster_name=cluster.name if cluster else None,
            cluster_state=cluster.state if cluster else None,
            state=state.value,
        )

        return LastOperation(state=state)


# Global instance
broker_service = BrokerService(atlas_client, catalog)
