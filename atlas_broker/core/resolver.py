"""
Translation of provisioning parameters into an Atlas cluster definition.

Users can pass any cluster configuration the Atlas API accepts under
``cluster`` in the request parameters. The selected plan decides the provider
and instance size and always wins over those two user supplied fields.
"""
from typing import Optional

from pydantic import ValidationError

from atlas_broker.config.logging import get_logger
from atlas_broker.exceptions import ParamParseError
from atlas_broker.models.broker import ProvisionParameters
from atlas_broker.models.cluster import Cluster, ProviderSettings
from atlas_broker.services.catalog import Catalog
from atlas_broker.utils.naming import RawJSON

logger = get_logger(__name__)

STRICT_CONTEXT = {"forbid_extra": True}


def parse_params(raw_params: RawJSON) -> ProvisionParameters:
    """
    Validate raw user parameters against the parameter schema.

    Accepts raw JSON (bytes or str) or an already decoded mapping. Empty
    input yields an empty cluster.

    Raises:
        ParamParseError: On malformed JSON or unknown fields
    """
    try:
        if raw_params is None or raw_params in (b"", ""):
            return ProvisionParameters()
        if isinstance(raw_params, (bytes, str)):
            return ProvisionParameters.model_validate_json(raw_params, context=STRICT_CONTEXT)
        return ProvisionParameters.model_validate(raw_params, context=STRICT_CONTEXT)
    except ValidationError as e:
        raise ParamParseError(
            "malformed parameters",
            details={"errors": e.errors(include_url=False, include_context=False)},
        )


def cluster_from_params(
    catalog: Catalog,
    service_id: str,
    plan_id: Optional[str],
    raw_params: RawJSON,
) -> Cluster:
    """
    Construct a cluster from the service, plan and raw parameters.

    The plan ID is optional during updates but not during creation. When it
    is empty the provider settings are left exactly as parsed.

    Args:
        catalog: Catalog used to resolve the service and plan
        service_id: Catalog service ID
        plan_id: Catalog plan ID, may be empty
        raw_params: Raw ``parameters`` object of the request

    Returns:
        Cluster definition without name or identity label

    Raises:
        ParamParseError: If the parameters are malformed
        PlanNotFoundError: If the service or plan is not in the catalog
    """
    params = parse_params(raw_params)
    cluster = params.cluster or Cluster()

    if plan_id:
        provider, instance_size = catalog.resolve_plan(service_id, plan_id)

        if cluster.provider_settings is None:
            cluster.provider_settings = ProviderSettings()

        # Configure provider based on service and plan.
        cluster.provider_settings.provider_name = provider.name
        cluster.provider_settings.instance_size_name = instance_size.name

        logger.debug(
            "provider_settings_from_plan",
            service_id=service_id,
            plan_id=plan_id,
            provider_name=provider.name,
            instance_size_name=instance_size.name,
        )

    return cluster
