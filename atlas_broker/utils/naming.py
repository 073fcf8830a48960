"""
Utility functions for Atlas cluster naming.
"""
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError

from atlas_broker.exceptions import ParamParseError
from atlas_broker.models.broker import ProvisionContext

# Atlas has different name length requirements depending on which environment
# it runs in. 23 is accepted everywhere and truncates UUIDs nicely.
MAX_CLUSTER_NAME_LENGTH = 23

RawJSON = Union[bytes, str, Mapping[str, Any], None]


def normalize_cluster_name(name: str) -> str:
    """
    Make sure a name will be accepted by the Atlas API.

    Names longer than MAX_CLUSTER_NAME_LENGTH are truncated, never rejected.

    Examples:
        normalize_cluster_name("my-cluster") -> "my-cluster"
        normalize_cluster_name("1c9d5b9e-3cbf-4f3a-9b4e-2c5a8d0f1e7a") -> "1c9d5b9e-3cbf-4f3a-9b4e"
    """
    if len(name) > MAX_CLUSTER_NAME_LENGTH:
        return name[:MAX_CLUSTER_NAME_LENGTH]
    return name


def parse_context(raw_context: RawJSON) -> ProvisionContext:
    """
    Parse the platform context of a provision request.

    Raises:
        ParamParseError: If the context is not a JSON object
    """
    try:
        if raw_context is None or raw_context in (b"", ""):
            return ProvisionContext()
        if isinstance(raw_context, (bytes, str)):
            return ProvisionContext.model_validate_json(raw_context)
        return ProvisionContext.model_validate(raw_context)
    except ValidationError as e:
        raise ParamParseError("malformed context", details={"errors": e.errors(include_url=False, include_context=False)})


def cluster_name_from_context(instance_id: str, raw_context: RawJSON) -> str:
    """
    Choose the cluster name for a new instance.

    Uses the display name from ``instance_name`` when the platform sent one,
    otherwise the instance ID. Both are normalized.

    Args:
        instance_id: Service instance ID assigned by the platform
        raw_context: Raw ``context`` object of the provision request

    Returns:
        Cluster name to create
    """
    context = parse_context(raw_context)
    display_name: Optional[str] = context.instance_name

    if display_name:
        return normalize_cluster_name(display_name)

    return normalize_cluster_name(instance_id)
