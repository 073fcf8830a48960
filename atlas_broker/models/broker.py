"""
Pydantic models for Open Service Broker requests and responses.
"""
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from atlas_broker.models.cluster import Cluster


class OperationKind(str, Enum):
    """
    Asynchronous operations performed by the broker.

    The value is handed to the platform as the operation token and is sent
    back unchanged on every last_operation poll.
    """

    PROVISION = "provision"
    UPDATE = "update"
    DEPROVISION = "deprovision"


class LastOperationState(str, Enum):
    """Poll states defined by the OSB last_operation endpoint."""

    IN_PROGRESS = "in progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class ProvisionParameters(BaseModel):
    """User supplied ``parameters`` object for provision and update."""

    model_config = ConfigDict(extra="forbid")

    cluster: Optional[Cluster] = Field(default=None, description="Atlas cluster overrides")


class ProvisionContext(BaseModel):
    """
    Platform supplied ``context`` object.

    ``instance_name`` is not part of the OSB specification but is sent by
    Kubernetes and Cloud Foundry; other platform keys are ignored.
    """

    model_config = ConfigDict(extra="ignore")

    instance_name: Optional[str] = Field(default=None, description="Display name of the instance")


class ProvisionDetails(BaseModel):
    """Request body for provisioning a service instance."""

    service_id: str = Field(..., description="Catalog service ID")
    plan_id: str = Field(..., description="Catalog plan ID")
    organization_guid: Optional[str] = None
    space_guid: Optional[str] = None
    parameters: Optional[Dict[str, Any]] = Field(default=None, description="Raw user parameters")
    context: Optional[Dict[str, Any]] = Field(default=None, description="Raw platform context")


class PreviousValues(BaseModel):
    """Values of the instance before the update, as known by the platform."""

    service_id: Optional[str] = None
    plan_id: Optional[str] = None
    organization_id: Optional[str] = None
    space_id: Optional[str] = None


class UpdateDetails(BaseModel):
    """Request body for updating a service instance."""

    service_id: str = Field(..., description="Catalog service ID")
    plan_id: Optional[str] = Field(default=None, description="New plan ID, absent if unchanged")
    parameters: Optional[Dict[str, Any]] = None
    context: Optional[Dict[str, Any]] = None
    previous_values: Optional[PreviousValues] = None


class DeprovisionDetails(BaseModel):
    """Query values sent with a deprovision request."""

    service_id: Optional[str] = None
    plan_id: Optional[str] = None


class PollDetails(BaseModel):
    """Query values sent with a last_operation poll."""

    operation: Optional[str] = Field(default=None, description="Operation token from the async response")
    service_id: Optional[str] = None
    plan_id: Optional[str] = None


class ProvisionedServiceSpec(BaseModel):
    """Result of an accepted provision request."""

    is_async: bool = True
    operation: OperationKind = OperationKind.PROVISION
    dashboard_url: Optional[str] = None


class UpdateServiceSpec(BaseModel):
    """Result of an accepted update request."""

    is_async: bool = True
    operation: OperationKind = OperationKind.UPDATE
    dashboard_url: Optional[str] = None


class DeprovisionServiceSpec(BaseModel):
    """Result of an accepted deprovision request."""

    is_async: bool = True
    operation: OperationKind = OperationKind.DEPROVISION


class LastOperation(BaseModel):
    """Result of a last_operation poll."""

    state: LastOperationState
    description: Optional[str] = None
