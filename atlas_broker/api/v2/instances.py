"""
Service instance endpoints (Open Service Broker API v2).

All lifecycle operations are asynchronous: they answer 202 with an
operation token that the platform passes back to last_operation.

URL Pattern: /v2/service_instances/{instance_id}
"""
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status
from fastapi.responses import JSONResponse

from atlas_broker.api.deps import get_broker_service
from atlas_broker.config.logging import bind_instance_context, get_logger
from atlas_broker.exceptions import InstanceNotFoundError
from atlas_broker.models.broker import (
    DeprovisionDetails,
    PollDetails,
    ProvisionDetails,
    UpdateDetails,
)
from atlas_broker.services.broker_service import BrokerService

router = APIRouter()
logger = get_logger(__name__)


@router.put("/{instance_id}", status_code=status.HTTP_202_ACCEPTED)
async def provision_instance(
    details: ProvisionDetails,
    instance_id: str = Path(..., description="Service instance ID"),
    accepts_incomplete: bool = Query(False, description="Platform supports async operations"),
    service: BrokerService = Depends(get_broker_service),
):
    """
    Provision a new service instance by creating an Atlas cluster.

    Optional ``parameters.cluster`` overrides the cluster definition; the
    plan decides provider and instance size.
    """
    bind_instance_context(instance_id, "provision")
    spec = await service.provision(instance_id, details, accepts_incomplete)
    return {"dashboard_url": spec.dashboard_url, "operation": spec.operation.value}


@router.patch("/{instance_id}", status_code=status.HTTP_202_ACCEPTED)
async def update_instance(
    details: UpdateDetails,
    instance_id: str = Path(..., description="Service instance ID"),
    accepts_incomplete: bool = Query(False, description="Platform supports async operations"),
    service: BrokerService = Depends(get_broker_service),
):
    """
    Update the Atlas cluster of a service instance.

    ``plan_id`` is only present when the plan changed.
    """
    bind_instance_context(instance_id, "update")
    spec = await service.update(instance_id, details, accepts_incomplete)
    return {"dashboard_url": spec.dashboard_url, "operation": spec.operation.value}


@router.delete("/{instance_id}", status_code=status.HTTP_202_ACCEPTED)
async def deprovision_instance(
    instance_id: str = Path(..., description="Service instance ID"),
    service_id: Optional[str] = Query(None, description="Catalog service ID"),
    plan_id: Optional[str] = Query(None, description="Catalog plan ID"),
    accepts_incomplete: bool = Query(False, description="Platform supports async operations"),
    service: BrokerService = Depends(get_broker_service),
):
    """
    Deprovision a service instance by terminating its Atlas cluster.

    Answers 410 Gone with an empty body when no cluster belongs to the
    instance.
    """
    bind_instance_context(instance_id, "deprovision")
    details = DeprovisionDetails(service_id=service_id, plan_id=plan_id)
    try:
        spec = await service.deprovision(instance_id, details, accepts_incomplete)
    except InstanceNotFoundError:
        logger.info("deprovision_instance_gone", instance_id=instance_id)
        return JSONResponse(status_code=status.HTTP_410_GONE, content={})
    return {"operation": spec.operation.value}


@router.get("/{instance_id}/last_operation")
async def get_last_operation(
    instance_id: str = Path(..., description="Service instance ID"),
    operation: Optional[str] = Query(None, description="Operation token"),
    service_id: Optional[str] = Query(None, description="Catalog service ID"),
    plan_id: Optional[str] = Query(None, description="Catalog plan ID"),
    service: BrokerService = Depends(get_broker_service),
):
    """
    Poll the outstanding operation of a service instance.

    Returns ``in progress``, ``succeeded`` or ``failed``.
    """
    bind_instance_context(instance_id, operation)
    details = PollDetails(operation=operation, service_id=service_id, plan_id=plan_id)
    last_operation = await service.last_operation(instance_id, details)
    return last_operation.model_dump(mode="json", exclude_none=True)


@router.get("/{instance_id}")
async def get_instance(
    instance_id: str = Path(..., description="Service instance ID"),
    service: BrokerService = Depends(get_broker_service),
):
    """Fetching instances is not supported."""
    bind_instance_context(instance_id)
    await service.get_instance(instance_id)
