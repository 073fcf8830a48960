"""
Catalog endpoint.

URL Pattern: /v2/catalog
"""
from fastapi import APIRouter, Depends

from atlas_broker.api.deps import get_catalog
from atlas_broker.services.catalog import Catalog

router = APIRouter()


@router.get("")
async def get_catalog_services(service_catalog: Catalog = Depends(get_catalog)):
    """
    List the services and plans offered by this broker.

    One service per cloud provider, one plan per Atlas instance size.
    """
    return {"services": service_catalog.services()}
