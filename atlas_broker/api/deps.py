"""
FastAPI dependencies shared by the routers.
"""
from atlas_broker.services.broker_service import BrokerService, broker_service
from atlas_broker.services.catalog import Catalog, catalog


def get_broker_service() -> BrokerService:
    """Broker service used by the instance endpoints."""
    return broker_service


def get_catalog() -> Catalog:
    """Catalog rendered by the catalog endpoint."""
    return catalog
