"""
Service catalog.

Every cloud provider supported by Atlas is exposed as one OSB service and each
of its instance sizes as one plan of that service. Plan selection is how the
platform chooses the provider and instance size of a cluster.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from atlas_broker.config.logging import get_logger
from atlas_broker.exceptions import PlanNotFoundError

logger = get_logger(__name__)

SERVICE_ID_PREFIX = "aosb-cluster-service"
PLAN_ID_PREFIX = "aosb-cluster-plan"


@dataclass(frozen=True)
class InstanceSize:
    """An Atlas instance size tier (M10, M20, ...)."""

    name: str
    description: str = ""


@dataclass(frozen=True)
class Provider:
    """A cloud provider and the instance sizes Atlas offers on it."""

    name: str
    display_name: str
    instance_sizes: Tuple[InstanceSize, ...] = field(default_factory=tuple)

    @property
    def service_id(self) -> str:
        return f"{SERVICE_ID_PREFIX}-{self.name.lower()}"

    def plan_id(self, size: InstanceSize) -> str:
        return f"{PLAN_ID_PREFIX}-{self.name.lower()}-{size.name.lower()}"


def _sizes(*names: str) -> Tuple[InstanceSize, ...]:
    return tuple(InstanceSize(name=n, description=f"Instance size {n}") for n in names)


DEFAULT_PROVIDERS: Tuple[Provider, ...] = (
    Provider(
        name="AWS",
        display_name="Amazon Web Services",
        instance_sizes=_sizes("M10", "M20", "M30", "M40", "M50", "M60", "M80", "M100", "M140", "M200"),
    ),
    Provider(
        name="GCP",
        display_name="Google Cloud Platform",
        instance_sizes=_sizes("M10", "M20", "M30", "M40", "M50", "M60", "M80", "M140", "M200"),
    ),
    Provider(
        name="AZURE",
        display_name="Microsoft Azure",
        instance_sizes=_sizes("M10", "M20", "M30", "M40", "M50", "M60", "M80", "M200"),
    ),
)


class Catalog:
    """Lookup of providers and instance sizes by OSB service and plan IDs."""

    def __init__(self, providers: Tuple[Provider, ...] = DEFAULT_PROVIDERS):
        self.providers = providers

    def find_provider_by_service_id(self, service_id: str) -> Provider:
        """
        Resolve a catalog service ID to its provider.

        Raises:
            PlanNotFoundError: If no service has this ID
        """
        for provider in self.providers:
            if provider.service_id == service_id:
                return provider

        logger.warning("service_not_found", service_id=service_id)
        raise PlanNotFoundError("Service", service_id)

    def find_instance_size_by_plan_id(self, provider: Provider, plan_id: str) -> InstanceSize:
        """
        Resolve a plan ID to an instance size of ``provider``.

        Raises:
            PlanNotFoundError: If the provider has no plan with this ID
        """
        for size in provider.instance_sizes:
            if provider.plan_id(size) == plan_id:
                return size

        logger.warning("plan_not_found", service_id=provider.service_id, plan_id=plan_id)
        raise PlanNotFoundError("Plan", plan_id)

    def resolve_plan(self, service_id: str, plan_id: str) -> Tuple[Provider, InstanceSize]:
        """Resolve a (service, plan) pair to a (provider, instance size) pair."""
        provider = self.find_provider_by_service_id(service_id)
        return provider, self.find_instance_size_by_plan_id(provider, plan_id)

    def services(self) -> List[Dict[str, Any]]:
        """Render the catalog in the OSB ``GET /v2/catalog`` format."""
        return [
            {
                "id": provider.service_id,
                "name": f"mongodb-atlas-{provider.name.lower()}",
                "description": f"MongoDB Atlas cluster hosted on {provider.display_name}",
                "bindable": False,
                "instances_retrievable": False,
                "bindings_retrievable": False,
                "plan_updateable": True,
                "tags": ["mongodb", "atlas", provider.name.lower()],
                "metadata": {"displayName": f"MongoDB Atlas - {provider.display_name}"},
                "plans": [
                    {
                        "id": provider.plan_id(size),
                        "name": size.name,
                        "description": size.description,
                        "free": False,
                    }
                    for size in provider.instance_sizes
                ],
            }
            for provider in self.providers
        ]


# Global instance
catalog = Catalog()
