"""
Pydantic models for Atlas cluster resources.

Field names are snake_case in Python and use the Atlas camelCase names on the
wire. Responses from Atlas are parsed permissively: unknown keys, unknown
enum values and out of range numbers are accepted as Atlas reports them. User
supplied cluster parameters are validated with the ``forbid_extra`` context,
which rejects unknown keys at every nesting level and enforces LOWER_BOUNDS
and ALLOWED_VALUES.
"""
from enum import Enum
from typing import Any, ClassVar, Dict, FrozenSet, List, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator


class ClusterState(str, Enum):
    """Lifecycle states reported by Atlas in ``stateName``."""

    IDLE = "IDLE"
    CREATING = "CREATING"
    UPDATING = "UPDATING"
    DELETING = "DELETING"
    DELETED = "DELETED"
    REPAIRING = "REPAIRING"


class ClusterType(str, Enum):
    """Cluster topologies available in Atlas."""

    REPLICASET = "REPLICASET"
    SHARDED = "SHARDED"
    GEOSHARDED = "GEOSHARDED"


class AtlasModel(BaseModel):
    """Base model for Atlas documents."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    # User input only: field -> (minimum, minimum itself allowed)
    LOWER_BOUNDS: ClassVar[Dict[str, Tuple[float, bool]]] = {}
    # User input only: field -> accepted values
    ALLOWED_VALUES: ClassVar[Dict[str, FrozenSet[str]]] = {}

    @model_validator(mode="before")
    @classmethod
    def reject_unknown_fields(cls, data: Any, info: ValidationInfo) -> Any:
        if not (info.context and info.context.get("forbid_extra")):
            return data
        if not isinstance(data, dict):
            return data

        known = set()
        for name, field in cls.model_fields.items():
            known.add(name)
            if field.alias:
                known.add(field.alias)

        unknown = sorted(key for key in data if key not in known)
        if unknown:
            raise ValueError(f"unknown field(s) for {cls.__name__}: {', '.join(unknown)}")
        return data

    @model_validator(mode="after")
    def check_user_values(self, info: ValidationInfo) -> "AtlasModel":
        if not (info.context and info.context.get("forbid_extra")):
            return self

        for name, (minimum, inclusive) in self.LOWER_BOUNDS.items():
            value = getattr(self, name)
            if value is None:
                continue
            if value < minimum or (value == minimum and not inclusive):
                relation = "at least" if inclusive else "greater than"
                raise ValueError(f"{name} must be {relation} {minimum}")

        for name, allowed in self.ALLOWED_VALUES.items():
            value = getattr(self, name)
            if value is not None and value not in allowed:
                raise ValueError(f"{name} must be one of {', '.join(sorted(allowed))}")
        return self


class AutoScalingConfig(AtlasModel):
    """Autoscaling settings for a cluster."""

    disk_gb_enabled: Optional[bool] = Field(default=None, alias="diskGBEnabled")


class BIConnectorConfig(AtlasModel):
    """BI connector settings for a cluster."""

    enabled: Optional[bool] = None
    read_preference: Optional[str] = Field(default=None, alias="readPreference")


class ProviderSettings(AtlasModel):
    """Cloud provider settings for a cluster."""

    provider_name: Optional[str] = Field(default=None, alias="providerName")
    instance_size_name: Optional[str] = Field(default=None, alias="instanceSizeName")
    region_name: Optional[str] = Field(default=None, alias="regionName")

    disk_iops: Optional[int] = Field(default=None, alias="diskIOPS")
    disk_type_name: Optional[str] = Field(default=None, alias="diskTypeName")
    encrypt_ebs_volume: Optional[bool] = Field(default=None, alias="encryptEBSVolume")
    volume_type: Optional[str] = Field(default=None, alias="volumeType")

    LOWER_BOUNDS: ClassVar[Dict[str, Tuple[float, bool]]] = {"disk_iops": (0, True)}


class RegionsConfig(AtlasModel):
    """Node counts and priority for a single region of a replication spec."""

    electable_nodes: Optional[int] = Field(default=None, alias="electableNodes")
    read_only_nodes: Optional[int] = Field(default=None, alias="readOnlyNodes")
    analytics_nodes: Optional[int] = Field(default=None, alias="analyticsNodes")
    priority: Optional[int] = None

    LOWER_BOUNDS: ClassVar[Dict[str, Tuple[float, bool]]] = {
        "electable_nodes": (0, True),
        "read_only_nodes": (0, True),
        "analytics_nodes": (0, True),
        "priority": (0, True),
    }


class ReplicationSpec(AtlasModel):
    """Replication settings for one zone."""

    # Required by Atlas for existing zones, optional when adding new zones
    # to a global cluster.
    id: Optional[str] = None
    num_shards: Optional[int] = Field(default=None, alias="numShards")
    regions_config: Optional[Dict[str, RegionsConfig]] = Field(default=None, alias="regionsConfig")
    zone_name: Optional[str] = Field(default=None, alias="zoneName")

    LOWER_BOUNDS: ClassVar[Dict[str, Tuple[float, bool]]] = {"num_shards": (1, True)}


class Label(AtlasModel):
    """A key-value tag stored on the Atlas cluster."""

    key: str
    value: str


class Cluster(AtlasModel):
    """
    A single Atlas cluster.

    Instances are value objects: built per request, sent to Atlas and
    discarded. ``state`` and ``srv_address`` are read-only and never sent.
    """

    name: Optional[str] = None

    auto_scaling: Optional[AutoScalingConfig] = Field(default=None, alias="autoScaling")
    backup_enabled: Optional[bool] = Field(default=None, alias="backupEnabled")
    bi_connector: Optional[BIConnectorConfig] = Field(default=None, alias="biConnector")
    cluster_type: Optional[str] = Field(default=None, alias="clusterType")
    disk_size_gb: Optional[float] = Field(default=None, alias="diskSizeGB")
    encryption_at_rest_provider: Optional[str] = Field(default=None, alias="encryptionAtRestProvider")
    mongodb_major_version: Optional[str] = Field(default=None, alias="mongoDBMajorVersion")
    num_shards: Optional[int] = Field(default=None, alias="numShards")
    provider_backup_enabled: Optional[bool] = Field(default=None, alias="providerBackupEnabled")
    replication_factor: Optional[int] = Field(default=None, alias="replicationFactor")
    replication_specs: Optional[List[ReplicationSpec]] = Field(default=None, alias="replicationSpecs")
    provider_settings: Optional[ProviderSettings] = Field(default=None, alias="providerSettings")
    labels: List[Label] = Field(default_factory=list)

    # Read-only attributes
    state: Optional[str] = Field(default=None, alias="stateName")
    srv_address: Optional[str] = Field(default=None, alias="srvAddress")

    READ_ONLY_FIELDS: ClassVar[Set[str]] = {"state", "srv_address"}
    LOWER_BOUNDS: ClassVar[Dict[str, Tuple[float, bool]]] = {
        "disk_size_gb": (0, False),
        "num_shards": (1, True),
        "replication_factor": (1, True),
    }
    ALLOWED_VALUES: ClassVar[Dict[str, FrozenSet[str]]] = {
        "cluster_type": frozenset(t.value for t in ClusterType),
    }

    @field_validator("labels", mode="before")
    @classmethod
    def labels_default(cls, v: Any) -> Any:
        return [] if v is None else v

    def get_label(self, key: str) -> Optional[str]:
        """Return the value stored under ``key``, or None."""
        for label in self.labels:
            if label.key == key:
                return label.value
        return None

    def set_label(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any existing entries for it."""
        self.labels = [label for label in self.labels if label.key != key]
        self.labels.append(Label(key=key, value=value))

    def to_payload(self) -> Dict[str, Any]:
        """Serialize for the Atlas API, omitting unset and read-only fields."""
        payload = self.model_dump(
            mode="json",
            by_alias=True,
            exclude_none=True,
            exclude=self.READ_ONLY_FIELDS,
        )
        if not payload.get("labels"):
            payload.pop("labels", None)
        return payload
