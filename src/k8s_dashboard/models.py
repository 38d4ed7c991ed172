from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any

from .quantity import bytes_to_mebibytes

PLACEHOLDER = "-"


def _plain(value: Any) -> Any:
    if isinstance(value, Record):
        return value.to_dict()
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Mapping):
        return {key: _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    return value


class Record:
    """Mixin for read models that render to JSON-ready dicts."""

    def to_dict(self) -> dict[str, Any]:
        return {f.name: _plain(getattr(self, f.name)) for f in fields(self)}


# Snapshots


@dataclass(frozen=True)
class ResourceTriple(Record):
    """Request, limit and live usage of one resource, in one canonical unit."""

    request: float | None = None
    limit: float | None = None
    usage: float | None = None


@dataclass(frozen=True)
class ContainerResources(Record):
    name: str
    cpu: ResourceTriple = field(default_factory=ResourceTriple)
    memory: ResourceTriple = field(default_factory=ResourceTriple)
    ephemeral_storage: ResourceTriple = field(default_factory=ResourceTriple)

    def triple(self, resource_key: str) -> ResourceTriple:
        if resource_key == "cpu":
            return self.cpu
        if resource_key == "memory":
            return self.memory
        if resource_key == "ephemeral-storage":
            return self.ephemeral_storage
        return ResourceTriple()


class StorageType(str, Enum):
    NONE = "None"
    EPHEMERAL = "Ephemeral"
    PVC = "PVC"


@dataclass(frozen=True)
class PodSnapshot(Record):
    namespace: str
    name: str
    phase: str
    ready: bool
    restart_count: int
    username: str
    node_name: str | None = None
    message: str | None = None
    start_time: datetime | None = None
    created_at: datetime | None = None
    containers: tuple[ContainerResources, ...] = ()
    claim_name: str | None = None  # first PVC volume, if any

    @property
    def storage_binding(self) -> StorageType:
        if self.containers and self.containers[0].ephemeral_storage.limit is not None:
            return StorageType.EPHEMERAL
        if self.claim_name:
            return StorageType.PVC
        return StorageType.NONE


@dataclass(frozen=True)
class NodeResources(Record):
    cpu_milli_cores: float = 0.0
    memory_bytes: float = 0.0
    ephemeral_storage_bytes: float = 0.0


@dataclass(frozen=True)
class NodeCondition(Record):
    type: str
    status: str
    last_heartbeat_time: datetime | None = None
    last_transition_time: datetime | None = None
    reason: str | None = None
    message: str | None = None


@dataclass(frozen=True)
class NodeSnapshot(Record):
    name: str
    status: str  # Ready, NotReady, Unknown
    role: str  # control-plane, worker
    capacity: NodeResources = field(default_factory=NodeResources)
    allocatable: NodeResources = field(default_factory=NodeResources)
    kubelet_version: str = PLACEHOLDER
    os_image: str = PLACEHOLDER
    operating_system: str = PLACEHOLDER
    architecture: str = PLACEHOLDER
    kernel_version: str = PLACEHOLDER
    container_runtime_version: str = PLACEHOLDER
    internal_ip: str = PLACEHOLDER
    external_ip: str = PLACEHOLDER
    hostname: str = PLACEHOLDER
    labels: Mapping[str, str] = field(default_factory=dict)
    annotations: Mapping[str, str] = field(default_factory=dict)
    conditions: tuple[NodeCondition, ...] = ()
    created_at: datetime | None = None


# Cluster and node views


@dataclass(frozen=True)
class NodeSummary(Record):
    node_name: str
    internal_ip: str
    status: str
    kubelet_version: str
    os_image: str
    capacity_cpu_milli_cores: float
    allocatable_cpu_milli_cores: float
    requested_cpu_milli_cores: float
    cpu_usage_percent: float
    capacity_memory_bytes: float
    allocatable_memory_bytes: float
    requested_memory_bytes: float
    memory_usage_percent: float
    capacity_ephemeral_storage_bytes: float
    allocatable_ephemeral_storage_bytes: float
    requested_ephemeral_storage_bytes: float
    ephemeral_storage_usage_percent: float
    pod_count: int


@dataclass(frozen=True)
class NodePodSummary(Record):
    name: str
    namespace: str
    phase: str
    created_at: datetime | None
    requested_cpu_milli_cores: float
    requested_memory_bytes: float
    requested_ephemeral_storage_bytes: float


@dataclass(frozen=True)
class NodeDetail(Record):
    node_name: str
    status: str
    role: str
    created_at: datetime | None
    os_image: str
    kernel_version: str
    container_runtime_version: str
    kubelet_version: str
    architecture: str
    operating_system: str
    internal_ip: str
    external_ip: str
    hostname: str
    labels: Mapping[str, str]
    annotations: Mapping[str, str]
    conditions: tuple[NodeCondition, ...]
    capacity_cpu_milli_cores: float
    allocatable_cpu_milli_cores: float
    requested_cpu_milli_cores: float
    cpu_usage_percent: float
    capacity_memory_bytes: float
    allocatable_memory_bytes: float
    requested_memory_bytes: float
    memory_usage_percent: float
    capacity_ephemeral_storage_bytes: float
    allocatable_ephemeral_storage_bytes: float
    requested_ephemeral_storage_bytes: float
    ephemeral_storage_usage_percent: float
    pods: tuple[NodePodSummary, ...]


@dataclass(frozen=True)
class ClusterOverview(Record):
    total_nodes: int
    ready_nodes: int
    total_sessions: int
    running_sessions: int
    total_cpu_capacity_milli_cores: float
    total_cpu_allocatable_milli_cores: float
    total_cpu_requested_milli_cores: float
    cpu_usage_percent: float
    total_memory_capacity_bytes: float
    total_memory_allocatable_bytes: float
    total_memory_requested_bytes: float
    memory_usage_percent: float
    total_ephemeral_storage_capacity_bytes: float
    total_ephemeral_storage_allocatable_bytes: float
    total_ephemeral_storage_requested_bytes: float
    ephemeral_storage_usage_percent: float

    # Deprecated MiB aliases for older consumers.
    @property
    def total_memory_capacity_mib(self) -> float:
        return bytes_to_mebibytes(self.total_memory_capacity_bytes)

    @property
    def total_memory_allocatable_mib(self) -> float:
        return bytes_to_mebibytes(self.total_memory_allocatable_bytes)

    @property
    def total_memory_requested_mib(self) -> float:
        return bytes_to_mebibytes(self.total_memory_requested_bytes)


@dataclass(frozen=True)
class PodCondition(Record):
    type: str
    status: str
    last_probe_time: datetime | None = None
    last_transition_time: datetime | None = None
    reason: str | None = None
    message: str | None = None


@dataclass(frozen=True)
class ContainerPort(Record):
    name: str | None
    container_port: int
    protocol: str | None


@dataclass(frozen=True)
class ContainerDetail(Record):
    name: str
    image: str | None
    image_pull_policy: str | None
    ready: bool
    restart_count: int
    state: str  # Running, Waiting, Terminated, Unknown
    state_reason: str | None
    state_message: str | None
    request_cpu_milli_cores: float
    limit_cpu_milli_cores: float
    request_memory_bytes: float
    limit_memory_bytes: float
    ports: tuple[ContainerPort, ...] = ()


@dataclass(frozen=True)
class PodDetail(Record):
    name: str
    namespace: str
    uid: str | None
    created_at: datetime | None
    labels: Mapping[str, str]
    annotations: Mapping[str, str]
    owner_kind: str
    owner_name: str
    node_name: str | None
    service_account_name: str | None
    restart_policy: str | None
    priority_class_name: str | None
    phase: str
    qos_class: str | None
    pod_ip: str | None
    host_ip: str | None
    start_time: datetime | None
    conditions: tuple[PodCondition, ...]
    containers: tuple[ContainerDetail, ...]


# Sessions


@dataclass(frozen=True)
class PodMetrics(Record):
    pod_name: str
    collected_at: datetime
    cpu_milli_cores: float
    memory_bytes: float

    @property
    def memory_mib(self) -> float:
        return bytes_to_mebibytes(self.memory_bytes)


@dataclass(frozen=True)
class KubernetesEvent(Record):
    type: str | None
    reason: str | None
    message: str | None
    event_time: datetime | None


@dataclass(frozen=True)
class SessionSummary(Record):
    username: str
    namespace: str
    pod_name: str
    phase: str
    ready: bool
    restart_count: int
    node_name: str | None
    start_time: datetime | None
    cpu_milli_cores: float
    memory_bytes: float

    @property
    def memory_mib(self) -> float:
        # Deprecated: MiB-based session shape.
        return bytes_to_mebibytes(self.memory_bytes)


@dataclass(frozen=True)
class SessionMetadata(Record):
    username: str
    pod_name: str
    namespace: str
    node_name: str | None


@dataclass(frozen=True)
class SessionStatus(Record):
    phase: str
    message: str | None
    start_time: datetime | None
    restart_count: int
    ready: bool


@dataclass(frozen=True)
class StorageUsage(Record):
    type: StorageType
    capacity_bytes: float = 0.0  # limit for ephemeral storage
    request_bytes: float = 0.0
    pvc_name: str | None = None
    storage_class_name: str | None = None

    @classmethod
    def none(cls) -> "StorageUsage":
        return cls(type=StorageType.NONE)

    @classmethod
    def ephemeral(cls, capacity_bytes: float) -> "StorageUsage":
        return cls(type=StorageType.EPHEMERAL, capacity_bytes=capacity_bytes)

    @classmethod
    def pvc(
        cls, capacity_bytes: float, request_bytes: float, pvc_name: str, storage_class_name: str | None
    ) -> "StorageUsage":
        return cls(
            type=StorageType.PVC,
            capacity_bytes=capacity_bytes,
            request_bytes=request_bytes,
            pvc_name=pvc_name,
            storage_class_name=storage_class_name,
        )


@dataclass(frozen=True)
class SessionResources(Record):
    cpu: ResourceTriple
    memory: ResourceTriple
    storage: StorageUsage


@dataclass(frozen=True)
class SessionDetail(Record):
    metadata: SessionMetadata
    status: SessionStatus
    resources: SessionResources
    metrics: PodMetrics | None
    events: tuple[KubernetesEvent, ...] = ()


# Storage


@dataclass(frozen=True)
class ClaimReference(Record):
    namespace: str | None
    name: str | None

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True)
class PvSummary(Record):
    pv_name: str
    capacity_bytes: float
    access_modes: tuple[str, ...]
    reclaim_policy: str | None
    storage_class_name: str | None
    phase: str
    claim: ClaimReference | None = None

    @property
    def claim_ref(self) -> str | None:
        return str(self.claim) if self.claim else None

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["claim_ref"] = self.claim_ref
        del data["claim"]
        return data


@dataclass(frozen=True)
class PvcSummary(Record):
    pvc_name: str
    namespace: str
    capacity_bytes: float
    request_bytes: float
    access_modes: tuple[str, ...]
    storage_class_name: str | None
    phase: str
    volume_name: str | None


@dataclass(frozen=True)
class PvcOverview(Record):
    pvc_name: str
    namespace: str
    capacity_bytes: float
    access_modes: tuple[str, ...]
    storage_class_name: str | None
    phase: str
    volume_name: str | None
    bound_pod_name: str | None


@dataclass(frozen=True)
class StorageOverview(Record):
    total_pv_count: int
    bound_pv_count: int
    available_pv_count: int
    other_pv_count: int
    total_capacity_bytes: float
    bound_capacity_bytes: float
    total_pvc_count: int
    pvs: tuple[PvSummary, ...]
    pvcs: tuple[PvcOverview, ...]
