from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

from kubernetes.client import (
    V1Container,
    V1Node,
    V1PersistentVolume,
    V1PersistentVolumeClaim,
    V1Pod,
)

from .models import (
    PLACEHOLDER,
    ClaimReference,
    ContainerResources,
    KubernetesEvent,
    NodeCondition,
    NodeResources,
    NodeSnapshot,
    PodMetrics,
    PodSnapshot,
    PvcSummary,
    PvSummary,
    ResourceTriple,
)
from .quantity import kind_for_resource, normalize, to_bytes, to_milli_cores

CPU = "cpu"
MEMORY = "memory"
EPHEMERAL_STORAGE = "ephemeral-storage"
STORAGE = "storage"

REQUESTS = "requests"
LIMITS = "limits"

UNKNOWN_USERNAME = "unknown"
UNKNOWN_PHASE = "Unknown"
CONTROL_PLANE_LABEL = "node-role.kubernetes.io/control-plane"

NODE_READY = "Ready"
NODE_NOT_READY = "NotReady"
NODE_UNKNOWN = "Unknown"


def get_label(obj: Any, key: str, default: str | None = None) -> str | None:
    if not obj or not obj.metadata or not obj.metadata.labels:
        return default
    return obj.metadata.labels.get(key) or default


def get_containers(pod: V1Pod) -> list[V1Container]:
    if not pod or not pod.spec or not pod.spec.containers:
        return []
    return pod.spec.containers


def is_pod_ready(pod: V1Pod) -> bool:
    # A pod that reports no container statuses is not ready.
    statuses = pod.status.container_statuses if pod.status else None
    if not statuses:
        return False
    return all(status.ready is True for status in statuses)


def get_restart_count(pod: V1Pod) -> int:
    statuses = pod.status.container_statuses if pod.status else None
    return sum(status.restart_count or 0 for status in statuses or [])


def get_claim_name(pod: V1Pod) -> str | None:
    if not pod.spec or not pod.spec.volumes:
        return None
    for volume in pod.spec.volumes:
        if volume.persistent_volume_claim is not None:
            return volume.persistent_volume_claim.claim_name
    return None


def _triple(requests: Mapping[str, Any] | None, limits: Mapping[str, Any] | None, resource_key: str) -> ResourceTriple:
    kind = kind_for_resource(resource_key)
    request = normalize(requests[resource_key], kind) if requests and resource_key in requests else None
    limit = normalize(limits[resource_key], kind) if limits and resource_key in limits else None
    return ResourceTriple(request=request, limit=limit)


def container_resources(container: V1Container) -> ContainerResources:
    resources = container.resources
    requests = resources.requests if resources else None
    limits = resources.limits if resources else None
    return ContainerResources(
        name=container.name,
        cpu=_triple(requests, limits, CPU),
        memory=_triple(requests, limits, MEMORY),
        ephemeral_storage=_triple(requests, limits, EPHEMERAL_STORAGE),
    )


def pod_snapshot(pod: V1Pod, username_label_key: str, default_namespace: str = "") -> PodSnapshot:
    metadata = pod.metadata
    status = pod.status
    return PodSnapshot(
        namespace=(metadata.namespace if metadata else None) or default_namespace,
        name=(metadata.name if metadata else None) or "unknown",
        phase=(status.phase if status else None) or UNKNOWN_PHASE,
        ready=is_pod_ready(pod),
        restart_count=get_restart_count(pod),
        username=get_label(pod, username_label_key, UNKNOWN_USERNAME),
        node_name=pod.spec.node_name if pod.spec else None,
        message=status.message if status else None,
        start_time=status.start_time if status else None,
        created_at=metadata.creation_timestamp if metadata else None,
        containers=tuple(container_resources(c) for c in get_containers(pod)),
        claim_name=get_claim_name(pod),
    )


def aggregate_pod_resource(pod: PodSnapshot, resource_key: str, source: str = REQUESTS) -> float:
    total = 0.0
    for container in pod.containers:
        triple = container.triple(resource_key)
        value = triple.request if source == REQUESTS else triple.limit
        total += value or 0.0
    return total


def aggregate_resource(pods: Iterable[PodSnapshot], resource_key: str, source: str = REQUESTS) -> float:
    """
    Sum one resource's requests (or limits) over every container of the given pods.

    Pods without containers or resource blocks contribute zero. The result is
    in milli-cores for "cpu" and bytes for everything else.
    """
    return sum((aggregate_pod_resource(pod, resource_key, source) for pod in pods), 0.0)


def resolve_node_status(node: V1Node) -> str:
    if not node.status or node.status.conditions is None:
        return NODE_UNKNOWN
    for condition in node.status.conditions:
        if (condition.type or "").lower() == "ready":
            return NODE_READY if (condition.status or "").lower() == "true" else NODE_NOT_READY
    return NODE_UNKNOWN


def get_node_role(node: V1Node) -> str:
    labels = node.metadata.labels if node.metadata else None
    return "control-plane" if labels and CONTROL_PLANE_LABEL in labels else "worker"


def node_resources(quantities: Mapping[str, Any] | None) -> NodeResources:
    quantities = quantities or {}
    return NodeResources(
        cpu_milli_cores=to_milli_cores(quantities.get(CPU)),
        memory_bytes=to_bytes(quantities.get(MEMORY)),
        ephemeral_storage_bytes=to_bytes(quantities.get(EPHEMERAL_STORAGE)),
    )


def _addresses(node: V1Node) -> dict[str, str]:
    found = {"InternalIP": PLACEHOLDER, "ExternalIP": PLACEHOLDER, "Hostname": PLACEHOLDER}
    for address in (node.status.addresses if node.status else None) or []:
        if address.type in found and found[address.type] == PLACEHOLDER:
            found[address.type] = address.address
    return found


def node_snapshot(node: V1Node) -> NodeSnapshot:
    metadata = node.metadata
    status = node.status
    info = status.node_info if status else None
    addresses = _addresses(node)
    return NodeSnapshot(
        name=(metadata.name if metadata else None) or "unknown",
        status=resolve_node_status(node),
        role=get_node_role(node),
        capacity=node_resources(status.capacity if status else None),
        allocatable=node_resources(status.allocatable if status else None),
        kubelet_version=(info.kubelet_version if info else None) or PLACEHOLDER,
        os_image=(info.os_image if info else None) or PLACEHOLDER,
        operating_system=(info.operating_system if info else None) or PLACEHOLDER,
        architecture=(info.architecture if info else None) or PLACEHOLDER,
        kernel_version=(info.kernel_version if info else None) or PLACEHOLDER,
        container_runtime_version=(info.container_runtime_version if info else None) or PLACEHOLDER,
        internal_ip=addresses["InternalIP"],
        external_ip=addresses["ExternalIP"],
        hostname=addresses["Hostname"],
        labels=dict(metadata.labels or {}) if metadata else {},
        annotations=dict(metadata.annotations or {}) if metadata else {},
        conditions=tuple(
            NodeCondition(
                type=c.type,
                status=c.status,
                last_heartbeat_time=c.last_heartbeat_time,
                last_transition_time=c.last_transition_time,
                reason=c.reason,
                message=c.message,
            )
            for c in (status.conditions if status else None) or []
        ),
        created_at=metadata.creation_timestamp if metadata else None,
    )


def pv_summary(pv: V1PersistentVolume) -> PvSummary:
    spec = pv.spec
    claim = None
    if spec and spec.claim_ref is not None:
        claim = ClaimReference(namespace=spec.claim_ref.namespace, name=spec.claim_ref.name)
    return PvSummary(
        pv_name=(pv.metadata.name if pv.metadata else None) or "unknown",
        capacity_bytes=to_bytes((spec.capacity or {}).get(STORAGE)) if spec else 0.0,
        access_modes=tuple(spec.access_modes or ()) if spec else (),
        reclaim_policy=spec.persistent_volume_reclaim_policy if spec else None,
        storage_class_name=spec.storage_class_name if spec else None,
        phase=(pv.status.phase if pv.status else None) or UNKNOWN_PHASE,
        claim=claim,
    )


def pvc_summary(pvc: V1PersistentVolumeClaim, default_namespace: str = "") -> PvcSummary:
    spec = pvc.spec
    status = pvc.status
    requests = spec.resources.requests if spec and spec.resources else None
    return PvcSummary(
        pvc_name=(pvc.metadata.name if pvc.metadata else None) or "unknown",
        namespace=(pvc.metadata.namespace if pvc.metadata else None) or default_namespace,
        capacity_bytes=to_bytes((status.capacity or {}).get(STORAGE)) if status else 0.0,
        request_bytes=to_bytes((requests or {}).get(STORAGE)),
        access_modes=tuple(spec.access_modes or ()) if spec else (),
        storage_class_name=spec.storage_class_name if spec else None,
        phase=(status.phase if status else None) or UNKNOWN_PHASE,
        volume_name=spec.volume_name if spec else None,
    )


def event_from_k8s(event: Any) -> KubernetesEvent:
    event_time = event.event_time
    if event_time is None and event.series is not None:
        event_time = event.series.last_observed_time
    if event_time is None and event.metadata is not None:
        event_time = event.metadata.creation_timestamp
    return KubernetesEvent(type=event.type, reason=event.reason, message=event.note, event_time=event_time)


def _parse_timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def pod_metrics_from_payload(payload: Any, pod_name: str, now: datetime | None = None) -> PodMetrics | None:
    """
    Sum container usage from a metrics.k8s.io PodMetrics object.

    Returns None when the payload carries no container list.
    """
    if not isinstance(payload, Mapping) or "containers" not in payload:
        return None
    cpu = 0.0
    memory = 0.0
    for container in payload.get("containers") or []:
        usage = container.get("usage") or {}
        cpu += to_milli_cores(usage.get(CPU))
        memory += to_bytes(usage.get(MEMORY))
    collected_at = _parse_timestamp(payload.get("timestamp")) or now or datetime.now(UTC)
    return PodMetrics(pod_name=pod_name, collected_at=collected_at, cpu_milli_cores=cpu, memory_bytes=memory)
