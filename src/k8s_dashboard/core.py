from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime

from kubernetes.client import V1Container, V1ContainerStatus, V1Pod

from .core_k8s import (
    CPU,
    EPHEMERAL_STORAGE,
    MEMORY,
    NODE_READY,
    UNKNOWN_PHASE,
    aggregate_pod_resource,
    aggregate_resource,
    container_resources,
    get_containers,
)
from .models import (
    PLACEHOLDER,
    ClusterOverview,
    ContainerDetail,
    ContainerPort,
    NodeDetail,
    NodePodSummary,
    NodeSnapshot,
    NodeSummary,
    PodCondition,
    PodDetail,
    PodSnapshot,
)


@dataclass(frozen=True)
class ClusterState:
    """Nodes and session pods read together, so every total comes from one point in time."""

    nodes: list[NodeSnapshot]
    pods: list[PodSnapshot]
    namespace: str
    ts: datetime


@dataclass(frozen=True)
class _Usage:
    requested_cpu: float
    requested_memory: float
    requested_ephemeral_storage: float


def calculate_usage_percent(requested: float, allocatable: float) -> float:
    # "not >" also catches NaN
    if not allocatable > 0:
        return 0.0
    return requested / allocatable * 100.0


def is_running(pod: PodSnapshot) -> bool:
    return pod.phase.lower() == "running"


def group_pods_by_node(pods: Iterable[PodSnapshot]) -> dict[str, list[PodSnapshot]]:
    """Group pods by assigned node; unscheduled pods are left out."""
    grouped: dict[str, list[PodSnapshot]] = defaultdict(list)
    for pod in pods:
        if pod.node_name:
            grouped[pod.node_name].append(pod)
    return dict(grouped)


def _requested(pods: Sequence[PodSnapshot]) -> _Usage:
    return _Usage(
        requested_cpu=aggregate_resource(pods, CPU),
        requested_memory=aggregate_resource(pods, MEMORY),
        requested_ephemeral_storage=aggregate_resource(pods, EPHEMERAL_STORAGE),
    )


def build_node_summary(node: NodeSnapshot, pods: Sequence[PodSnapshot]) -> NodeSummary:
    usage = _requested(pods)
    capacity, allocatable = node.capacity, node.allocatable
    return NodeSummary(
        node_name=node.name,
        internal_ip=node.internal_ip,
        status=node.status,
        kubelet_version=node.kubelet_version,
        os_image=node.os_image,
        capacity_cpu_milli_cores=capacity.cpu_milli_cores,
        allocatable_cpu_milli_cores=allocatable.cpu_milli_cores,
        requested_cpu_milli_cores=usage.requested_cpu,
        cpu_usage_percent=calculate_usage_percent(usage.requested_cpu, allocatable.cpu_milli_cores),
        capacity_memory_bytes=capacity.memory_bytes,
        allocatable_memory_bytes=allocatable.memory_bytes,
        requested_memory_bytes=usage.requested_memory,
        memory_usage_percent=calculate_usage_percent(usage.requested_memory, allocatable.memory_bytes),
        capacity_ephemeral_storage_bytes=capacity.ephemeral_storage_bytes,
        allocatable_ephemeral_storage_bytes=allocatable.ephemeral_storage_bytes,
        requested_ephemeral_storage_bytes=usage.requested_ephemeral_storage,
        ephemeral_storage_usage_percent=calculate_usage_percent(
            usage.requested_ephemeral_storage, allocatable.ephemeral_storage_bytes
        ),
        pod_count=len(pods),
    )


def build_node_summaries(nodes: Iterable[NodeSnapshot], pods: Iterable[PodSnapshot]) -> list[NodeSummary]:
    pods_by_node = group_pods_by_node(pods)
    summaries = [build_node_summary(node, pods_by_node.get(node.name, [])) for node in nodes]
    return sorted(summaries, key=lambda s: s.node_name)


def build_node_detail(node: NodeSnapshot, pods: Sequence[PodSnapshot]) -> NodeDetail:
    summary = build_node_summary(node, pods)
    pod_rows = tuple(
        NodePodSummary(
            name=pod.name,
            namespace=pod.namespace,
            phase=pod.phase,
            created_at=pod.created_at,
            requested_cpu_milli_cores=aggregate_pod_resource(pod, CPU),
            requested_memory_bytes=aggregate_pod_resource(pod, MEMORY),
            requested_ephemeral_storage_bytes=aggregate_pod_resource(pod, EPHEMERAL_STORAGE),
        )
        for pod in pods
    )
    return NodeDetail(
        node_name=node.name,
        status=node.status,
        role=node.role,
        created_at=node.created_at,
        os_image=node.os_image,
        kernel_version=node.kernel_version,
        container_runtime_version=node.container_runtime_version,
        kubelet_version=node.kubelet_version,
        architecture=node.architecture,
        operating_system=node.operating_system,
        internal_ip=node.internal_ip,
        external_ip=node.external_ip,
        hostname=node.hostname,
        labels=node.labels,
        annotations=node.annotations,
        conditions=node.conditions,
        capacity_cpu_milli_cores=summary.capacity_cpu_milli_cores,
        allocatable_cpu_milli_cores=summary.allocatable_cpu_milli_cores,
        requested_cpu_milli_cores=summary.requested_cpu_milli_cores,
        cpu_usage_percent=summary.cpu_usage_percent,
        capacity_memory_bytes=summary.capacity_memory_bytes,
        allocatable_memory_bytes=summary.allocatable_memory_bytes,
        requested_memory_bytes=summary.requested_memory_bytes,
        memory_usage_percent=summary.memory_usage_percent,
        capacity_ephemeral_storage_bytes=summary.capacity_ephemeral_storage_bytes,
        allocatable_ephemeral_storage_bytes=summary.allocatable_ephemeral_storage_bytes,
        requested_ephemeral_storage_bytes=summary.requested_ephemeral_storage_bytes,
        ephemeral_storage_usage_percent=summary.ephemeral_storage_usage_percent,
        pods=pod_rows,
    )


def build_overview(node_summaries: Sequence[NodeSummary], session_pods: Sequence[PodSnapshot]) -> ClusterOverview:
    """
    Fold node summaries and session pods into cluster totals.

    Percentages are fleet-wide requested over allocatable, not an average of
    per-node percentages, so differently sized nodes do not skew them.
    """
    cpu_capacity = sum((n.capacity_cpu_milli_cores for n in node_summaries), 0.0)
    cpu_allocatable = sum((n.allocatable_cpu_milli_cores for n in node_summaries), 0.0)
    cpu_requested = sum((n.requested_cpu_milli_cores for n in node_summaries), 0.0)
    memory_capacity = sum((n.capacity_memory_bytes for n in node_summaries), 0.0)
    memory_allocatable = sum((n.allocatable_memory_bytes for n in node_summaries), 0.0)
    memory_requested = sum((n.requested_memory_bytes for n in node_summaries), 0.0)
    storage_capacity = sum((n.capacity_ephemeral_storage_bytes for n in node_summaries), 0.0)
    storage_allocatable = sum((n.allocatable_ephemeral_storage_bytes for n in node_summaries), 0.0)
    storage_requested = sum((n.requested_ephemeral_storage_bytes for n in node_summaries), 0.0)

    return ClusterOverview(
        total_nodes=len(node_summaries),
        ready_nodes=sum(1 for n in node_summaries if n.status == NODE_READY),
        total_sessions=len(session_pods),
        running_sessions=sum(1 for pod in session_pods if is_running(pod)),
        total_cpu_capacity_milli_cores=cpu_capacity,
        total_cpu_allocatable_milli_cores=cpu_allocatable,
        total_cpu_requested_milli_cores=cpu_requested,
        cpu_usage_percent=calculate_usage_percent(cpu_requested, cpu_allocatable),
        total_memory_capacity_bytes=memory_capacity,
        total_memory_allocatable_bytes=memory_allocatable,
        total_memory_requested_bytes=memory_requested,
        memory_usage_percent=calculate_usage_percent(memory_requested, memory_allocatable),
        total_ephemeral_storage_capacity_bytes=storage_capacity,
        total_ephemeral_storage_allocatable_bytes=storage_allocatable,
        total_ephemeral_storage_requested_bytes=storage_requested,
        ephemeral_storage_usage_percent=calculate_usage_percent(storage_requested, storage_allocatable),
    )


def _container_state(status: V1ContainerStatus | None) -> tuple[str, str | None, str | None]:
    state = status.state if status else None
    if state is None:
        return "Unknown", None, None
    if state.running is not None:
        return "Running", f"Started at {state.running.started_at}", None
    if state.waiting is not None:
        return "Waiting", state.waiting.reason, state.waiting.message
    if state.terminated is not None:
        return "Terminated", state.terminated.reason, state.terminated.message
    return "Unknown", None, None


def _container_detail(container: V1Container, status: V1ContainerStatus | None) -> ContainerDetail:
    resources = container_resources(container)
    state, reason, message = _container_state(status)
    return ContainerDetail(
        name=container.name,
        image=container.image,
        image_pull_policy=container.image_pull_policy,
        ready=bool(status and status.ready),
        restart_count=(status.restart_count or 0) if status else 0,
        state=state,
        state_reason=reason,
        state_message=message,
        request_cpu_milli_cores=resources.cpu.request or 0.0,
        limit_cpu_milli_cores=resources.cpu.limit or 0.0,
        request_memory_bytes=resources.memory.request or 0.0,
        limit_memory_bytes=resources.memory.limit or 0.0,
        ports=tuple(
            ContainerPort(name=p.name, container_port=p.container_port, protocol=p.protocol)
            for p in container.ports or []
        ),
    )


def build_pod_detail(pod: V1Pod) -> PodDetail:
    """Infrastructure view of a single pod, independent of any session."""
    meta, spec, status = pod.metadata, pod.spec, pod.status

    owner_kind, owner_name = PLACEHOLDER, PLACEHOLDER
    if meta.owner_references:
        owner_kind, owner_name = meta.owner_references[0].kind, meta.owner_references[0].name

    statuses = {s.name: s for s in (status.container_statuses if status else None) or []}
    conditions = tuple(
        PodCondition(
            type=c.type,
            status=c.status,
            last_probe_time=c.last_probe_time,
            last_transition_time=c.last_transition_time,
            reason=c.reason,
            message=c.message,
        )
        for c in (status.conditions if status else None) or []
    )
    return PodDetail(
        name=meta.name,
        namespace=meta.namespace,
        uid=meta.uid,
        created_at=meta.creation_timestamp,
        labels=dict(meta.labels or {}),
        annotations=dict(meta.annotations or {}),
        owner_kind=owner_kind,
        owner_name=owner_name,
        node_name=spec.node_name if spec else None,
        service_account_name=spec.service_account_name if spec else None,
        restart_policy=spec.restart_policy if spec else None,
        priority_class_name=spec.priority_class_name if spec else None,
        phase=(status.phase if status else None) or UNKNOWN_PHASE,
        qos_class=status.qos_class if status else None,
        pod_ip=status.pod_ip if status else None,
        host_ip=status.host_ip if status else None,
        start_time=status.start_time if status else None,
        conditions=conditions,
        containers=tuple(_container_detail(c, statuses.get(c.name)) for c in get_containers(pod)),
    )

