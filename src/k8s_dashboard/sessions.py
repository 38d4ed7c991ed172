"""
Per-user session views.

A session is the single pod in the hub namespace labelled with a username.
"""

from collections.abc import Iterable, Sequence

from .core_k8s import CPU, LIMITS, MEMORY, aggregate_pod_resource
from .models import (
    KubernetesEvent,
    PodMetrics,
    PodSnapshot,
    PvcSummary,
    ResourceTriple,
    SessionDetail,
    SessionMetadata,
    SessionResources,
    SessionStatus,
    SessionSummary,
    StorageType,
    StorageUsage,
)


def build_session_summary(pod: PodSnapshot) -> SessionSummary:
    return SessionSummary(
        username=pod.username,
        namespace=pod.namespace,
        pod_name=pod.name,
        phase=pod.phase,
        ready=pod.ready,
        restart_count=pod.restart_count,
        node_name=pod.node_name,
        start_time=pod.start_time,
        cpu_milli_cores=aggregate_pod_resource(pod, CPU),
        memory_bytes=aggregate_pod_resource(pod, MEMORY),
    )


def build_session_summaries(pods: Iterable[PodSnapshot]) -> list[SessionSummary]:
    return sorted((build_session_summary(pod) for pod in pods), key=lambda s: s.username)


def classify_storage(pod: PodSnapshot, pvc: PvcSummary | None = None) -> StorageUsage:
    """
    Decide what backs a session's working storage.

    An ephemeral-storage limit on the first container wins over any mounted
    claim. Otherwise the resolved claim is used; a pod whose claim could not
    be resolved has no storage.
    """
    if pod.storage_binding is StorageType.EPHEMERAL:
        return StorageUsage.ephemeral(pod.containers[0].ephemeral_storage.limit)
    if pod.claim_name and pvc is not None:
        return StorageUsage.pvc(
            capacity_bytes=pvc.capacity_bytes,
            request_bytes=pvc.request_bytes,
            pvc_name=pvc.pvc_name,
            storage_class_name=pvc.storage_class_name,
        )
    return StorageUsage.none()


def build_session_detail(
    pod: PodSnapshot,
    metrics: PodMetrics | None = None,
    events: Sequence[KubernetesEvent] = (),
    storage: StorageUsage | None = None,
) -> SessionDetail:
    """
    Combine a session pod with its live metrics, events and storage.

    Missing metrics leave the usage fields unset rather than failing.
    """
    return SessionDetail(
        metadata=SessionMetadata(
            username=pod.username,
            pod_name=pod.name,
            namespace=pod.namespace,
            node_name=pod.node_name,
        ),
        status=SessionStatus(
            phase=pod.phase,
            message=pod.message,
            start_time=pod.start_time,
            restart_count=pod.restart_count,
            ready=pod.ready,
        ),
        resources=SessionResources(
            cpu=ResourceTriple(
                request=aggregate_pod_resource(pod, CPU),
                limit=aggregate_pod_resource(pod, CPU, LIMITS),
                usage=metrics.cpu_milli_cores if metrics else None,
            ),
            memory=ResourceTriple(
                request=aggregate_pod_resource(pod, MEMORY),
                limit=aggregate_pod_resource(pod, MEMORY, LIMITS),
                usage=metrics.memory_bytes if metrics else None,
            ),
            storage=storage if storage is not None else classify_storage(pod),
        ),
        metrics=metrics,
        events=tuple(events),
    )
