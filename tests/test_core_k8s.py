from datetime import UTC, datetime
from unittest.mock import Mock

import pytest
from kubernetes.client import (
    EventsV1Event,
    EventsV1EventSeries,
    V1NodeSystemInfo,
    V1ObjectMeta,
    V1ObjectReference,
    V1PersistentVolume,
    V1PersistentVolumeClaim,
    V1PersistentVolumeClaimSpec,
    V1PersistentVolumeClaimStatus,
    V1PersistentVolumeSpec,
    V1PersistentVolumeStatus,
    V1Pod,
    V1PodStatus,
    V1VolumeResourceRequirements,
)
from k8s_factories import (
    NAMESPACE,
    STARTED,
    USERNAME_LABEL,
    create_test_container,
    create_test_node,
    create_test_pod,
    create_test_snapshot,
)

from k8s_dashboard.core_k8s import (
    CPU,
    EPHEMERAL_STORAGE,
    LIMITS,
    MEMORY,
    aggregate_pod_resource,
    aggregate_resource,
    event_from_k8s,
    get_claim_name,
    get_restart_count,
    is_pod_ready,
    node_snapshot,
    pod_metrics_from_payload,
    pod_snapshot,
    pv_summary,
    pvc_summary,
    resolve_node_status,
)
from k8s_dashboard.models import PLACEHOLDER, StorageType


@pytest.mark.unit
def test_pod_without_container_statuses_is_not_ready():
    pod = create_test_pod("jupyter-alice", ready=())
    assert is_pod_ready(pod) is False


@pytest.mark.unit
def test_pod_with_one_unready_container_is_not_ready():
    pod = create_test_pod("jupyter-alice", ready=(True, False, True))
    assert is_pod_ready(pod) is False


@pytest.mark.unit
def test_pod_with_all_containers_ready_is_ready():
    pod = create_test_pod("jupyter-alice", ready=(True, True, True))
    assert is_pod_ready(pod) is True


@pytest.mark.unit
def test_pod_without_status_is_not_ready():
    pod = V1Pod(metadata=V1ObjectMeta(name="jupyter-alice"))
    assert is_pod_ready(pod) is False
    assert get_restart_count(pod) == 0


@pytest.mark.unit
def test_restart_count_sums_containers():
    pod = create_test_pod("jupyter-alice", ready=(True, True), restarts=(2, 3))
    assert get_restart_count(pod) == 5


@pytest.mark.unit
def test_claim_name_is_first_pvc_volume():
    assert get_claim_name(create_test_pod("jupyter-alice", claim_name="claim-alice")) == "claim-alice"
    assert get_claim_name(create_test_pod("jupyter-bob")) is None


@pytest.mark.unit
def test_pod_snapshot_fields():
    """Test a pod converts into a snapshot with normalized resources."""
    pod = create_test_pod(
        "jupyter-alice",
        username="alice",
        node_name="node-a",
        requests={"cpu": "500m", "memory": "1Gi"},
        limits={"cpu": "2", "memory": "2Gi"},
        claim_name="claim-alice",
    )
    snapshot = pod_snapshot(pod, USERNAME_LABEL, NAMESPACE)

    assert snapshot.name == "jupyter-alice"
    assert snapshot.namespace == NAMESPACE
    assert snapshot.username == "alice"
    assert snapshot.node_name == "node-a"
    assert snapshot.phase == "Running"
    assert snapshot.ready is True
    assert snapshot.start_time == STARTED
    assert snapshot.claim_name == "claim-alice"
    assert snapshot.storage_binding is StorageType.PVC

    container = snapshot.containers[0]
    assert container.cpu.request == 500.0
    assert container.cpu.limit == 2000.0
    assert container.memory.request == 1073741824.0
    assert container.memory.limit == 2147483648.0
    assert container.ephemeral_storage.request is None


@pytest.mark.unit
def test_pod_snapshot_defaults():
    pod = V1Pod(metadata=V1ObjectMeta(name="jupyter-ghost"), status=V1PodStatus())
    snapshot = pod_snapshot(pod, USERNAME_LABEL, NAMESPACE)

    assert snapshot.username == "unknown"
    assert snapshot.phase == "Unknown"
    assert snapshot.namespace == NAMESPACE
    assert snapshot.containers == ()
    assert snapshot.storage_binding is StorageType.NONE


@pytest.mark.unit
def test_aggregate_pod_resource_sums_containers():
    """Test requests sum across containers and missing resources contribute zero."""
    snapshot = create_test_snapshot(
        "jupyter-alice",
        containers=[
            create_test_container("notebook", requests={"cpu": "500m", "memory": "512Mi"}, limits={"cpu": "1"}),
            create_test_container("sidecar", requests={"cpu": "250m"}),
            create_test_container("idle"),
        ],
    )

    assert aggregate_pod_resource(snapshot, CPU) == 750.0
    assert aggregate_pod_resource(snapshot, MEMORY) == 536870912.0
    assert aggregate_pod_resource(snapshot, CPU, LIMITS) == 1000.0
    assert aggregate_pod_resource(snapshot, EPHEMERAL_STORAGE) == 0.0


@pytest.mark.unit
def test_aggregate_resource_over_pods():
    pods = [
        create_test_snapshot("a", requests={"cpu": "500m"}),
        create_test_snapshot("b", requests={"cpu": "1"}),
        create_test_snapshot("c"),
    ]
    assert aggregate_resource(pods, CPU) == 1500.0
    assert aggregate_resource([], CPU) == 0.0


@pytest.mark.unit
@pytest.mark.parametrize(
    "ready, expected",
    [("True", "Ready"), ("true", "Ready"), ("False", "NotReady"), ("Unknown", "NotReady"), (None, "Unknown")],
)
def test_resolve_node_status(ready, expected):
    """Test the Ready condition maps to Ready, NotReady or Unknown."""
    assert resolve_node_status(create_test_node("node-a", ready=ready)) == expected


@pytest.mark.unit
def test_node_snapshot():
    node = create_test_node(
        "node-a",
        capacity={"cpu": "4", "memory": "16Gi", "ephemeral-storage": "100Gi"},
        allocatable={"cpu": "3800m", "memory": "15Gi", "ephemeral-storage": "90Gi"},
        labels={"node-role.kubernetes.io/control-plane": ""},
        addresses={"InternalIP": "10.0.0.5", "Hostname": "node-a"},
    )
    info = Mock(spec=V1NodeSystemInfo)
    info.kubelet_version = "v1.29.2"
    info.os_image = "Ubuntu 22.04.4 LTS"
    info.operating_system = "linux"
    info.architecture = "amd64"
    info.kernel_version = "5.15.0"
    info.container_runtime_version = "containerd://1.7.2"
    node.status.node_info = info

    snapshot = node_snapshot(node)

    assert snapshot.name == "node-a"
    assert snapshot.status == "Ready"
    assert snapshot.role == "control-plane"
    assert snapshot.capacity.cpu_milli_cores == 4000.0
    assert snapshot.allocatable.cpu_milli_cores == 3800.0
    assert snapshot.allocatable.memory_bytes == 15 * 1024.0**3
    assert snapshot.allocatable.ephemeral_storage_bytes == 90 * 1024.0**3
    assert snapshot.internal_ip == "10.0.0.5"
    assert snapshot.external_ip == PLACEHOLDER
    assert snapshot.hostname == "node-a"
    assert snapshot.kubelet_version == "v1.29.2"
    assert [c.type for c in snapshot.conditions] == ["MemoryPressure", "Ready"]


@pytest.mark.unit
def test_node_snapshot_without_reported_details():
    snapshot = node_snapshot(create_test_node("node-b"))

    assert snapshot.role == "worker"
    assert snapshot.internal_ip == PLACEHOLDER
    assert snapshot.kubelet_version == PLACEHOLDER
    assert snapshot.allocatable.cpu_milli_cores == 0.0


@pytest.mark.unit
def test_pv_summary():
    pv = V1PersistentVolume(
        metadata=V1ObjectMeta(name="pv-1"),
        spec=V1PersistentVolumeSpec(
            capacity={"storage": "10Gi"},
            access_modes=["ReadWriteOnce"],
            persistent_volume_reclaim_policy="Delete",
            storage_class_name="standard",
            claim_ref=V1ObjectReference(namespace=NAMESPACE, name="claim-alice"),
        ),
        status=V1PersistentVolumeStatus(phase="Bound"),
    )
    summary = pv_summary(pv)

    assert summary.capacity_bytes == 10737418240.0
    assert summary.access_modes == ("ReadWriteOnce",)
    assert summary.phase == "Bound"
    assert summary.claim_ref == "jhub/claim-alice"
    assert summary.to_dict()["claim_ref"] == "jhub/claim-alice"
    assert "claim" not in summary.to_dict()


@pytest.mark.unit
def test_pvc_summary():
    pvc = V1PersistentVolumeClaim(
        metadata=V1ObjectMeta(name="claim-alice"),
        spec=V1PersistentVolumeClaimSpec(
            access_modes=["ReadWriteOnce"],
            resources=V1VolumeResourceRequirements(requests={"storage": "5Gi"}),
            storage_class_name="standard",
            volume_name="pv-1",
        ),
        status=V1PersistentVolumeClaimStatus(phase="Bound", capacity={"storage": "10Gi"}),
    )
    summary = pvc_summary(pvc, NAMESPACE)

    assert summary.namespace == NAMESPACE
    assert summary.request_bytes == 5 * 1024.0**3
    assert summary.capacity_bytes == 10 * 1024.0**3
    assert summary.volume_name == "pv-1"


def create_test_event(event_time=None, series=None, created=None) -> EventsV1Event:
    event = Mock(spec=EventsV1Event)
    event.type = "Normal"
    event.reason = "Pulled"
    event.note = "Container image pulled"
    event.event_time = event_time
    event.series = series
    event.metadata = V1ObjectMeta(creation_timestamp=created)
    return event


@pytest.mark.unit
def test_event_time_falls_back_to_series_then_creation():
    observed = datetime(2024, 3, 14, 16, 0, tzinfo=UTC)
    series = Mock(spec=EventsV1EventSeries)
    series.last_observed_time = observed

    assert event_from_k8s(create_test_event(event_time=STARTED)).event_time == STARTED
    assert event_from_k8s(create_test_event(series=series, created=STARTED)).event_time == observed
    event = event_from_k8s(create_test_event(created=STARTED))
    assert event.event_time == STARTED
    assert event.message == "Container image pulled"


@pytest.mark.unit
def test_pod_metrics_from_payload():
    payload = {
        "timestamp": "2024-03-14T15:31:00Z",
        "containers": [
            {"name": "notebook", "usage": {"cpu": "250000000n", "memory": "512Mi"}},
            {"name": "sidecar", "usage": {"cpu": "10m", "memory": "16Mi"}},
        ],
    }
    metrics = pod_metrics_from_payload(payload, "jupyter-alice")

    assert metrics.cpu_milli_cores == pytest.approx(260.0)
    assert metrics.memory_bytes == 528 * 1024.0**2
    assert metrics.memory_mib == 528.0
    assert metrics.collected_at == datetime(2024, 3, 14, 15, 31, tzinfo=UTC)


@pytest.mark.unit
def test_pod_metrics_without_containers_is_absent():
    assert pod_metrics_from_payload({"kind": "PodMetrics"}, "jupyter-alice") is None
    assert pod_metrics_from_payload(None, "jupyter-alice") is None
