from collections.abc import Iterable, Sequence

from .models import PodSnapshot, PvcOverview, PvcSummary, PvSummary, StorageOverview

PV_BOUND = "Bound"
PV_AVAILABLE = "Available"


def claim_owners(pods: Iterable[PodSnapshot]) -> dict[tuple[str, str], str]:
    """Map (namespace, claim name) to the name of the pod mounting it."""
    owners: dict[tuple[str, str], str] = {}
    for pod in pods:
        if pod.claim_name:
            owners.setdefault((pod.namespace, pod.claim_name), pod.name)
    return owners


def build_pvc_overview(pvcs: Iterable[PvcSummary], pods: Iterable[PodSnapshot] = ()) -> list[PvcOverview]:
    owners = claim_owners(pods)
    return [
        PvcOverview(
            pvc_name=pvc.pvc_name,
            namespace=pvc.namespace,
            capacity_bytes=pvc.capacity_bytes,
            access_modes=pvc.access_modes,
            storage_class_name=pvc.storage_class_name,
            phase=pvc.phase,
            volume_name=pvc.volume_name,
            bound_pod_name=owners.get((pvc.namespace, pvc.pvc_name)),
        )
        for pvc in pvcs
    ]


def build_storage_overview(
    pvs: Sequence[PvSummary], pvcs: Sequence[PvcSummary], pods: Iterable[PodSnapshot] = ()
) -> StorageOverview:
    bound = [pv for pv in pvs if pv.phase == PV_BOUND]
    available = [pv for pv in pvs if pv.phase == PV_AVAILABLE]
    pvc_rows = build_pvc_overview(pvcs, pods)
    return StorageOverview(
        total_pv_count=len(pvs),
        bound_pv_count=len(bound),
        available_pv_count=len(available),
        other_pv_count=len(pvs) - len(bound) - len(available),
        total_capacity_bytes=sum((pv.capacity_bytes for pv in pvs), 0.0),
        bound_capacity_bytes=sum((pv.capacity_bytes for pv in bound), 0.0),
        total_pvc_count=len(pvc_rows),
        pvs=tuple(pvs),
        pvcs=tuple(pvc_rows),
    )
