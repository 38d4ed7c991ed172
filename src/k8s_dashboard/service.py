import logging

from .api_components import KubernetesReader
from .config import DashboardSettings
from .core import build_node_detail, build_node_summaries, build_overview, build_pod_detail
from .errors import IntegrationDisabled, ResourceNotFound
from .models import (
    ClusterOverview,
    NodeDetail,
    NodeSummary,
    PodDetail,
    PodSnapshot,
    PvcOverview,
    PvcSummary,
    SessionDetail,
    SessionSummary,
    StorageOverview,
    StorageType,
)
from .sessions import build_session_detail, build_session_summaries, classify_storage
from .storage import build_pvc_overview, build_storage_overview

logger = logging.getLogger(__name__)


class DashboardService:
    """
    Entry points for the dashboard views.

    Each call reads fresh cluster state through the reader and hands it to the
    pure builders; nothing is cached between calls.
    """

    def __init__(self, settings: DashboardSettings, reader: KubernetesReader):
        self.settings = settings
        self.reader = reader

    def _check_enabled(self) -> None:
        if not self.settings.enabled:
            raise IntegrationDisabled()

    def node_summaries(self) -> list[NodeSummary]:
        self._check_enabled()
        state = self.reader.get_state()
        return build_node_summaries(state.nodes, state.pods)

    def cluster_overview(self) -> ClusterOverview:
        self._check_enabled()
        state = self.reader.get_state()
        logger.debug("Building overview from %d nodes and %d pods at %s", len(state.nodes), len(state.pods), state.ts)
        return build_overview(build_node_summaries(state.nodes, state.pods), state.pods)

    def node_detail(self, name: str) -> NodeDetail:
        self._check_enabled()
        node = self.reader.get_node(name)
        return build_node_detail(node, self.reader.list_pods_on_node(name))

    def pod_detail(self, name: str) -> PodDetail:
        self._check_enabled()
        return build_pod_detail(self.reader.read_pod(name))

    def sessions(self) -> list[SessionSummary]:
        self._check_enabled()
        return build_session_summaries(self.reader.list_user_pods())

    def _resolve_claim(self, pod: PodSnapshot) -> PvcSummary | None:
        if pod.storage_binding is not StorageType.PVC:
            return None
        try:
            # The claim lives next to the pod; snapshots fall back to the configured namespace.
            return self.reader.get_pvc_by_name(pod.claim_name, pod.namespace)
        except ResourceNotFound:
            logger.info("Claim %s for pod %s not found", pod.claim_name, pod.name)
            return None

    def session_detail(self, username: str) -> SessionDetail:
        """
        Raises:
            ResourceNotFound: If no pod carries the username label
            UpstreamUnavailable: If the pod, event or claim reads fail
        """
        self._check_enabled()
        pod = self.reader.get_pod_by_username(username)
        metrics = self.reader.get_pod_metrics(pod.name)
        events = self.reader.list_events_for_pod(pod.name)
        storage = classify_storage(pod, self._resolve_claim(pod))
        return build_session_detail(pod, metrics=metrics, events=events, storage=storage)

    def terminate_session(self, pod_name: str) -> None:
        self._check_enabled()
        self.reader.delete_pod(pod_name)

    def pvc_overview_list(self) -> list[PvcOverview]:
        self._check_enabled()
        return build_pvc_overview(self.reader.list_persistent_volume_claims(), self.reader.list_user_pods())

    def storage_overview(self) -> StorageOverview:
        self._check_enabled()
        return build_storage_overview(
            self.reader.list_persistent_volumes(),
            self.reader.list_persistent_volume_claims(),
            self.reader.list_user_pods(),
        )
