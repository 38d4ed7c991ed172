import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, TypeVar

from kubernetes import client, config
from kubernetes.client import CoreV1Api, CustomObjectsApi, EventsV1Api, V1DeleteOptions, V1Pod
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from .config import DashboardSettings
from .core import ClusterState
from .core_k8s import event_from_k8s, node_snapshot, pod_metrics_from_payload, pod_snapshot, pv_summary, pvc_summary
from .errors import ResourceNotFound, UpstreamUnavailable
from .models import KubernetesEvent, NodeSnapshot, PodMetrics, PodSnapshot, PvcSummary, PvSummary

logger = logging.getLogger(__name__)

METRICS_GROUP = "metrics.k8s.io"
METRICS_VERSION = "v1beta1"
METRICS_PLURAL = "pods"

T = TypeVar("T")


def upstream_error(action: str, e: Exception) -> UpstreamUnavailable:
    if isinstance(e, ApiException):
        logger.warning("Kubernetes API call [%s] failed. code=%s, responseBody=%s", action, e.status, e.body)
        return UpstreamUnavailable(action, status=e.status, reason=e.reason, body=e.body)
    logger.warning("Kubernetes API call [%s] failed: %s", action, e)
    return UpstreamUnavailable(action, reason=str(e))


class KubernetesReader:
    """
    Reads hub state from the Kubernetes API and converts it to snapshots.

    Every call is scoped to the configured namespace except node and
    persistent volume reads, which are cluster-wide.
    """

    def __init__(
        self,
        settings: DashboardSettings,
        core_api: CoreV1Api,
        custom_api: CustomObjectsApi | None = None,
        events_api: EventsV1Api | None = None,
    ):
        self.settings = settings
        self.core_api = core_api
        self.custom_api = custom_api
        self.events_api = events_api

    def _call(
        self,
        action: str,
        fn: Callable[..., T],
        *args: Any,
        not_found: tuple[str, str] | None = None,
        **kwargs: Any,
    ) -> T:
        """
        Invoke one API method, translating failures.

        Args:
            action: Human readable description used in logs and errors
            fn: Bound API method
            not_found: (kind, name) to raise ResourceNotFound for on HTTP 404

        Raises:
            ResourceNotFound: If not_found is given and the API answered 404
            UpstreamUnavailable: On any other API or transport failure
        """
        kwargs.setdefault("_request_timeout", self.settings.request_timeout)
        try:
            return fn(*args, **kwargs)
        except ApiException as e:
            if not_found is not None and e.status == 404:
                raise ResourceNotFound(*not_found) from e
            raise upstream_error(action, e) from e
        except HTTPError as e:
            raise upstream_error(action, e) from e

    def _snapshot(self, pod: V1Pod) -> PodSnapshot:
        return pod_snapshot(pod, self.settings.username_label_key, self.settings.namespace)

    def list_nodes(self) -> list[NodeSnapshot]:
        nodes = self._call("list nodes", self.core_api.list_node).items
        return [node_snapshot(node) for node in nodes]

    def get_node(self, name: str) -> NodeSnapshot:
        node = self._call(f"read node {name}", self.core_api.read_node, name, not_found=("node", name))
        return node_snapshot(node)

    def list_user_pods(self) -> list[PodSnapshot]:
        pods = self._call(
            "list user pods",
            self.core_api.list_namespaced_pod,
            namespace=self.settings.namespace,
            label_selector=self.settings.username_label_key,
            limit=self.settings.max_pod_fetch,
        ).items
        return [self._snapshot(pod) for pod in pods]

    def get_pod_by_username(self, username: str) -> PodSnapshot:
        pods = self._call(
            f"find pod for username {username}",
            self.core_api.list_namespaced_pod,
            namespace=self.settings.namespace,
            label_selector=f"{self.settings.username_label_key}={username}",
            limit=1,
        ).items
        if not pods:
            raise ResourceNotFound("session", username)
        return self._snapshot(pods[0])

    def list_pods_on_node(self, name: str) -> list[PodSnapshot]:
        pods = self._call(
            f"list pods on node {name}",
            self.core_api.list_namespaced_pod,
            namespace=self.settings.namespace,
            field_selector=f"spec.nodeName={name}",
            label_selector=self.settings.username_label_key,
            limit=self.settings.max_pod_fetch,
        ).items
        return [self._snapshot(pod) for pod in pods]

    def read_pod(self, name: str) -> V1Pod:
        return self._call(
            f"read pod {name}",
            self.core_api.read_namespaced_pod,
            name,
            self.settings.namespace,
            not_found=("pod", name),
        )

    def delete_pod(self, name: str) -> None:
        # Returns once the API accepted the request, not once the pod is gone.
        logger.info("Deleting pod %s in %s", name, self.settings.namespace)
        self._call(
            f"delete pod {name}",
            self.core_api.delete_namespaced_pod,
            name,
            self.settings.namespace,
            body=V1DeleteOptions(),
            not_found=("pod", name),
        )

    def get_pod_metrics(self, pod_name: str) -> PodMetrics | None:
        if self.custom_api is None:
            return None
        try:
            payload = self.custom_api.get_namespaced_custom_object(
                METRICS_GROUP,
                METRICS_VERSION,
                self.settings.namespace,
                METRICS_PLURAL,
                pod_name,
                _request_timeout=self.settings.metrics_timeout,
            )
        except (ApiException, HTTPError) as e:
            logger.info("Metrics unavailable for pod %s: %s", pod_name, e)
            return None
        return pod_metrics_from_payload(payload, pod_name, now=datetime.now(UTC))

    def list_events_for_pod(self, pod_name: str) -> list[KubernetesEvent]:
        if self.events_api is None:
            return []
        events = self._call(
            f"list events for pod {pod_name}",
            self.events_api.list_namespaced_event,
            self.settings.namespace,
            field_selector=f"regarding.name={pod_name}",
        ).items
        return [event_from_k8s(event) for event in events]

    def list_persistent_volumes(self) -> list[PvSummary]:
        pvs = self._call("list persistent volumes", self.core_api.list_persistent_volume).items
        return [pv_summary(pv) for pv in pvs]

    def list_persistent_volume_claims(self) -> list[PvcSummary]:
        pvcs = self._call(
            "list persistent volume claims",
            self.core_api.list_namespaced_persistent_volume_claim,
            self.settings.namespace,
        ).items
        return [pvc_summary(pvc, self.settings.namespace) for pvc in pvcs]

    def get_pvc_by_name(self, name: str, namespace: str | None = None) -> PvcSummary:
        namespace = namespace or self.settings.namespace
        pvc = self._call(
            f"read persistent volume claim {namespace}/{name}",
            self.core_api.read_namespaced_persistent_volume_claim,
            name,
            namespace,
            not_found=("persistentvolumeclaim", name),
        )
        return pvc_summary(pvc, namespace)

    def get_state(self) -> ClusterState:
        """
        Read nodes and session pods once, as a single snapshot.

        Raises:
            UpstreamUnavailable: If either list call fails
        """
        nodes = self.list_nodes()
        pods = self.list_user_pods()
        return ClusterState(nodes=nodes, pods=pods, namespace=self.settings.namespace, ts=datetime.now(UTC))


def create_api_client(settings: DashboardSettings) -> client.ApiClient:
    """Build an API client from an explicit server URL, a kubeconfig file, or the in-cluster service account."""
    if settings.api_server_url:
        configuration = client.Configuration()
        configuration.host = settings.api_server_url
        configuration.verify_ssl = settings.verify_ssl
        if settings.bearer_token:
            configuration.api_key = {"authorization": settings.bearer_token}
            configuration.api_key_prefix = {"authorization": "Bearer"}
        return client.ApiClient(configuration)
    if settings.use_kubeconfig:
        config.load_kube_config(config_file=settings.kubeconfig_path)
    else:
        config.load_incluster_config()
    return client.ApiClient()


def create_reader(settings: DashboardSettings) -> KubernetesReader:
    api_client = create_api_client(settings)
    return KubernetesReader(
        settings,
        core_api=CoreV1Api(api_client),
        custom_api=CustomObjectsApi(api_client),
        events_api=EventsV1Api(api_client),
    )
