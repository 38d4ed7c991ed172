"""Kubernetes hub dashboard aggregation package."""

from .api_components import KubernetesReader, create_reader
from .config import DashboardSettings
from .core import ClusterState, calculate_usage_percent
from .errors import DashboardError, IntegrationDisabled, ResourceNotFound, UpstreamUnavailable
from .quantity import to_bytes, to_mebibytes, to_milli_cores
from .service import DashboardService

__all__ = [
    "ClusterState",
    "DashboardError",
    "DashboardService",
    "DashboardSettings",
    "IntegrationDisabled",
    "KubernetesReader",
    "ResourceNotFound",
    "UpstreamUnavailable",
    "calculate_usage_percent",
    "create_reader",
    "to_bytes",
    "to_mebibytes",
    "to_milli_cores",
]
