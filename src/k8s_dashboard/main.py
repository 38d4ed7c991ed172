import logging
import sys
import time
from datetime import UTC, datetime

from .api_components import create_reader
from .config import DashboardSettings
from .errors import UpstreamUnavailable
from .models import ClusterOverview
from .service import DashboardService

logger = logging.getLogger(__name__)


def create_service(settings: DashboardSettings) -> DashboardService:
    return DashboardService(settings, create_reader(settings))


def format_overview(overview: ClusterOverview, ts: datetime) -> str:
    return (
        f"At {ts}, {overview.total_nodes} nodes ({overview.ready_nodes} ready), "
        f"{overview.total_sessions} sessions ({overview.running_sessions} running), "
        f"cpu {overview.cpu_usage_percent:.1f}%, memory {overview.memory_usage_percent:.1f}%, "
        f"ephemeral storage {overview.ephemeral_storage_usage_percent:.1f}%"
    )


def main():
    """
    Print a cluster overview line every refresh interval until interrupted.
    """
    settings = DashboardSettings()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    if not settings.enabled:
        print("\nKubernetes integration is disabled, exiting...")
        sys.exit(0)

    service = create_service(settings)
    print(f"\nk8s-dashboard watching namespace {settings.namespace}...")
    try:
        while True:
            try:
                print(format_overview(service.cluster_overview(), datetime.now(UTC)), flush=True)
            except UpstreamUnavailable as e:
                # Already logged by the reader; try again next round.
                logger.debug("Skipping overview: %s", e)
            time.sleep(settings.refresh_interval)
    except KeyboardInterrupt:
        print(f"\nk8s-dashboard shutting down in {settings.namespace}...")
        sys.exit(0)


if __name__ == "__main__":
    main()
