class DashboardError(Exception):
    """Base class for errors surfaced to callers of the dashboard service."""


class ResourceNotFound(DashboardError, LookupError):
    def __init__(self, kind: str, name: str):
        super().__init__(f"{kind} {name} not found")
        self.kind = kind
        self.name = name


class UpstreamUnavailable(DashboardError):
    """The Kubernetes API or metrics server failed, timed out or was unreachable."""

    def __init__(self, action: str, status: int | None = None, reason: str | None = None, body: str | None = None):
        super().__init__(f"Failed to {action} (status={status}, reason={reason})")
        self.action = action
        self.status = status
        self.reason = reason
        self.body = body


class IntegrationDisabled(DashboardError):
    def __init__(self):
        super().__init__("Kubernetes integration is disabled")
