import os
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DashboardSettings(BaseSettings):
    """Settings for the Kubernetes integration, read from JHUB_K8S_* variables or .env."""

    model_config = SettingsConfigDict(env_prefix="JHUB_K8S_", env_file=".env", case_sensitive=False, extra="ignore")

    # Turns every cluster read off when false
    enabled: bool = True

    # Target namespace and session identity
    namespace: str = Field(default="jhub", min_length=1)
    username_label_key: str = Field(default="hub.jupyter.org/username", min_length=1)

    # Connection
    use_kubeconfig: bool = False
    kubeconfig_path: str = Field(default=os.path.expanduser("~/.kube/config"), min_length=1)
    api_server_url: str | None = None
    bearer_token: str | None = None
    verify_ssl: bool = True

    # Seconds
    request_timeout: float = Field(default=10.0, gt=0)
    metrics_timeout: float = Field(default=5.0, gt=0)
    refresh_interval: float = Field(default=5.0, gt=0)

    max_pod_fetch: int = Field(default=200, ge=1, le=1000)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    @field_validator("namespace", "username_label_key", "kubeconfig_path", mode="before")
    @classmethod
    def _strip(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, value):
        return value.upper() if isinstance(value, str) else value
