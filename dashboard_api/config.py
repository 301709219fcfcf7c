from functools import lru_cache
from typing import Literal

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration sourced from environment variables."""

    model_config = SettingsConfigDict(
        env_file=(".env",),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    app_env: Literal["development", "production", "test"] = "development"
    log_level: str = "INFO"
    log_json: bool = False
    host: str = "0.0.0.0"
    port: int = 9097
    allowed_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    # Cluster access
    kube_context: str | None = None
    kube_config_path: str | None = Field(default=None, alias="KUBE_CONFIG_PATH")
    in_cluster: bool = Field(default=False, description="Use the pod service account instead of a kubeconfig")

    # Namespace the dashboard itself is installed in
    installed_namespace: str = Field(default="", alias="INSTALLED_NAMESPACE")

    # Well-known objects exposing the dashboard
    dashboard_ingress_name: str = "tekton-dashboard"
    dashboard_route_name: str = "tekton-dashboard"

    # Dashboard version lookup
    dashboard_version_selector: str = "app=tekton-dashboard"
    dashboard_version_label: str = "version"

    # Pipelines version lookup
    pipelines_namespace: str = "tekton-pipelines"
    pipelines_version_selector: str = (
        "app.kubernetes.io/component=controller,app.kubernetes.io/name=tekton-pipelines"
    )
    pipelines_release_annotation: str = "tekton.dev/release"
    pipelines_image_marker: str = "pipeline/cmd/controller"

    @computed_field
    @property
    def is_debug(self) -> bool:
        return self.app_env == "development"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]
