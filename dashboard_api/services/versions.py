from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog

from dashboard_api.config import Settings, get_settings
from dashboard_api.exceptions import ClusterClientError, ClusterLookupError
from dashboard_api.schemas.dashboard import Properties, VersionQuery
from dashboard_api.services.kube_client import KubernetesService
from dashboard_api.services.utils import parse_image_tag

UNKNOWN_VERSION = "Unknown"

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _created_at(deployment: Any) -> datetime:
    md = getattr(deployment, "metadata", None)
    created = getattr(md, "creation_timestamp", None)
    if not isinstance(created, datetime):
        return _EPOCH
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return created


def extract_version(deployment: Any, query: VersionQuery) -> str:
    """Pull a version out of one deployment, or return "".

    Precedence: deployment label, pod template annotation, then the tag of the
    first container's image when it contains the configured marker.
    """
    if query.label_key:
        md = getattr(deployment, "metadata", None)
        labels = getattr(md, "labels", None) or {}
        version = labels.get(query.label_key) or ""
        if version:
            return version

    spec = getattr(deployment, "spec", None)
    template = getattr(spec, "template", None)

    if query.annotation_key:
        template_md = getattr(template, "metadata", None)
        annotations = getattr(template_md, "annotations", None) or {}
        version = annotations.get(query.annotation_key) or ""
        if version:
            return version

    if query.image_marker:
        pod_spec = getattr(template, "spec", None)
        containers = getattr(pod_spec, "containers", None) or []
        if containers:
            image = getattr(containers[0], "image", None) or ""
            if query.image_marker in image:
                return parse_image_tag(image)

    return ""


class VersionService:
    """Reports installed component versions and install properties."""

    def __init__(
        self,
        kube: KubernetesService,
        settings: Settings | None = None,
        logger: Any | None = None,
    ) -> None:
        self._kube = kube
        self.settings = settings or get_settings()
        self._log = logger or structlog.get_logger(__name__)

    def get_properties(self) -> Properties:
        return Properties(install_namespace=self.settings.installed_namespace or "")

    def dashboard_query(self) -> VersionQuery:
        return VersionQuery(
            namespace=self.settings.installed_namespace,
            label_selector=self.settings.dashboard_version_selector,
            label_key=self.settings.dashboard_version_label,
        )

    def pipelines_query(self) -> VersionQuery:
        return VersionQuery(
            namespace=self.settings.pipelines_namespace,
            label_selector=self.settings.pipelines_version_selector,
            annotation_key=self.settings.pipelines_release_annotation,
            image_marker=self.settings.pipelines_image_marker,
        )

    async def get_dashboard_version(self) -> str:
        return await self.resolve_version(self.dashboard_query())

    async def get_pipeline_version(self) -> str:
        return await self.resolve_version(self.pipelines_query())

    async def resolve_version(self, query: VersionQuery) -> str:
        try:
            deployments = await self._kube.list_deployments(query.namespace, query.label_selector)
        except ClusterClientError as exc:
            self._log.error(
                "versions.list_deployments_failed",
                namespace=query.namespace,
                label_selector=query.label_selector,
                error=exc.message,
            )
            raise ClusterLookupError() from exc

        if len(deployments) > 1:
            self._log.info(
                "versions.multiple_matches",
                namespace=query.namespace,
                label_selector=query.label_selector,
                count=len(deployments),
            )

        # 多个匹配时按创建时间从新到旧尝试，时间相同时查询顺序靠后者优先
        ordered = sorted(enumerate(deployments), key=lambda item: (_created_at(item[1]), item[0]), reverse=True)
        for _, deployment in ordered:
            version = extract_version(deployment, query)
            if version:
                return version

        self._log.info("versions.unknown", namespace=query.namespace, label_selector=query.label_selector)
        return UNKNOWN_VERSION
