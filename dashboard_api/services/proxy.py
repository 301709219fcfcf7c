from __future__ import annotations

from typing import Any
from urllib.parse import urlsplit

import structlog

from dashboard_api.exceptions import ClusterClientError, ProxyError
from dashboard_api.schemas.dashboard import ForwardedResponse
from dashboard_api.services.kube_client import KubernetesService
from dashboard_api.services.utils import get_content_type


class ProxyService:
    """Forwards arbitrary requests to the cluster API server."""

    def __init__(self, kube: KubernetesService, logger: Any | None = None) -> None:
        self._kube = kube
        self._log = logger or structlog.get_logger(__name__)

    async def proxy_request(
        self,
        method: str,
        url: str,
        subpath: str,
        body: bytes = b"",
        content_type: str | None = None,
    ) -> ForwardedResponse:
        try:
            query = urlsplit(url).query
        except ValueError as exc:
            self._log.info("proxy.parse_error", url=url, error=str(exc))
            raise ProxyError(str(exc)) from exc

        self._log.debug("proxy.forward", method=method, subpath=subpath, query=query)
        try:
            raw = await self._kube.forward(method, subpath, query, body, content_type)
        except ClusterClientError as exc:
            raise ProxyError(exc.message) from exc

        return ForwardedResponse(status=200, body=raw, content_type=get_content_type(raw))
