from __future__ import annotations

from typing import Any

import structlog

from dashboard_api.config import Settings, get_settings
from dashboard_api.exceptions import ClusterClientError, ClusterLookupError
from dashboard_api.schemas.dashboard import EndpointEntry
from dashboard_api.services.kube_client import KubernetesService


def _first_rule_host(ingress: Any) -> tuple[bool, str]:
    """Return (has_rules, host of the first rule)."""
    spec = getattr(ingress, "spec", None)
    rules = getattr(spec, "rules", None) or []
    if not rules:
        return False, ""
    return True, getattr(rules[0], "host", None) or ""


def _route_host(route: Any) -> str:
    if not isinstance(route, dict):
        return ""
    spec = route.get("spec") or {}
    return spec.get("host") or ""


class EndpointService:
    """Discovers the externally reachable address of the dashboard.

    ``get_ingress`` is strict and needs the well-known Ingress to carry a host
    on its first rule. ``get_endpoints`` is advisory and collects whatever the
    Route and the Ingress offer; only an empty result is an error.
    """

    def __init__(
        self,
        kube: KubernetesService,
        settings: Settings | None = None,
        logger: Any | None = None,
    ) -> None:
        self._kube = kube
        self.settings = settings or get_settings()
        self._log = logger or structlog.get_logger(__name__)

    async def get_ingress(self, namespace: str) -> str:
        name = self.settings.dashboard_ingress_name
        try:
            ingress = await self._kube.read_ingress(namespace, name)
        except ClusterClientError as exc:
            self._log.error("endpoints.ingress_unavailable", namespace=namespace, name=name, error=exc.message)
            raise ClusterLookupError() from exc
        if ingress is None:
            self._log.error("endpoints.ingress_unavailable", namespace=namespace, name=name, error="not found")
            raise ClusterLookupError()

        has_rules, host = _first_rule_host(ingress)
        if host:
            return host

        if has_rules:
            self._log.error("endpoints.ingress_empty_rule", namespace=namespace, name=name)
        else:
            self._log.error("endpoints.ingress_no_rules", namespace=namespace, name=name)
        raise ClusterLookupError()

    async def get_endpoints(self, namespace: str) -> list[EndpointEntry]:
        entries: list[EndpointEntry] = []

        route_name = self.settings.dashboard_route_name
        route = None
        try:
            route = await self._kube.read_route(namespace, route_name)
        except ClusterClientError as exc:
            self._log.info("endpoints.route_unavailable", namespace=namespace, name=route_name, error=exc.message)
        else:
            if route is None:
                self._log.info("endpoints.route_unavailable", namespace=namespace, name=route_name, error="not found")
        if route is not None:
            host = _route_host(route)
            if host:
                entries.append(EndpointEntry(type="Route", url=host))
            else:
                self._log.error("endpoints.route_no_host", namespace=namespace, name=route_name)

        ingress_name = self.settings.dashboard_ingress_name
        ingress = None
        try:
            ingress = await self._kube.read_ingress(namespace, ingress_name)
        except ClusterClientError as exc:
            self._log.info("endpoints.ingress_unavailable", namespace=namespace, name=ingress_name, error=exc.message)
        else:
            if ingress is None:
                self._log.info("endpoints.ingress_unavailable", namespace=namespace, name=ingress_name, error="not found")
        if ingress is not None:
            has_rules, host = _first_rule_host(ingress)
            if host:
                entries.append(EndpointEntry(type="Ingress", url=host))
            elif has_rules:
                self._log.error("endpoints.ingress_empty_rule", namespace=namespace, name=ingress_name)
            else:
                self._log.error("endpoints.ingress_no_rules", namespace=namespace, name=ingress_name)

        if not entries:
            self._log.error("endpoints.none_found", namespace=namespace)
            raise ClusterLookupError()
        return entries
