from __future__ import annotations

import asyncio
import json
from typing import Any
from urllib.parse import parse_qsl

import structlog
from kubernetes import client, config
from kubernetes.client import ApiClient
from kubernetes.client.rest import ApiException, contenttype_matches
from kubernetes.config.config_exception import ConfigException

from dashboard_api.config import Settings, get_settings
from dashboard_api.exceptions import ClusterClientError

ROUTE_GROUP = "route.openshift.io"
ROUTE_VERSION = "v1"
ROUTE_PLURAL = "routes"


def _wrap_error(action: str, exc: Exception) -> ClusterClientError:
    if isinstance(exc, ClusterClientError):
        return exc
    if isinstance(exc, ApiException):
        return ClusterClientError(str(exc).strip(), reason=exc.reason, status=exc.status)
    return ClusterClientError(f"{action} failed: {exc}")


class KubernetesService:
    """Thin async wrapper around the Kubernetes Python client.

    Every call is read-only except :meth:`forward`, which replays whatever the
    caller sent. Blocking client calls run in a worker thread. Failures are
    raised as :class:`ClusterClientError`; nothing is retried or cached.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        api_client: ApiClient | None = None,
        logger: Any | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._log = logger or structlog.get_logger(__name__)
        self._client_lock = asyncio.Lock()
        self._api_client: ApiClient | None = api_client
        self._cluster_display_name = self.settings.kube_context or "default"

    # ---------------------------
    # Ingress & Route
    # ---------------------------

    async def read_ingress(self, namespace: str, name: str) -> client.V1Ingress | None:
        api_client = await self._ensure_client()
        net = client.NetworkingV1Api(api_client)
        try:
            return await asyncio.to_thread(net.read_namespaced_ingress, name=name, namespace=namespace)
        except Exception as exc:
            self._log_failure("kubernetes.read_ingress_error", exc, namespace=namespace, name=name)
            raise _wrap_error("read ingress", exc) from exc

    async def read_route(self, namespace: str, name: str) -> dict[str, Any] | None:
        api_client = await self._ensure_client()
        co = client.CustomObjectsApi(api_client)
        try:
            return await asyncio.to_thread(
                co.get_namespaced_custom_object,
                group=ROUTE_GROUP,
                version=ROUTE_VERSION,
                namespace=namespace,
                plural=ROUTE_PLURAL,
                name=name,
            )
        except Exception as exc:
            self._log_failure("kubernetes.read_route_error", exc, namespace=namespace, name=name)
            raise _wrap_error("read route", exc) from exc

    # ---------------------------
    # Deployments
    # ---------------------------

    async def list_deployments(self, namespace: str, label_selector: str) -> list[client.V1Deployment]:
        api_client = await self._ensure_client()
        apps_v1 = client.AppsV1Api(api_client)
        try:
            result = await asyncio.to_thread(
                apps_v1.list_namespaced_deployment,
                namespace=namespace,
                label_selector=label_selector,
            )
        except Exception as exc:
            self._log_failure(
                "kubernetes.list_deployments_error",
                exc,
                namespace=namespace,
                label_selector=label_selector,
            )
            raise _wrap_error("list deployments", exc) from exc
        return list(getattr(result, "items", None) or [])

    # ---------------------------
    # Raw passthrough
    # ---------------------------

    async def forward(
        self,
        method: str,
        path: str,
        query: str = "",
        body: bytes = b"",
        content_type: str | None = None,
    ) -> bytes:
        """Replay a request against the API server and return the raw body.

        ``path`` is relative to the API server root, e.g. ``api/v1/pods``.
        Non-2xx responses raise :class:`ClusterClientError`.
        """
        api_client = await self._ensure_client()

        def _do() -> bytes:
            payload, sent_type = _prepare_body(body, content_type)
            header_params: dict[str, str] = {}
            if sent_type:
                header_params["Content-Type"] = sent_type
            request = api_client.param_serialize(
                method=method.upper(),
                resource_path="/" + path.lstrip("/"),
                query_params=parse_qsl(query, keep_blank_values=True),
                header_params=header_params,
                body=payload,
                auth_settings=["BearerToken"],
            )
            resp = api_client.call_api(*request)
            try:
                # 先读完响应体，连接才能回到连接池
                data = resp.read()
                if not 200 <= resp.status <= 299:
                    raise ApiException.from_response(
                        http_resp=resp,
                        body=data.decode("utf-8", errors="replace") if data else None,
                        data=None,
                    )
                return data
            finally:
                resp.response.release_conn()

        try:
            return await asyncio.to_thread(_do)
        except Exception as exc:
            self._log_failure("kubernetes.forward_error", exc, method=method, path=path)
            raise _wrap_error("forward request", exc) from exc

    # ---------------------------
    # Client construction
    # ---------------------------

    async def _ensure_client(self) -> ApiClient:
        if self._api_client is not None:
            return self._api_client

        async with self._client_lock:
            if self._api_client is not None:
                return self._api_client

            def _build_client() -> ApiClient:
                configuration = client.Configuration()
                try:
                    if self.settings.in_cluster:
                        config.load_incluster_config(client_configuration=configuration)
                        self._cluster_display_name = "in-cluster"
                    else:
                        config.load_kube_config(
                            config_file=self.settings.kube_config_path,
                            context=self.settings.kube_context,
                            client_configuration=configuration,
                        )
                except ConfigException as exc:
                    self._log.warning("kubernetes.config_missing", error=str(exc))
                    raise ClusterClientError(f"Kubernetes configuration unavailable: {exc}") from exc
                return ApiClient(configuration=configuration)

            try:
                self._api_client = await asyncio.to_thread(_build_client)
            except ClusterClientError:
                raise
            except Exception as exc:
                self._log.warning("kubernetes.config_load_failed", error=str(exc))
                raise ClusterClientError(f"Unable to build Kubernetes client: {exc}") from exc

            self._log.info("kubernetes.client_ready", cluster=self._cluster_display_name)
            return self._api_client

    def _log_failure(self, event: str, exc: Exception, **fields: Any) -> None:
        # Missing optional objects (Route on plain Kubernetes, absent Ingress) are routine
        if isinstance(exc, ApiException) and exc.status == 404:
            self._log.debug(event, status=exc.status, error=str(exc).strip(), **fields)
        else:
            self._log.warning(event, error=str(exc).strip(), **fields)


def _prepare_body(body: bytes, content_type: str | None) -> tuple[Any, str | None]:
    """Return the body and Content-Type to hand to the kubernetes client.

    The client runs ``json.dumps`` on bodies sent without a Content-Type or with
    a JSON one, and only passes str/bytes through for other types. JSON bodies
    are therefore decoded first; an untyped body that is not JSON goes out as
    ``application/octet-stream`` so its bytes are sent unchanged.
    """
    if not body:
        return None, content_type
    if content_type and not contenttype_matches(content_type, "application", "json"):
        return body, content_type
    try:
        return json.loads(body), content_type
    except (ValueError, RecursionError):
        if content_type:
            raise
        return body, "application/octet-stream"
