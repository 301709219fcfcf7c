from unittest.mock import MagicMock

import pytest
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException
from structlog.testing import capture_logs

from conftest import make_ingress
from dashboard_api.exceptions import ClusterClientError
from dashboard_api.services import kube_client
from dashboard_api.services.endpoints import EndpointService
from dashboard_api.services.kube_client import KubernetesService


def _service(settings, api_client=None):
    return KubernetesService(settings, api_client=api_client or MagicMock())


def _api_client(status=200, data=b"", reason="OK"):
    api_client = MagicMock()
    api_client.param_serialize.return_value = ("GET", "https://cluster.local/api", {}, None, None)
    resp = MagicMock(status=status, reason=reason)
    resp.read.return_value = data
    resp.getheaders.return_value = {}
    api_client.call_api.return_value = resp
    return api_client


class TestForward:
    @pytest.mark.asyncio
    async def test_preserves_method_path_and_query(self, settings):
        api_client = _api_client(data=b'{"kind": "PodList"}')
        service = _service(settings, api_client)

        body = await service.forward("GET", "api/v1/pods", "watch=false&labelSelector=app%3Dx")

        assert body == b'{"kind": "PodList"}'
        kwargs = api_client.param_serialize.call_args.kwargs
        assert kwargs["method"] == "GET"
        assert kwargs["resource_path"] == "/api/v1/pods"
        assert kwargs["query_params"] == [("watch", "false"), ("labelSelector", "app=x")]
        assert kwargs["header_params"] == {}
        assert kwargs["body"] is None
        api_client.call_api.assert_called_once_with(*api_client.param_serialize.return_value)
        api_client.call_api.return_value.response.release_conn.assert_called_once()

    @pytest.mark.asyncio
    async def test_copies_content_type_and_body(self, settings):
        api_client = _api_client(data=b"{}")
        service = _service(settings, api_client)

        await service.forward(
            "post",
            "apis/tekton.dev/v1beta1/namespaces/tekton/pipelineruns",
            "",
            b'{"metadata": {"generateName": "run-"}}',
            "application/json",
        )

        kwargs = api_client.param_serialize.call_args.kwargs
        assert kwargs["method"] == "POST"
        assert kwargs["resource_path"] == "/apis/tekton.dev/v1beta1/namespaces/tekton/pipelineruns"
        assert kwargs["header_params"] == {"Content-Type": "application/json"}
        assert kwargs["body"] == {"metadata": {"generateName": "run-"}}

    @pytest.mark.asyncio
    async def test_non_json_body_is_sent_raw(self, settings):
        api_client = _api_client()
        service = _service(settings, api_client)

        await service.forward("PUT", "api/v1/namespaces/tekton/configmaps/x", "", b"key: value", "application/yaml")

        kwargs = api_client.param_serialize.call_args.kwargs
        assert kwargs["body"] == b"key: value"
        assert kwargs["header_params"] == {"Content-Type": "application/yaml"}

    @pytest.mark.asyncio
    async def test_untyped_json_body_is_decoded(self, settings):
        api_client = _api_client()
        service = _service(settings, api_client)

        await service.forward("PATCH", "api/v1/namespaces/tekton/pods/p", "", b'{"metadata": {}}')

        kwargs = api_client.param_serialize.call_args.kwargs
        assert kwargs["body"] == {"metadata": {}}
        assert kwargs["header_params"] == {}

    @pytest.mark.asyncio
    async def test_untyped_non_json_body_is_sent_as_octet_stream(self, settings):
        api_client = _api_client()
        service = _service(settings, api_client)

        await service.forward("POST", "api/v1/namespaces/tekton/pods/p/exec", "", b"echo hello\n")

        kwargs = api_client.param_serialize.call_args.kwargs
        assert kwargs["body"] == b"echo hello\n"
        assert kwargs["header_params"] == {"Content-Type": "application/octet-stream"}

    @pytest.mark.asyncio
    async def test_malformed_json_body_is_client_error(self, settings):
        api_client = _api_client()
        service = _service(settings, api_client)

        with pytest.raises(ClusterClientError):
            await service.forward("POST", "api/v1/namespaces", "", b'{"kind": ', "application/json")

        api_client.call_api.assert_not_called()

    @pytest.mark.asyncio
    async def test_error_status_is_wrapped_and_connection_released(self, settings):
        api_client = _api_client(status=404, reason="Not Found", data=b'{"kind": "Status", "code": 404}')
        service = _service(settings, api_client)

        with pytest.raises(ClusterClientError) as exc_info:
            await service.forward("GET", "api/v1/nope")

        assert exc_info.value.not_found
        assert "Not Found" in exc_info.value.message
        resp = api_client.call_api.return_value
        resp.read.assert_called_once()
        resp.response.release_conn.assert_called_once()

    @pytest.mark.asyncio
    async def test_transport_error_is_wrapped(self, settings):
        api_client = _api_client()
        api_client.call_api.side_effect = ApiException(status=0, reason="Connection refused")
        service = _service(settings, api_client)

        with pytest.raises(ClusterClientError) as exc_info:
            await service.forward("GET", "api/v1/pods")

        assert "Connection refused" in exc_info.value.message


class TestLookups:
    @pytest.mark.asyncio
    async def test_read_route_uses_openshift_custom_object(self, settings, monkeypatch):
        custom_api = MagicMock()
        custom_api.get_namespaced_custom_object.return_value = {"spec": {"host": "route.example.com"}}
        monkeypatch.setattr(kube_client.client, "CustomObjectsApi", lambda api_client: custom_api)

        route = await _service(settings).read_route("tekton", "tekton-dashboard")

        assert route == {"spec": {"host": "route.example.com"}}
        custom_api.get_namespaced_custom_object.assert_called_once_with(
            group="route.openshift.io",
            version="v1",
            namespace="tekton",
            plural="routes",
            name="tekton-dashboard",
        )

    @pytest.mark.asyncio
    async def test_read_ingress_not_found(self, settings, monkeypatch):
        networking = MagicMock()
        networking.read_namespaced_ingress.side_effect = ApiException(status=404, reason="Not Found")
        monkeypatch.setattr(kube_client.client, "NetworkingV1Api", lambda api_client: networking)

        with pytest.raises(ClusterClientError) as exc_info:
            await _service(settings).read_ingress("tekton", "tekton-dashboard")

        assert exc_info.value.status == 404

    @pytest.mark.asyncio
    async def test_missing_route_is_not_a_warning(self, settings, monkeypatch):
        custom_api = MagicMock()
        custom_api.get_namespaced_custom_object.side_effect = ApiException(status=404, reason="Not Found")
        networking = MagicMock()
        networking.read_namespaced_ingress.return_value = make_ingress("ingress.example.com")
        monkeypatch.setattr(kube_client.client, "CustomObjectsApi", lambda api_client: custom_api)
        monkeypatch.setattr(kube_client.client, "NetworkingV1Api", lambda api_client: networking)
        service = EndpointService(_service(settings), settings)

        with capture_logs() as logs:
            entries = await service.get_endpoints("tekton")

        assert [(entry.type, entry.url) for entry in entries] == [("Ingress", "ingress.example.com")]
        assert [entry for entry in logs if entry["log_level"] in ("warning", "error")] == []
        route_logs = [entry for entry in logs if entry["event"] == "kubernetes.read_route_error"]
        assert route_logs and route_logs[0]["log_level"] == "debug"

    @pytest.mark.asyncio
    async def test_lookup_failure_other_than_not_found_is_a_warning(self, settings, monkeypatch):
        apps = MagicMock()
        apps.list_namespaced_deployment.side_effect = ApiException(status=403, reason="Forbidden")
        monkeypatch.setattr(kube_client.client, "AppsV1Api", lambda api_client: apps)

        with capture_logs() as logs, pytest.raises(ClusterClientError):
            await _service(settings).list_deployments("tekton-pipelines", "app=controller")

        assert [(entry["event"], entry["log_level"]) for entry in logs] == [("kubernetes.list_deployments_error", "warning")]

    @pytest.mark.asyncio
    async def test_list_deployments_passes_selector(self, settings, monkeypatch):
        apps = MagicMock()
        apps.list_namespaced_deployment.return_value = MagicMock(items=["a", "b"])
        monkeypatch.setattr(kube_client.client, "AppsV1Api", lambda api_client: apps)

        items = await _service(settings).list_deployments("tekton-pipelines", "app=controller")

        assert items == ["a", "b"]
        apps.list_namespaced_deployment.assert_called_once_with(namespace="tekton-pipelines", label_selector="app=controller")


class TestClientConstruction:
    @pytest.mark.asyncio
    async def test_missing_kubeconfig_raises_client_error(self, settings, monkeypatch):
        def _fail(**kwargs):
            raise ConfigException("Invalid kube-config file. No configuration found.")

        monkeypatch.setattr(kube_client.config, "load_kube_config", _fail)
        service = KubernetesService(settings)

        with pytest.raises(ClusterClientError) as exc_info:
            await service.list_deployments("tekton", "app=tekton-dashboard")

        assert "No configuration found" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_in_cluster_config(self, settings, monkeypatch):
        seen = {}

        def _load(client_configuration=None):
            seen["configuration"] = client_configuration

        monkeypatch.setattr(kube_client.config, "load_incluster_config", _load)
        service = KubernetesService(settings.model_copy(update={"in_cluster": True}))

        api_client = await service._ensure_client()

        assert api_client.configuration is seen["configuration"]
        assert await service._ensure_client() is api_client
