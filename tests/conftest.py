from datetime import datetime, timezone

import pytest
from kubernetes import client

from dashboard_api.config import Settings


class FakeKubernetesService:
    """In-memory stand-in for KubernetesService that records every call."""

    def __init__(
        self,
        ingress=None,
        route=None,
        deployments=None,
        forward_body=b"{}",
        ingress_error=None,
        route_error=None,
        list_error=None,
        forward_error=None,
    ):
        self.ingress = ingress
        self.route = route
        self.deployments = deployments or []
        self.forward_body = forward_body
        self.ingress_error = ingress_error
        self.route_error = route_error
        self.list_error = list_error
        self.forward_error = forward_error
        self.calls = []

    async def read_ingress(self, namespace, name):
        self.calls.append(("read_ingress", namespace, name))
        if self.ingress_error:
            raise self.ingress_error
        return self.ingress

    async def read_route(self, namespace, name):
        self.calls.append(("read_route", namespace, name))
        if self.route_error:
            raise self.route_error
        return self.route

    async def list_deployments(self, namespace, label_selector):
        self.calls.append(("list_deployments", namespace, label_selector))
        if self.list_error:
            raise self.list_error
        return self.deployments

    async def forward(self, method, path, query="", body=b"", content_type=None):
        self.calls.append(("forward", method, path, query, body, content_type))
        if self.forward_error:
            raise self.forward_error
        return self.forward_body


def make_ingress(*hosts):
    rules = [client.V1IngressRule(host=host) for host in hosts]
    return client.V1Ingress(
        metadata=client.V1ObjectMeta(name="tekton-dashboard", namespace="tekton"),
        spec=client.V1IngressSpec(rules=rules),
    )


def make_route(host):
    return {
        "apiVersion": "route.openshift.io/v1",
        "kind": "Route",
        "metadata": {"name": "tekton-dashboard", "namespace": "tekton"},
        "spec": {"host": host},
    }


def make_deployment(
    name="controller",
    labels=None,
    annotations=None,
    image="busybox:1.36",
    created=None,
):
    return client.V1Deployment(
        metadata=client.V1ObjectMeta(name=name, labels=labels, creation_timestamp=created),
        spec=client.V1DeploymentSpec(
            selector=client.V1LabelSelector(match_labels={"app": name}),
            template=client.V1PodTemplateSpec(
                metadata=client.V1ObjectMeta(annotations=annotations),
                spec=client.V1PodSpec(containers=[client.V1Container(name=name, image=image)]),
            ),
        ),
    )


def ts(day):
    return datetime(2024, 1, day, tzinfo=timezone.utc)


@pytest.fixture
def settings(monkeypatch):
    monkeypatch.delenv("INSTALLED_NAMESPACE", raising=False)
    return Settings(_env_file=None, installed_namespace="tekton")
