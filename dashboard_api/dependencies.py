from functools import lru_cache

from dashboard_api.config import get_settings
from dashboard_api.services.endpoints import EndpointService
from dashboard_api.services.kube_client import KubernetesService
from dashboard_api.services.proxy import ProxyService
from dashboard_api.services.versions import VersionService


@lru_cache(maxsize=1)
def _get_kubernetes_service() -> KubernetesService:
    return KubernetesService(get_settings())


def get_kubernetes_service() -> KubernetesService:
    return _get_kubernetes_service()


# Sub-services share the single Kubernetes client wrapper
@lru_cache(maxsize=1)
def get_proxy_service() -> ProxyService:
    return ProxyService(get_kubernetes_service())


@lru_cache(maxsize=1)
def get_endpoint_service() -> EndpointService:
    return EndpointService(get_kubernetes_service(), get_settings())


@lru_cache(maxsize=1)
def get_version_service() -> VersionService:
    return VersionService(get_kubernetes_service(), get_settings())
