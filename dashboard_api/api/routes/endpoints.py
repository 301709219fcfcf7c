from fastapi import APIRouter, Depends, Query

from dashboard_api.config import Settings, get_settings
from dashboard_api.dependencies import get_endpoint_service
from dashboard_api.schemas.dashboard import EndpointEntry
from dashboard_api.services.endpoints import EndpointService


router = APIRouter(tags=["endpoints"])


def _namespace(namespace: str | None, settings: Settings) -> str:
    return namespace or settings.installed_namespace


@router.get("/ingress", response_model=str, summary="Host of the dashboard Ingress")
async def get_ingress(
    namespace: str | None = Query(default=None),
    settings: Settings = Depends(get_settings),
    service: EndpointService = Depends(get_endpoint_service),
) -> str:
    return await service.get_ingress(_namespace(namespace, settings))


@router.get("/endpoints", response_model=list[EndpointEntry], summary="Route and Ingress hosts of the dashboard")
async def get_endpoints(
    namespace: str | None = Query(default=None),
    settings: Settings = Depends(get_settings),
    service: EndpointService = Depends(get_endpoint_service),
) -> list[EndpointEntry]:
    return await service.get_endpoints(_namespace(namespace, settings))
