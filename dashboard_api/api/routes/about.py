from fastapi import APIRouter, Depends

from dashboard_api.dependencies import get_version_service
from dashboard_api.schemas.dashboard import Properties
from dashboard_api.services.versions import VersionService


router = APIRouter(tags=["about"])


@router.get("/properties", response_model=Properties, summary="Install properties")
async def get_properties(service: VersionService = Depends(get_version_service)) -> Properties:
    return service.get_properties()


@router.get("/dashboard-version", response_model=str, summary="Installed dashboard version")
async def get_dashboard_version(service: VersionService = Depends(get_version_service)) -> str:
    return await service.get_dashboard_version()


@router.get("/pipeline-version", response_model=str, summary="Installed pipelines version")
async def get_pipeline_version(service: VersionService = Depends(get_version_service)) -> str:
    return await service.get_pipeline_version()
