from fastapi import APIRouter

from dashboard_api.api.routes import about, endpoints, proxy

api_router = APIRouter()
api_router.include_router(proxy.router)
api_router.include_router(endpoints.router)
api_router.include_router(about.router)
