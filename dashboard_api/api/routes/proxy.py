from fastapi import APIRouter, Depends, Request, Response

from dashboard_api.dependencies import get_proxy_service
from dashboard_api.services.proxy import ProxyService


router = APIRouter(tags=["proxy"])

PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


@router.api_route("/proxy/{subpath:path}", methods=PROXY_METHODS, summary="Forward a request to the API server")
async def proxy_request(
    subpath: str,
    request: Request,
    service: ProxyService = Depends(get_proxy_service),
) -> Response:
    forwarded = await service.proxy_request(
        method=request.method,
        url=str(request.url),
        subpath=subpath,
        body=await request.body(),
        content_type=request.headers.get("content-type"),
    )
    return Response(content=forwarded.body, status_code=forwarded.status, headers={"Content-Type": forwarded.content_type})
