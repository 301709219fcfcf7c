from typing import Any, Dict, Optional
import uuid

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException


logger = structlog.get_logger(__name__)


class AppException(Exception):
    """统一应用异常基类，便于在业务层抛出标准化错误。"""

    def __init__(self, message: str, *, status_code: int = 400, code: str = "APP_ERROR", details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details or {}


class ProxyError(AppException):
    """转发请求失败（URL 解析或后端调用出错），以 404 返回底层错误信息。"""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=404, code="PROXY_ERROR")


class ClusterLookupError(AppException):
    """集群对象查询失败。对调用方只暴露通用错误，不说明具体是哪个数据源。"""

    def __init__(self, message: str = "Unable to retrieve cluster information") -> None:
        super().__init__(message, status_code=500, code="CLUSTER_LOOKUP_ERROR")


class ClusterClientError(AppException):
    """Raised by KubernetesService when the client cannot be built or a call fails."""

    def __init__(self, message: str, *, reason: Optional[str] = None, status: Optional[int] = None) -> None:
        super().__init__(message, status_code=500, code="CLUSTER_CLIENT_ERROR")
        self.reason = reason
        self.status = status

    @property
    def not_found(self) -> bool:
        return self.status == 404


def _build_error_payload(
    *,
    message: str,
    status_code: int,
    code: str = "APP_ERROR",
    details: Optional[Dict[str, Any]] = None,
    request_id: Optional[str] = None,
) -> Dict[str, Any]:
    """构建标准化错误响应载荷。
    """
    rid = request_id or str(uuid.uuid4())
    payload: Dict[str, Any] = {
        "success": False,
        "error": {
            "message": message,
            "code": code,
            **({"details": details} if details else {}),
        },
        "request_id": rid,
        "status_code": status_code,
    }
    return payload


def register_exception_handlers(app: FastAPI) -> None:
    """注册全局异常处理器，统一错误响应格式。"""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
        req_id = getattr(request.state, "request_id", None) or str(uuid.uuid4())
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        payload = _build_error_payload(
            message=message,
            status_code=exc.status_code,
            code="HTTP_ERROR",
            request_id=req_id,
        )
        logger.warning(
            "http.exception",
            status=exc.status_code,
            path=request.url.path,
            request_id=req_id,
        )
        return JSONResponse(status_code=exc.status_code, content=payload, headers={"X-Request-ID": req_id})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
        req_id = getattr(request.state, "request_id", None) or str(uuid.uuid4())
        errors = exc.errors()
        payload = _build_error_payload(
            message="Request validation failed",
            status_code=422,
            code="VALIDATION_ERROR",
            details={"errors": errors},
            request_id=req_id,
        )
        logger.info("http.validation_error", path=request.url.path, errors=len(errors), request_id=req_id)
        return JSONResponse(status_code=422, content=payload, headers={"X-Request-ID": req_id})

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):  # type: ignore[override]
        req_id = getattr(request.state, "request_id", None) or str(uuid.uuid4())
        payload = _build_error_payload(
            message=exc.message,
            status_code=exc.status_code,
            code=exc.code,
            details=exc.details,
            request_id=req_id,
        )
        logger.warning(
            "http.app_exception",
            status=exc.status_code,
            code=exc.code,
            path=request.url.path,
            request_id=req_id,
        )
        return JSONResponse(status_code=exc.status_code, content=payload, headers={"X-Request-ID": req_id})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):  # type: ignore[override]
        req_id = getattr(request.state, "request_id", None) or str(uuid.uuid4())
        logger.exception("http.unhandled_exception", path=request.url.path, request_id=req_id)
        payload = _build_error_payload(
            message="Internal server error",
            status_code=500,
            code="INTERNAL_SERVER_ERROR",
            request_id=req_id,
        )
        return JSONResponse(status_code=500, content=payload, headers={"X-Request-ID": req_id})
