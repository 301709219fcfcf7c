import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.router import api_router
from .config import get_settings
from .core.logging import get_logger, setup_logging
from .core.request_context import request_id_var
from .exceptions import register_exception_handlers


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logger = get_logger(__name__)
    settings = get_settings()
    logger.info(
        "app.startup",
        env=settings.app_env,
        install_namespace=settings.installed_namespace,
        in_cluster=settings.in_cluster,
    )
    yield
    logger.info("app.shutdown")


# 日志初始化需尽早执行
setup_logging()

settings = get_settings()

app = FastAPI(
    title="Dashboard API",
    description="Cluster API proxy and dashboard metadata",
    version="1.0.0",
    lifespan=lifespan,
)


@app.middleware("http")
async def request_id_middleware(request, call_next):
    start = time.perf_counter()
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    token = request_id_var.set(request_id)
    try:
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        get_logger("dashboard_api.access").debug(
            "http.request",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return response
    finally:
        request_id_var.reset(token)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(api_router)


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
