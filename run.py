#!/usr/bin/env python3
"""
Dashboard API server
启动FastAPI服务器
"""

import uvicorn
from dotenv import load_dotenv

# 加载环境变量
load_dotenv()

from dashboard_api.config import get_settings
from dashboard_api.core.logging import setup_logging

# 使用应用自身的统一日志配置，避免 uvicorn 默认 log_config 覆盖
setup_logging()

settings = get_settings()

if __name__ == "__main__":
    uvicorn.run(
        "dashboard_api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_debug,
        log_level=settings.log_level.lower(),
        log_config=None,
    )
