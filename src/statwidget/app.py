"""FastAPI 应用工厂。

一个进程同时提供：
- 可嵌入的组件页面（/widget）
- 组件状态与健康检查 API（/api/*）
"""

from __future__ import annotations

import logging
import secrets
from contextlib import asynccontextmanager
from typing import Awaitable, Callable

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import Response

from statwidget.charts.registry import register_chart_capabilities
from statwidget.config import settings

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期：启动/关闭时执行。"""
    # 启动
    configure_logging()
    logger.info("%s 启动中 ...", settings.app_name)

    # 图表能力只需注册一次
    registry = register_chart_capabilities()
    logger.info("统计 API: %s，图表类型 %d 种", settings.api_root, len(registry.list_chart_types()))

    yield

    # 关闭
    logger.info("%s 关闭中 ...", settings.app_name)


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例。"""
    app = FastAPI(
        title=settings.app_name,
        version="0.1.0",
        lifespan=lifespan,
    )

    # 组件嵌入在第三方页面中，允许所有来源
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request ID 中间件：为每个请求生成唯一标识
    @app.middleware("http")
    async def request_id_middleware(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        # 优先使用客户端传入的 X-Request-ID，否则生成新的
        request_id = request.headers.get("X-Request-ID") or secrets.token_hex(8)
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    from statwidget.api.routes import page_router
    from statwidget.api.routes import router as http_router

    app.include_router(http_router)
    app.include_router(page_router)
    return app
