"""HTTP 端点（组件页面、组件状态、健康检查）。"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import HTMLResponse

from statwidget.config import settings
from statwidget.exceptions import InvalidEntryError
from statwidget.models.schemas import WidgetStatusResponse
from statwidget.widget import create_widget_controller
from statwidget.widget.client import StatsApiClient
from statwidget.widget.controller import WidgetController
from statwidget.widget.render import render_page
from statwidget.widget.routing import WidgetIdentifier

router = APIRouter(prefix="/api")
page_router = APIRouter()
logger = logging.getLogger(__name__)


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization") or ""
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return settings.api_token


def _identifier_or_400(request: Request) -> WidgetIdentifier:
    try:
        return WidgetIdentifier.from_params(request.query_params)
    except InvalidEntryError as exc:
        raise HTTPException(status_code=400, detail=exc.detail) from exc


async def _load_widget(request: Request, identifier: WidgetIdentifier) -> WidgetController:
    controller = create_widget_controller(StatsApiClient(token=_bearer_token(request)))
    await controller.load(identifier)
    await controller.wait_for_chart()
    return controller


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/widget", response_model=WidgetStatusResponse)
async def widget_status(request: Request) -> WidgetStatusResponse:
    """以 JSON 返回组件装载结果。"""
    identifier = _identifier_or_400(request)
    controller = await _load_widget(request, identifier)
    try:
        return controller.status()
    finally:
        controller.dispose()


@page_router.get("/widget", response_class=HTMLResponse)
async def widget_page(request: Request, page: int = 0) -> HTMLResponse:
    """渲染可嵌入的组件页面。"""
    identifier = _identifier_or_400(request)
    controller = await _load_widget(request, identifier)
    try:
        html = render_page(controller.view, controller.chart, page=page)
    finally:
        controller.dispose()
    return HTMLResponse(content=html, status_code=200)
