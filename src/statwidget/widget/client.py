"""统计 API 只读客户端。"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from statwidget.config import settings
from statwidget.exceptions import FetchError

logger = logging.getLogger(__name__)


class StatsApiClient:
    """基于 httpx.AsyncClient 的统计 API 客户端。

    不做重试；超时未配置时沿用 httpx 默认值。
    """

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.api_root).rstrip("/")
        self.token = token if token is not None else settings.api_token
        self.timeout = timeout if timeout is not None else settings.request_timeout
        self._transport = transport

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _client_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {}
        if self.timeout is not None:
            kwargs["timeout"] = self.timeout
        if self._transport is not None:
            kwargs["transport"] = self._transport
        return kwargs

    async def fetch(
        self,
        path: str,
        *,
        params: Optional[dict[str, Any]] = None,
        authenticated: bool = True,
    ) -> Any:
        """GET 请求并解析 JSON；网络错误、非 2xx 或非 JSON 响应抛出 FetchError。"""
        headers = {"Accept": "application/json"}
        if authenticated and self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        url = self._url(path)
        try:
            async with httpx.AsyncClient(**self._client_kwargs()) as client:
                resp = await client.get(url, params=params, headers=headers)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.error("请求统计 API 失败: %s (%s)", url, exc)
            raise FetchError(f"Request to {path} failed: {exc}", path=path) from exc

        if not resp.is_success:
            logger.error("统计 API 返回错误状态: %s %s", resp.status_code, url)
            raise FetchError(
                f"Request to {path} failed with status {resp.status_code}",
                status_code=resp.status_code,
                path=path,
            )
        try:
            return resp.json()
        except ValueError as exc:
            logger.error("统计 API 响应不是合法 JSON: %s", url)
            raise FetchError(
                f"Response from {path} is not valid JSON",
                status_code=resp.status_code,
                path=path,
            ) from exc

    async def fetch_public(self, path: str, *, params: Optional[dict[str, Any]] = None) -> Any:
        return await self.fetch(path, params=params, authenticated=False)
