"""测试客户端工具：无 TestClient 依赖的 HTTP 访问。"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx


class LocalASGIClient:
    """同步 HTTP 测试客户端（基于 httpx + ASGITransport）。"""

    def __init__(self, app: Any):
        self._app = app

    def __enter__(self) -> LocalASGIClient:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        return None

    def close(self) -> None:
        return None

    def request(self, method: str, url: str, **kwargs):
        async def _run():
            transport = httpx.ASGITransport(app=self._app)
            async with httpx.AsyncClient(
                transport=transport,
                base_url="http://testserver",
            ) as client:
                response = await client.request(method, url, **kwargs)
                await response.aread()
                return response

        return asyncio.run(_run())

    def get(self, url: str, **kwargs):
        return self.request("GET", url, **kwargs)
