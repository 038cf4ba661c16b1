"""
组件异常定义。
"""
from typing import Optional


class WidgetError(Exception):
    """组件基础异常。"""

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class FetchError(WidgetError):
    """统计 API 请求失败（网络错误或非成功响应）。"""

    def __init__(
        self,
        detail: str = "Request failed",
        *,
        status_code: Optional[int] = None,
        path: Optional[str] = None,
    ):
        super().__init__(detail)
        self.status_code = status_code
        self.path = path


class InvalidEntryError(WidgetError):
    """嵌入参数既不是 statId+graphId 也不是 token。"""

    def __init__(self, detail: str = "statId and graphId or token parameters are required"):
        super().__init__(detail)
