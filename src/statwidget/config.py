"""应用配置，基于 Pydantic Settings。"""

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

# 项目根目录（pyproject.toml 所在位置）
_ROOT = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """全局配置，支持 .env 文件和环境变量。"""

    model_config = SettingsConfigDict(
        env_file=str(_ROOT / ".env"),
        env_file_encoding="utf-8",
        env_prefix="STATWIDGET_",
        extra="ignore",
    )

    # ---- 基础 ----
    app_name: str = "Stat Widget"
    debug: bool = False

    # ---- 统计 API ----
    api_base_url: str = "http://localhost:8080"
    api_token: Optional[str] = None
    # None 表示沿用 httpx 的默认超时
    request_timeout: Optional[float] = None
    stat_path: str = "v1/stats/{stat_id}"
    graphs_path: str = "v1/stats/graphs"
    snapshot_path: str = "v1/newsletter/snapshots/{token}"
    table_snapshot_path: str = "v1/reporting/snapshots/{token}"

    # ---- 表格 ----
    table_available_width: int = 1200  # 像素，自动适配列宽时可分配的总宽度
    table_min_column_width: int = 60
    table_page_size: int = 20

    # ---- 图表 ----
    chart_settle_delay_ms: int = 100  # 首次渲染后等待表格布局稳定再恢复图表
    chart_default_theme: str = "ag-default"
    plotly_js_source: str = "cdn"  # cdn|inline|none

    # ---- 派生属性 ----
    @property
    def chart_settle_delay(self) -> float:
        return max(self.chart_settle_delay_ms, 0) / 1000.0

    @property
    def api_root(self) -> str:
        return self.api_base_url.rstrip("/")


# 全局单例
settings = Settings()
