"""测试初始化。"""

from __future__ import annotations

import sys
import warnings
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

# Python 3.12 下在部分测试组合中会出现偶发的 asyncio 事件循环析构告警，
# 不影响功能正确性，统一在测试入口忽略该类噪声。
warnings.filterwarnings(
    "ignore",
    category=ResourceWarning,
    message=r"unclosed event loop .*",
)

from statwidget.config import settings  # noqa: E402


@pytest.fixture(autouse=True)
def _test_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    """统一测试配置：固定 API 地址，图表恢复不等待。"""
    monkeypatch.setattr(settings, "api_base_url", "http://stats.test")
    monkeypatch.setattr(settings, "api_token", "test-token")
    monkeypatch.setattr(settings, "request_timeout", None)
    monkeypatch.setattr(settings, "chart_settle_delay_ms", 0)
    monkeypatch.setattr(settings, "chart_default_theme", "ag-default")
    monkeypatch.setattr(settings, "table_available_width", 1200)
    monkeypatch.setattr(settings, "table_min_column_width", 60)
    monkeypatch.setattr(settings, "table_page_size", 20)
