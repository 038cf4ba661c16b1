"""嵌入式报表组件。"""

from __future__ import annotations

from typing import Any, Optional

from statwidget.charts.registry import register_chart_capabilities
from statwidget.widget.client import StatsApiClient
from statwidget.widget.controller import WidgetController, WidgetState, WidgetView
from statwidget.widget.routing import EntryKind, WidgetIdentifier, select_entry


def create_widget_controller(
    client: Optional[StatsApiClient] = None,
    **kwargs: Any,
) -> WidgetController:
    """创建组件实例；首次调用时注册图表能力。"""
    register_chart_capabilities()
    return WidgetController(client, **kwargs)


__all__ = [
    "EntryKind",
    "StatsApiClient",
    "WidgetController",
    "WidgetIdentifier",
    "WidgetState",
    "WidgetView",
    "create_widget_controller",
    "select_entry",
]
