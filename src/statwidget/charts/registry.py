"""图表能力注册中心。

注册是进程级副作用，只需在创建任何组件实例之前执行一次；
``register_chart_capabilities`` 可重复调用，始终返回同一个注册中心。
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from statwidget.charts.binding import ChartSourceTable, bind_chart_data
from statwidget.charts.builders import ChartBuilder, default_builders
from statwidget.charts.container import ChartContainer, ChartHandle
from statwidget.charts.theme import apply_plotly_theme, build_theme_spec
from statwidget.models.schemas import ChartModel

logger = logging.getLogger(__name__)


class ChartRegistry:
    """管理图表类型到构建函数的映射，并负责按模型恢复图表。"""

    def __init__(self):
        self._builders: dict[str, ChartBuilder] = {}

    def register(self, chart_type: str, builder: ChartBuilder) -> None:
        if chart_type in self._builders:
            logger.warning("图表类型 %s 已注册，将被覆盖", chart_type)
        self._builders[chart_type] = builder

    def get(self, chart_type: str) -> Optional[ChartBuilder]:
        return self._builders.get(chart_type)

    def list_chart_types(self) -> list[str]:
        return sorted(self._builders)

    def restore(
        self,
        table: ChartSourceTable,
        chart_model: ChartModel,
        container: ChartContainer,
    ) -> Optional[ChartHandle]:
        """恢复图表并挂载到容器；模型与当前列不兼容时返回 None。"""
        builder = self.get(chart_model.chart_type)
        if builder is None:
            logger.warning("不支持的图表类型: %s", chart_model.chart_type)
            return None

        try:
            data = bind_chart_data(table, chart_model)
            figure = builder(data)
        except ValueError as exc:
            logger.warning("图表模型与当前数据不兼容: %s", exc)
            return None

        spec = build_theme_spec(chart_model.chart_theme_name)
        apply_plotly_theme(figure, spec, chart_model.title())
        handle = ChartHandle(
            chart_id=chart_model.chart_id or uuid.uuid4().hex[:12],
            chart_type=chart_model.chart_type,
            figure=figure,
        )
        container.mount(handle)
        return handle


_registry: Optional[ChartRegistry] = None


def register_chart_capabilities() -> ChartRegistry:
    """注册默认图表能力（幂等）。"""
    global _registry
    if _registry is not None:
        return _registry
    registry = ChartRegistry()
    for chart_type, builder in default_builders().items():
        registry.register(chart_type, builder)
    _registry = registry
    logger.info("已注册 %d 种图表类型", len(registry.list_chart_types()))
    return registry


def get_chart_registry() -> ChartRegistry:
    if _registry is None:
        raise RuntimeError("图表能力尚未注册，请先调用 register_chart_capabilities()")
    return _registry
