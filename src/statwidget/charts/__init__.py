"""图表能力公共模块。"""

from statwidget.charts.container import ChartContainer, ChartHandle
from statwidget.charts.theme import ChartThemeSpec, build_theme_spec, normalize_theme_name
from statwidget.charts.builders import ChartData, default_builders
from statwidget.charts.binding import bind_chart_data
from statwidget.charts.registry import (
    ChartRegistry,
    get_chart_registry,
    register_chart_capabilities,
)
from statwidget.charts.reconstructor import ChartReconstructor

__all__ = [
    "ChartContainer",
    "ChartData",
    "ChartHandle",
    "ChartReconstructor",
    "ChartRegistry",
    "ChartThemeSpec",
    "bind_chart_data",
    "build_theme_spec",
    "default_builders",
    "get_chart_registry",
    "normalize_theme_name",
    "register_chart_capabilities",
]
