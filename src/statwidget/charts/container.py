"""图表容器与图表句柄。"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, cast

import plotly.graph_objects as go
from plotly.utils import PlotlyJSONEncoder


@dataclass
class ChartHandle:
    """恢复成功的图表。"""

    chart_id: str
    chart_type: str
    figure: go.Figure

    def to_dict(self) -> dict[str, Any]:
        """将 Figure 转换为 JSON 可序列化字典。"""
        payload = json.loads(json.dumps(self.figure, cls=PlotlyJSONEncoder))
        return cast(dict[str, Any], payload) if isinstance(payload, dict) else {}

    def to_html(self, include_plotlyjs: Any = "cdn") -> str:
        return self.figure.to_html(
            full_html=False,
            include_plotlyjs=include_plotlyjs,
            div_id=f"chart-{self.chart_id}",
        )


@dataclass
class ChartContainer:
    """承载图表的容器。恢复前必须清空，避免重复挂载。"""

    element_id: str = "chart-container"
    children: list[Any] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.children

    def clear(self) -> None:
        self.children.clear()

    def mount(self, child: Any) -> None:
        self.children.append(child)

    @property
    def chart(self) -> ChartHandle | None:
        for child in self.children:
            if isinstance(child, ChartHandle):
                return child
        return None
