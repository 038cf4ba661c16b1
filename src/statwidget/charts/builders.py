"""按图表类型构建 Plotly Figure。"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

import pandas as pd
import plotly.graph_objects as go


@dataclass
class ChartData:
    """绑定到表格列后的图表数据。"""

    frame: pd.DataFrame
    category: Optional[str]
    series: list[str]
    series_names: dict[str, str]

    def categories(self) -> list[object]:
        if self.category is None:
            return list(range(1, len(self.frame) + 1))
        return self.frame[self.category].tolist()

    def values(self, column: str) -> list[object]:
        return pd.to_numeric(self.frame[column], errors="coerce").tolist()

    def name(self, column: str) -> str:
        return self.series_names.get(column, column)


ChartBuilder = Callable[[ChartData], go.Figure]


def _require_series(data: ChartData, count: int, chart_type: str) -> None:
    if len(data.series) < count:
        raise ValueError(f"{chart_type} 至少需要 {count} 个数值系列")


def _bar_builder(horizontal: bool, barmode: str, normalized: bool = False) -> ChartBuilder:
    def build(data: ChartData) -> go.Figure:
        _require_series(data, 1, "bar")
        fig = go.Figure()
        categories = data.categories()
        for column in data.series:
            values = data.values(column)
            if horizontal:
                fig.add_trace(go.Bar(x=values, y=categories, name=data.name(column), orientation="h"))
            else:
                fig.add_trace(go.Bar(x=categories, y=values, name=data.name(column)))
        fig.update_layout(barmode=barmode)
        if normalized:
            fig.update_layout(barnorm="percent")
        return fig

    return build


def _line(data: ChartData) -> go.Figure:
    _require_series(data, 1, "line")
    fig = go.Figure()
    categories = data.categories()
    for column in data.series:
        fig.add_trace(
            go.Scatter(x=categories, y=data.values(column), name=data.name(column), mode="lines+markers")
        )
    return fig


def _area_builder(stacked: bool, normalized: bool = False) -> ChartBuilder:
    def build(data: ChartData) -> go.Figure:
        _require_series(data, 1, "area")
        fig = go.Figure()
        categories = data.categories()
        for column in data.series:
            trace = go.Scatter(x=categories, y=data.values(column), name=data.name(column), mode="lines")
            if stacked:
                trace.stackgroup = "one"
                if normalized:
                    trace.groupnorm = "percent"
            else:
                trace.fill = "tozeroy"
            fig.add_trace(trace)
        return fig

    return build


def _scatter(data: ChartData) -> go.Figure:
    # 第一个系列作为 X 轴
    _require_series(data, 2, "scatter")
    x_col, *y_cols = data.series
    text = data.frame[data.category].astype(str).tolist() if data.category else None
    fig = go.Figure()
    for column in y_cols:
        fig.add_trace(
            go.Scatter(
                x=data.values(x_col),
                y=data.values(column),
                name=data.name(column),
                mode="markers",
                text=text,
            )
        )
    fig.update_xaxes(title_text=data.name(x_col))
    return fig


def _bubble(data: ChartData) -> go.Figure:
    _require_series(data, 3, "bubble")
    x_col, y_col, size_col = data.series[:3]
    sizes = pd.to_numeric(data.frame[size_col], errors="coerce").fillna(0)
    peak = float(sizes.max()) if len(sizes) else 0.0
    scaled = (sizes / peak * 40 + 6).tolist() if peak > 0 else [10] * len(sizes)
    fig = go.Figure(
        go.Scatter(
            x=data.values(x_col),
            y=data.values(y_col),
            mode="markers",
            marker={"size": scaled},
            name=data.name(y_col),
            text=data.frame[data.category].astype(str).tolist() if data.category else None,
        )
    )
    fig.update_xaxes(title_text=data.name(x_col))
    fig.update_yaxes(title_text=data.name(y_col))
    return fig


def _pie_builder(hole: float) -> ChartBuilder:
    def build(data: ChartData) -> go.Figure:
        _require_series(data, 1, "pie")
        column = data.series[0]
        return go.Figure(
            go.Pie(
                labels=[str(c) for c in data.categories()],
                values=data.values(column),
                name=data.name(column),
                hole=hole,
            )
        )

    return build


def _histogram(data: ChartData) -> go.Figure:
    _require_series(data, 1, "histogram")
    column = data.series[0]
    return go.Figure(go.Histogram(x=data.values(column), name=data.name(column)))


def default_builders() -> dict[str, ChartBuilder]:
    """表格图表类型 → 构建函数。"""
    return {
        "column": _bar_builder(False, "group"),
        "groupedColumn": _bar_builder(False, "group"),
        "stackedColumn": _bar_builder(False, "relative"),
        "normalizedColumn": _bar_builder(False, "relative", normalized=True),
        "bar": _bar_builder(True, "group"),
        "groupedBar": _bar_builder(True, "group"),
        "stackedBar": _bar_builder(True, "relative"),
        "normalizedBar": _bar_builder(True, "relative", normalized=True),
        "line": _line,
        "area": _area_builder(False),
        "stackedArea": _area_builder(True),
        "normalizedArea": _area_builder(True, normalized=True),
        "scatter": _scatter,
        "bubble": _bubble,
        "pie": _pie_builder(0.0),
        "donut": _pie_builder(0.5),
        "doughnut": _pie_builder(0.5),
        "histogram": _histogram,
    }
