"""将图表模型的列引用绑定到当前表格列。

结构不兼容（引用了不存在的列、缺少数值系列）时抛出 ValueError，
由调用方降级为“不显示图表”。
"""

from __future__ import annotations

from typing import Mapping, Optional, Protocol, Sequence

import pandas as pd

from statwidget.charts.builders import ChartData
from statwidget.grid.columns import ChartRole, ColumnDescriptor
from statwidget.models.schemas import ChartModel

# 分组时表格自动生成的分组列
AUTO_GROUP_COLUMN = "ag-Grid-AutoColumn"

_AGG_FUNCS = {
    "sum": "sum",
    "avg": "mean",
    "min": "min",
    "max": "max",
    "count": "count",
    "first": "first",
    "last": "last",
}


class ChartSourceTable(Protocol):
    @property
    def descriptors(self) -> Mapping[str, ColumnDescriptor]: ...

    @property
    def row_group_columns(self) -> Sequence[str]: ...

    def displayed_frame(self) -> pd.DataFrame: ...

    def row_frame(self) -> pd.DataFrame: ...


def _slice_rows(frame: pd.DataFrame, model: ChartModel) -> pd.DataFrame:
    start = model.cell_range.row_start_index
    end = model.cell_range.row_end_index
    if start is None and end is None:
        return frame
    lo = max(start or 0, 0)
    hi = len(frame) if end is None else max(end, lo - 1) + 1
    return frame.iloc[lo:hi]


def _group_label(frame: pd.DataFrame, group_cols: Sequence[str]) -> pd.Series:
    if frame.empty:
        return pd.Series([], index=frame.index, dtype=object)
    parts = frame[list(group_cols)].astype(str)
    return parts.apply(lambda row: " - ".join(row), axis=1)


def _bind_pivot(table: ChartSourceTable) -> ChartData:
    frame = table.displayed_frame().reset_index(drop=True)
    group_cols = [c for c in table.row_group_columns if c in frame.columns]
    series = [
        c
        for c in frame.columns
        if c not in group_cols and pd.to_numeric(frame[c], errors="coerce").notna().any()
    ]
    if not series:
        raise ValueError("透视结果中没有可绘制的数值列")
    category: Optional[str] = None
    if group_cols:
        frame = frame.assign(**{AUTO_GROUP_COLUMN: _group_label(frame, group_cols)})
        category = AUTO_GROUP_COLUMN
    return ChartData(frame=frame, category=category, series=series, series_names={})


def bind_chart_data(table: ChartSourceTable, model: ChartModel) -> ChartData:
    """解析图表模型中的系列/类别引用，返回绑定后的数据。"""
    if model.model_type == "pivot":
        return _bind_pivot(table)

    descriptors = table.descriptors
    referenced = model.cell_range.columns
    if not referenced:
        raise ValueError("图表模型未引用任何列")

    uses_auto_group = AUTO_GROUP_COLUMN in referenced
    columns = [c for c in referenced if c != AUTO_GROUP_COLUMN]
    unknown = [c for c in columns if c not in descriptors]
    if unknown:
        raise ValueError(f"图表引用了不存在的列: {', '.join(unknown)}")

    series = [c for c in columns if descriptors[c].chart_role is ChartRole.SERIES]
    categories = [c for c in columns if descriptors[c].chart_role is ChartRole.CATEGORY]
    names = {c: descriptors[c].header_name or c for c in columns}

    displayed = table.displayed_frame()
    group_cols = [c for c in table.row_group_columns if c in displayed.columns]
    if group_cols and all(c in displayed.columns for c in series):
        frame = _slice_rows(displayed, model).reset_index(drop=True)
    else:
        frame = _slice_rows(table.row_frame(), model).reset_index(drop=True)
        group_cols = []

    category: Optional[str] = None
    if uses_auto_group and group_cols:
        frame = frame.assign(**{AUTO_GROUP_COLUMN: _group_label(frame, group_cols)})
        category = AUTO_GROUP_COLUMN
    elif categories:
        category = categories[0]

    agg = _AGG_FUNCS.get(model.agg_func or "")
    if agg and category and series:
        numeric = frame[[category]].join(frame[series].apply(pd.to_numeric, errors="coerce"))
        frame = numeric.groupby(category, sort=False, dropna=False).agg(agg).reset_index()

    return ChartData(frame=frame, category=category, series=series, series_names=names)
