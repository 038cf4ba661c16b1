"""数据模型模块。"""

from statwidget.models.schemas import (
    CellRange,
    ChartModel,
    ColumnInfo,
    ColumnStateEntry,
    ViewState,
    WidgetStatusResponse,
)

__all__ = [
    "CellRange",
    "ChartModel",
    "ColumnInfo",
    "ColumnStateEntry",
    "ViewState",
    "WidgetStatusResponse",
]
