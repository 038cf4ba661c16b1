"""视图状态应用：按固定顺序将持久化的交互配置重放到新装载的表格上。

顺序：透视模式 → 筛选 → 行分组 → 透视列 → 聚合列 → 列状态（或自动适配列宽）。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Mapping, Optional

from statwidget.grid.columns import ColumnDescriptor, ColumnType
from statwidget.grid.filters import normalize_date_filters
from statwidget.models.schemas import ViewState

if TYPE_CHECKING:
    from statwidget.grid.table import TableHandle

logger = logging.getLogger(__name__)


@dataclass
class AppliedState:
    """记录实际执行的步骤，按执行顺序。"""

    steps: list[str] = field(default_factory=list)
    unmatched_columns: bool = False

    @property
    def auto_fitted(self) -> bool:
        return "size_columns_to_fit" in self.steps


def _date_columns(
    table: TableHandle,
    descriptors: Optional[Mapping[str, ColumnDescriptor]],
) -> set[str]:
    if descriptors is None:
        descriptors = getattr(table, "descriptors", None) or {}
    return {col for col, d in descriptors.items() if d.inferred_type is ColumnType.DATE}


def apply_state(
    table: TableHandle,
    view_state: Any,
    descriptors: Optional[Mapping[str, ColumnDescriptor]] = None,
) -> AppliedState:
    """将视图状态应用到表格。view_state 为 None 时只自动适配列宽。"""
    applied = AppliedState()
    if view_state is None:
        table.size_columns_to_fit()
        applied.steps.append("size_columns_to_fit")
        return applied

    state = ViewState.from_raw(view_state)

    table.set_pivot_mode(state.pivot_mode)
    applied.steps.append("pivot_mode")

    filter_model = normalize_date_filters(state.filter_model, _date_columns(table, descriptors))
    table.set_filter_model(filter_model)
    applied.steps.append("filter_model")

    table.set_row_group_columns(state.row_group_cols)
    applied.steps.append("row_group_columns")

    table.set_pivot_columns(state.pivot_cols)
    applied.steps.append("pivot_columns")

    table.set_value_columns(state.value_cols)
    applied.steps.append("value_columns")

    if state.column_state:
        matched = table.apply_column_state(state.column_state, apply_order=True)
        applied.steps.append("column_state")
        if not matched:
            applied.unmatched_columns = True
            logger.debug("列状态中部分列已不存在，已忽略")
    else:
        table.size_columns_to_fit()
        applied.steps.append("size_columns_to_fit")
    return applied
