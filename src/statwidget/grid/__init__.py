"""表格能力公共模块。"""

from statwidget.grid.columns import (
    ChartRole,
    ColumnDescriptor,
    ColumnType,
    FilterKind,
    cast_row,
    cast_rows,
    coerce_number,
    describe_columns,
    infer_column_type,
)
from statwidget.grid.filters import apply_filter_model, normalize_date_filters, truncate_date_bound

__all__ = [
    "ChartRole",
    "ColumnDescriptor",
    "ColumnType",
    "FilterKind",
    "apply_filter_model",
    "cast_row",
    "cast_rows",
    "coerce_number",
    "describe_columns",
    "infer_column_type",
    "normalize_date_filters",
    "truncate_date_bound",
]
