"""列类型推断：对行数据做数值转换，并按采样值为每列判定语义类型。

类型决定筛选器种类与图表角色，不影响分组/透视/聚合资格：所有列都可以参与。
"""

from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping, Sequence

import pandas as pd

# 整数字面量，如 "12"、"-3"、"+7"
_INT_LITERAL = re.compile(r"^[+-]?\d+$")
# 十进制 / 科学计数法字面量，如 "3.5"、".5"、"1e3"
_FLOAT_LITERAL = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")
# ISO 风格日期：YYYY-MM-DD，可带时间部分
_DATE_LITERAL = re.compile(
    r"^\d{4}-\d{2}-\d{2}([ T]\d{2}:\d{2}(:\d{2}(\.\d+)?)?(Z|[+-]\d{2}:?\d{2})?)?$"
)


class ColumnType(str, Enum):
    """列语义类型。"""

    NUMERIC = "numeric"
    DATE = "date"
    TEXT = "text"


class FilterKind(str, Enum):
    """筛选器种类。"""

    NUMBER = "agNumberColumnFilter"
    DATE = "agDateColumnFilter"
    TEXT = "agTextColumnFilter"


class ChartRole(str, Enum):
    """列在图表中的角色。"""

    SERIES = "series"
    CATEGORY = "category"


_FILTER_KINDS = {
    ColumnType.NUMERIC: FilterKind.NUMBER,
    ColumnType.DATE: FilterKind.DATE,
    ColumnType.TEXT: FilterKind.TEXT,
}


def coerce_number(value: Any) -> Any:
    """将数值字面量字符串转换为数字，其他输入原样返回。

    | 输入                    | 输出                           |
    |-------------------------|--------------------------------|
    | None                    | None                           |
    | "" / 纯空白             | 原样                           |
    | "12" / " 3.5 " / "1e3"  | int（整数字面量）或 float      |
    | "x" / "nan" / "0x10"    | 原样                           |
    | int / float             | 原样                           |
    | bool                    | 原样（不视为数字）             |
    """
    if not isinstance(value, str):
        return value
    text = value.strip()
    if not text:
        return value
    if _INT_LITERAL.match(text):
        return int(text)
    if _FLOAT_LITERAL.match(text):
        return float(text)
    return value


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_date(value: Any) -> bool:
    """判断单个值是否为日期（date/datetime 对象或可解析的 ISO 日期字符串）。"""
    if isinstance(value, (dt.date, pd.Timestamp)):
        return True
    if not isinstance(value, str) or not _DATE_LITERAL.match(value.strip()):
        return False
    return not pd.isna(pd.to_datetime(value.strip(), errors="coerce"))


def cast_row(row: Mapping[str, Any], columns: Sequence[str]) -> dict[str, Any]:
    """按列顺序转换一行数据；未知键被忽略，缺失列为 None。"""
    return {col: coerce_number(row.get(col)) for col in columns}


def cast_rows(rows: Iterable[Mapping[str, Any]], columns: Sequence[str]) -> list[dict[str, Any]]:
    return [cast_row(row, columns) for row in rows]


def _samples(column_id: str, casted_rows: Iterable[Mapping[str, Any]]) -> list[Any]:
    samples: list[Any] = []
    for row in casted_rows:
        value = row.get(column_id)
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        samples.append(value)
    return samples


def infer_column_type(column_id: str, casted_rows: Iterable[Mapping[str, Any]]) -> ColumnType:
    """推断列类型：所有非空采样值必须一致。数值判定优先于日期判定。"""
    samples = _samples(column_id, casted_rows)
    if not samples:
        return ColumnType.TEXT
    if all(is_number(value) for value in samples):
        return ColumnType.NUMERIC
    if all(is_date(value) for value in samples):
        return ColumnType.DATE
    return ColumnType.TEXT


def humanize_column(column_id: str) -> str:
    """order_date → Order date"""
    cleaned = re.sub(r"[_-]", " ", column_id)
    return cleaned[:1].upper() + cleaned[1:]


@dataclass(frozen=True)
class ColumnDescriptor:
    """推断得到的列描述，不做持久化。"""

    id: str
    inferred_type: ColumnType
    header_name: str = ""

    @property
    def filter_kind(self) -> FilterKind:
        return _FILTER_KINDS[self.inferred_type]

    @property
    def chart_role(self) -> ChartRole:
        if self.inferred_type is ColumnType.NUMERIC:
            return ChartRole.SERIES
        return ChartRole.CATEGORY

    def to_column_def(self) -> dict[str, Any]:
        """转换为表格列定义。"""
        numeric = self.inferred_type is ColumnType.NUMERIC
        return {
            "field": self.id,
            "headerName": self.header_name or humanize_column(self.id),
            "filter": self.filter_kind.value,
            "type": "numericColumn" if numeric else None,
            "chartDataType": self.chart_role.value,
            "enablePivot": True,
            "enableRowGroup": True,
            "enableValue": True,
            "sortable": True,
            "resizable": True,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "header_name": self.header_name or humanize_column(self.id),
            "inferred_type": self.inferred_type.value,
            "filter_kind": self.filter_kind.value,
            "chart_role": self.chart_role.value,
        }


def describe_columns(
    columns: Sequence[str], casted_rows: Sequence[Mapping[str, Any]]
) -> list[ColumnDescriptor]:
    """为每列生成描述。"""
    return [
        ColumnDescriptor(
            id=col,
            inferred_type=infer_column_type(col, casted_rows),
            header_name=humanize_column(col),
        )
        for col in columns
    ]
