"""筛选模型：日期边界规范化与基于 pandas 的筛选求值。

筛选模型结构（按列 ID 索引）：
- 单条件：{"filterType": "number", "type": "greaterThan", "filter": 10}
- 组合条件：{"filterType": "text", "operator": "OR", "conditions": [...]}
- 旧版组合：{"operator": "AND", "condition1": {...}, "condition2": {...}}
- 集合筛选：{"filterType": "set", "values": ["a", "b"]}
- 多重筛选：{"filterType": "multi", "filterModels": [{...}, null]}
"""

from __future__ import annotations

import copy
import logging
import re
from typing import Any, Collection, Mapping, Optional

import pandas as pd

from statwidget.grid.columns import ColumnType

logger = logging.getLogger(__name__)

_DATE_PREFIX = re.compile(r"^(\d{4}-\d{2}-\d{2})(?:[ T].*)?$")
_DATE_BOUND_KEYS = ("dateFrom", "dateTo")
_BLANK_TYPES = {"blank", "notBlank"}


def truncate_date_bound(value: Any) -> Any:
    """"2024-01-05 10:30:00" → "2024-01-05"；无法识别的值原样返回。"""
    if not isinstance(value, str):
        return value
    match = _DATE_PREFIX.match(value.strip())
    return match.group(1) if match else value


def _is_date_condition(condition: Mapping[str, Any], date_column: bool) -> bool:
    filter_type = condition.get("filterType")
    if filter_type == "date":
        return True
    return date_column and filter_type in (None, "date")


def _truncate_condition(condition: Any, date_column: bool) -> Any:
    if not isinstance(condition, dict):
        return condition
    if condition.get("filterType") == "multi":
        models = condition.get("filterModels")
        if isinstance(models, list):
            condition["filterModels"] = [_truncate_condition(m, date_column) for m in models]
        return condition
    if isinstance(condition.get("conditions"), list):
        condition["conditions"] = [
            _truncate_condition(c, date_column or condition.get("filterType") == "date")
            for c in condition["conditions"]
        ]
    for key in ("condition1", "condition2"):
        if isinstance(condition.get(key), dict):
            condition[key] = _truncate_condition(
                condition[key], date_column or condition.get("filterType") == "date"
            )
    if _is_date_condition(condition, date_column):
        for key in _DATE_BOUND_KEYS:
            if key in condition:
                condition[key] = truncate_date_bound(condition[key])
    return condition


def normalize_date_filters(
    filter_model: Optional[Mapping[str, Any]],
    date_columns: Collection[str] = (),
) -> dict[str, Any]:
    """截断日期筛选条件的时间部分，使其匹配仅比较日期的单元格比较器。

    返回新的筛选模型，不修改入参。
    """
    if not filter_model:
        return {}
    normalized: dict[str, Any] = {}
    for col_id, spec in filter_model.items():
        normalized[col_id] = _truncate_condition(copy.deepcopy(spec), col_id in date_columns)
    return normalized


# ---- 求值 ----


def _blank_mask(series: pd.Series) -> pd.Series:
    empty_text = series.map(lambda v: isinstance(v, str) and not v.strip()).astype(bool)
    return series.isna() | empty_text


def _text_mask(series: pd.Series, condition: Mapping[str, Any]) -> pd.Series:
    op = condition.get("type") or "contains"
    needle = str(condition.get("filter") or "").lower()
    text = series.map(lambda v: "" if v is None or (isinstance(v, float) and pd.isna(v)) else str(v).lower())
    if op == "contains":
        return text.str.contains(needle, regex=False)
    if op == "notContains":
        return ~text.str.contains(needle, regex=False)
    if op == "equals":
        return text == needle
    if op == "notEqual":
        return text != needle
    if op == "startsWith":
        return text.str.startswith(needle)
    if op == "endsWith":
        return text.str.endswith(needle)
    logger.debug("未知的文本筛选类型，忽略: %s", op)
    return pd.Series(True, index=series.index)


def _number_mask(series: pd.Series, condition: Mapping[str, Any]) -> pd.Series:
    op = condition.get("type") or "equals"
    values = pd.to_numeric(series, errors="coerce")
    bound = pd.to_numeric(pd.Series([condition.get("filter")]), errors="coerce").iloc[0]
    if pd.isna(bound):
        return pd.Series(True, index=series.index)
    if op == "equals":
        return values == bound
    if op == "notEqual":
        return values != bound
    if op == "lessThan":
        return values < bound
    if op == "lessThanOrEqual":
        return values <= bound
    if op == "greaterThan":
        return values > bound
    if op == "greaterThanOrEqual":
        return values >= bound
    if op == "inRange":
        upper = pd.to_numeric(pd.Series([condition.get("filterTo")]), errors="coerce").iloc[0]
        if pd.isna(upper):
            return values > bound
        if condition.get("inRangeInclusive"):
            return (values >= bound) & (values <= upper)
        return (values > bound) & (values < upper)
    logger.debug("未知的数值筛选类型，忽略: %s", op)
    return pd.Series(True, index=series.index)


def _to_dates(series: pd.Series) -> pd.Series:
    """单元格比较器只比较日期部分。"""
    parsed = pd.to_datetime(series.map(truncate_date_bound), errors="coerce")
    return parsed.dt.normalize()


def _date_mask(series: pd.Series, condition: Mapping[str, Any]) -> pd.Series:
    op = condition.get("type") or "equals"
    dates = _to_dates(series)
    start = pd.to_datetime(truncate_date_bound(condition.get("dateFrom")), errors="coerce")
    if pd.isna(start):
        return pd.Series(True, index=series.index)
    if op == "equals":
        return dates == start
    if op == "notEqual":
        return dates != start
    if op == "lessThan":
        return dates < start
    if op == "greaterThan":
        return dates > start
    if op == "inRange":
        end = pd.to_datetime(truncate_date_bound(condition.get("dateTo")), errors="coerce")
        if pd.isna(end):
            return dates > start
        if condition.get("inRangeInclusive"):
            return (dates >= start) & (dates <= end)
        return (dates > start) & (dates < end)
    logger.debug("未知的日期筛选类型，忽略: %s", op)
    return pd.Series(True, index=series.index)


def _set_mask(series: pd.Series, condition: Mapping[str, Any]) -> pd.Series:
    values = condition.get("values")
    if not isinstance(values, list):
        return pd.Series(True, index=series.index)
    wanted = {str(v) for v in values if v is not None}
    keep_null = any(v is None for v in values)

    def _match(v: Any) -> bool:
        if v is None or (isinstance(v, float) and pd.isna(v)):
            return keep_null
        if isinstance(v, float) and v.is_integer():
            return str(int(v)) in wanted or str(v) in wanted
        return str(v) in wanted

    return series.map(_match).astype(bool)


def _kind_of(condition: Mapping[str, Any], column_type: ColumnType) -> str:
    filter_type = condition.get("filterType")
    if isinstance(filter_type, str) and filter_type:
        return filter_type
    if column_type is ColumnType.NUMERIC:
        return "number"
    if column_type is ColumnType.DATE:
        return "date"
    return "text"


def _combine(masks: list[pd.Series], operator: Any, index: pd.Index) -> pd.Series:
    if not masks:
        return pd.Series(True, index=index)
    result = masks[0]
    use_or = str(operator or "AND").upper() == "OR"
    for mask in masks[1:]:
        result = (result | mask) if use_or else (result & mask)
    return result


def condition_mask(
    series: pd.Series,
    condition: Any,
    column_type: ColumnType = ColumnType.TEXT,
) -> pd.Series:
    """计算单列筛选条件的行掩码。"""
    if not isinstance(condition, dict):
        return pd.Series(True, index=series.index)

    kind = _kind_of(condition, column_type)
    if kind == "multi":
        models = [m for m in condition.get("filterModels") or [] if isinstance(m, dict)]
        return _combine([condition_mask(series, m, column_type) for m in models], "AND", series.index)

    nested = condition.get("conditions")
    if isinstance(nested, list):
        masks = [condition_mask(series, c, column_type) for c in nested if isinstance(c, dict)]
        return _combine(masks, condition.get("operator"), series.index)
    if isinstance(condition.get("condition1"), dict):
        parts = [condition["condition1"]]
        if isinstance(condition.get("condition2"), dict):
            parts.append(condition["condition2"])
        masks = [condition_mask(series, {"filterType": kind, **c}, column_type) for c in parts]
        return _combine(masks, condition.get("operator"), series.index)

    op = condition.get("type")
    if op in _BLANK_TYPES:
        blank = _blank_mask(series)
        return blank if op == "blank" else ~blank
    if kind == "set":
        return _set_mask(series, condition)
    if kind == "number":
        return _number_mask(series, condition).fillna(False).astype(bool)
    if kind == "date":
        return _date_mask(series, condition).fillna(False).astype(bool)
    return _text_mask(series, condition).fillna(False).astype(bool)


def apply_filter_model(
    frame: pd.DataFrame,
    filter_model: Mapping[str, Any],
    column_types: Mapping[str, ColumnType],
) -> pd.DataFrame:
    """按筛选模型过滤数据；引用未知列的条件被忽略。"""
    if not filter_model or frame.empty:
        return frame
    mask = pd.Series(True, index=frame.index)
    for col_id, condition in filter_model.items():
        if col_id not in frame.columns:
            logger.debug("筛选条件引用了不存在的列，忽略: %s", col_id)
            continue
        col_type = column_types.get(col_id, ColumnType.TEXT)
        mask &= condition_mask(frame[col_id], condition, col_type)
    return frame[mask]
