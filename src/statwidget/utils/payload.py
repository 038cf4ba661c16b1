"""统计载荷规范化工具。

统计 API 的部分字段在源头被二次 JSON 编码，同一字段可能是：
- JSON 字符串（需要再解码一次）
- 已解码的结构
- 缺失 / null

所有字段统一经由 ``classify_field`` + ``resolve_field`` 处理，而不是逐字段做类型判断。
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from statwidget.models.schemas import ChartModel, ViewState

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("columns_order", "json_results")
OPTIONAL_FIELDS = ("filters", "sorting", "grid_state", "config")
TITLE_FIELDS = ("title", "query_name")


@dataclass(frozen=True)
class Encoded:
    """以 JSON 字符串形式持久化的字段。"""

    text: str


@dataclass(frozen=True)
class Decoded:
    """已经是结构化值的字段。"""

    value: Any


@dataclass(frozen=True)
class Absent:
    """缺失或为 null 的字段。"""


FieldValue = Union[Encoded, Decoded, Absent]


def _reject_constant(name: str) -> Any:
    # NaN/Infinity 不是合法 JSON，按普通文本保留
    raise ValueError(f"非法 JSON 常量: {name}")


def classify_field(raw: Any) -> FieldValue:
    """将原始字段归类为 Encoded / Decoded / Absent。"""
    if raw is None:
        return Absent()
    if isinstance(raw, str):
        return Encoded(raw)
    return Decoded(raw)


def resolve_field(value: FieldValue) -> Any:
    """解析字段；字符串解码失败时原样返回（兼容非 JSON 的纯文本标题）。"""
    if isinstance(value, Absent):
        return None
    if isinstance(value, Decoded):
        return value.value
    try:
        return json.loads(value.text, parse_constant=_reject_constant)
    except (ValueError, TypeError):
        return value.text


def parse_field(raw: Any) -> Any:
    """解析单个持久化字段。对已解码结构和非 JSON 字符串幂等。"""
    return resolve_field(classify_field(raw))


def _decode_required(name: str, raw: Any) -> tuple[list[Any], Optional[str]]:
    """解析必填的列表字段，失败时返回空列表和错误描述。"""
    kind = classify_field(raw)
    if isinstance(kind, Absent):
        return [], None
    value = resolve_field(kind)
    if isinstance(value, (list, tuple)):
        return list(value), None
    if isinstance(kind, Encoded) and value is kind.text:
        return [], f"{name} 不是合法的 JSON"
    return [], f"{name} 应为数组，实际为 {type(value).__name__}"


def _normalize_columns(values: list[Any]) -> list[str]:
    columns: list[str] = []
    for item in values:
        if item is None or isinstance(item, (dict, list, bool)):
            continue
        col = item if isinstance(item, str) else str(item)
        if col and col not in columns:
            columns.append(col)
    return columns


def _normalize_rows(values: list[Any]) -> list[dict[str, Any]]:
    rows = [dict(row) for row in values if isinstance(row, dict)]
    dropped = len(values) - len(rows)
    if dropped:
        logger.warning("已忽略 %d 条非对象结构的数据行", dropped)
    return rows


def _normalize_title(raw: Any) -> str:
    value = parse_field(raw)
    if isinstance(value, str):
        return value
    if isinstance(raw, str):
        return raw
    return "" if value is None else str(value)


@dataclass
class NormalizedPayload:
    """解码后的统计载荷。"""

    columns: list[str] = field(default_factory=list)
    rows: list[dict[str, Any]] = field(default_factory=list)
    title: str = ""
    filters: Any = None
    sorting: Any = None
    grid_state: Any = None
    config: Any = None
    required_field_errors: dict[str, str] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.rows or not self.columns

    def view_state(self) -> Optional[ViewState]:
        """构建视图状态：grid_state 为对象时直接使用，否则回退到旧的 filters / sorting。"""
        if isinstance(self.grid_state, dict):
            return ViewState.from_raw(self.grid_state)
        legacy: dict[str, Any] = {}
        if isinstance(self.filters, dict):
            legacy["filterModel"] = self.filters
        if isinstance(self.sorting, list) and self.sorting:
            legacy["columnState"] = self.sorting
        if not legacy:
            return None
        return ViewState.from_raw(legacy)

    def chart_model(self) -> Optional[ChartModel]:
        if not isinstance(self.config, dict):
            return None
        return ChartModel.from_raw(self.config)


def normalize_payload(raw: Any) -> NormalizedPayload:
    """规范化统计 API 返回的原始载荷，永不抛异常。

    必填字段（columns_order / json_results）解码失败时以空列表代替；
    其余字段解码失败时保留原始值。
    """
    if not isinstance(raw, dict):
        logger.warning("统计载荷不是对象结构: %s", type(raw).__name__)
        raw = {}

    errors: dict[str, str] = {}
    decoded: dict[str, list[Any]] = {}
    for name in REQUIRED_FIELDS:
        values, error = _decode_required(name, raw.get(name))
        decoded[name] = values
        if error:
            errors[name] = error
            logger.warning("必填字段解析失败，按空数据处理: %s", error)

    optional = {name: parse_field(raw.get(name)) for name in OPTIONAL_FIELDS}
    for name, value in optional.items():
        if isinstance(value, str):
            logger.debug("可选字段 %s 不是合法 JSON，保留原始文本", name)

    title = ""
    for name in TITLE_FIELDS:
        title = _normalize_title(raw.get(name))
        if title:
            break

    return NormalizedPayload(
        columns=_normalize_columns(decoded["columns_order"]),
        rows=_normalize_rows(decoded["json_results"]),
        title=title,
        required_field_errors=errors,
        **optional,
    )
