"""Pydantic 模型：持久化视图状态、图表模型与 API 响应。

ViewState / ChartModel 的字段名与空值语义是与报表编辑端共享的兼容契约：
读取时接受 camelCase 键与额外字段，导出时保持 camelCase。
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


def _column_id(value: Any) -> Optional[str]:
    """列引用可能是列 ID 字符串，也可能是 {colId}/{id}/{field} 对象。"""
    if isinstance(value, str):
        return value or None
    if isinstance(value, dict):
        for key in ("colId", "id", "field"):
            ref = value.get(key)
            if isinstance(ref, str) and ref:
                return ref
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def _column_ids(value: Any) -> list[str]:
    if not isinstance(value, (list, tuple)):
        return []
    ids: list[str] = []
    for item in value:
        col_id = _column_id(item)
        if col_id is not None and col_id not in ids:
            ids.append(col_id)
    return ids


# ---- 视图状态 ----


class ColumnStateEntry(BaseModel):
    """单列状态（宽度、排序、固定、隐藏、聚合等）。"""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    col_id: str = Field(validation_alias=AliasChoices("colId", "col_id"), serialization_alias="colId")
    width: Optional[float] = None
    flex: Optional[float] = None
    hide: Optional[bool] = None
    pinned: Optional[str] = None
    sort: Optional[str] = None
    sort_index: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("sortIndex", "sort_index"),
        serialization_alias="sortIndex",
    )
    agg_func: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("aggFunc", "agg_func"),
        serialization_alias="aggFunc",
    )
    row_group: Optional[bool] = Field(
        default=None,
        validation_alias=AliasChoices("rowGroup", "row_group"),
        serialization_alias="rowGroup",
    )
    row_group_index: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("rowGroupIndex", "row_group_index"),
        serialization_alias="rowGroupIndex",
    )
    pivot: Optional[bool] = None
    pivot_index: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("pivotIndex", "pivot_index"),
        serialization_alias="pivotIndex",
    )

    @field_validator("col_id", mode="before")
    @classmethod
    def _normalize_col_id(cls, value: Any) -> Any:
        return _column_id(value) or value

    @field_validator("sort", mode="before")
    @classmethod
    def _normalize_sort(cls, value: Any) -> Optional[str]:
        if isinstance(value, str) and value.strip().lower() in ("asc", "desc"):
            return value.strip().lower()
        return None

    @field_validator("pinned", mode="before")
    @classmethod
    def _normalize_pinned(cls, value: Any) -> Optional[str]:
        if value is True:
            return "left"
        if isinstance(value, str) and value in ("left", "right"):
            return value
        return None

    @field_validator("agg_func", mode="before")
    @classmethod
    def _normalize_agg_func(cls, value: Any) -> Optional[str]:
        return value if isinstance(value, str) and value else None

    @field_validator("width", "flex", "sort_index", "row_group_index", "pivot_index", mode="before")
    @classmethod
    def _drop_non_numeric(cls, value: Any) -> Any:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return value

    @field_validator("hide", "row_group", "pivot", mode="before")
    @classmethod
    def _normalize_flag(cls, value: Any) -> Optional[bool]:
        if value is None:
            return None
        return _as_bool(value)


class ViewState(BaseModel):
    """持久化的表格交互配置。所有字段可缺省，缺省即空/false。"""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    filter_model: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("filterModel", "filters", "filter_model"),
        serialization_alias="filterModel",
    )
    column_state: list[ColumnStateEntry] = Field(
        default_factory=list,
        validation_alias=AliasChoices("columnState", "column_state"),
        serialization_alias="columnState",
    )
    pivot_mode: bool = Field(
        default=False,
        validation_alias=AliasChoices("pivotMode", "pivot_mode"),
        serialization_alias="pivotMode",
    )
    row_group_cols: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("rowGroupCols", "row_group_cols"),
        serialization_alias="rowGroupCols",
    )
    pivot_cols: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("pivotCols", "pivot_cols"),
        serialization_alias="pivotCols",
    )
    value_cols: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("valueCols", "value_cols"),
        serialization_alias="valueCols",
    )

    @field_validator("filter_model", mode="before")
    @classmethod
    def _normalize_filter_model(cls, value: Any) -> dict[str, Any]:
        if not isinstance(value, dict):
            return {}
        return {str(key): spec for key, spec in value.items() if isinstance(spec, dict)}

    @field_validator("column_state", mode="before")
    @classmethod
    def _normalize_column_state(cls, value: Any) -> list[Any]:
        if not isinstance(value, (list, tuple)):
            return []
        return [item for item in value if isinstance(item, dict) and _column_id(item)]

    @field_validator("pivot_mode", mode="before")
    @classmethod
    def _normalize_pivot_mode(cls, value: Any) -> bool:
        return _as_bool(value)

    @field_validator("row_group_cols", "pivot_cols", "value_cols", mode="before")
    @classmethod
    def _normalize_column_ids(cls, value: Any) -> list[str]:
        return _column_ids(value)

    @classmethod
    def from_raw(cls, raw: Any) -> ViewState:
        """从松散的持久化数据构建视图状态，任何异常输入都回退为空状态。"""
        if isinstance(raw, ViewState):
            return raw
        if not isinstance(raw, dict):
            return cls()
        try:
            return cls.model_validate(raw)
        except ValidationError as exc:
            logger.warning("视图状态解析失败，将使用空状态: %s", exc.errors()[:3])
            return cls()

    @property
    def is_empty(self) -> bool:
        return not (
            self.filter_model
            or self.column_state
            or self.pivot_mode
            or self.row_group_cols
            or self.pivot_cols
            or self.value_cols
        )

    def to_persisted(self) -> dict[str, Any]:
        """导出为持久化格式（camelCase 键）。"""
        return self.model_dump(by_alias=True, exclude_none=False)


# ---- 图表模型 ----


class CellRange(BaseModel):
    """图表绑定的单元格范围。"""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    columns: list[str] = Field(default_factory=list)
    row_start_index: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("rowStartIndex", "row_start_index"),
        serialization_alias="rowStartIndex",
    )
    row_end_index: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("rowEndIndex", "row_end_index"),
        serialization_alias="rowEndIndex",
    )

    @field_validator("columns", mode="before")
    @classmethod
    def _normalize_columns(cls, value: Any) -> list[str]:
        return _column_ids(value)

    @field_validator("row_start_index", "row_end_index", mode="before")
    @classmethod
    def _normalize_index(cls, value: Any) -> Optional[int]:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return int(value)


class ChartModel(BaseModel):
    """序列化的图表描述，通过列 ID 引用系列与类别。"""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    model_type: str = Field(
        default="range",
        validation_alias=AliasChoices("modelType", "model_type"),
        serialization_alias="modelType",
    )
    chart_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("chartId", "chart_id"),
        serialization_alias="chartId",
    )
    chart_type: str = Field(
        validation_alias=AliasChoices("chartType", "chart_type"),
        serialization_alias="chartType",
    )
    cell_range: CellRange = Field(
        default_factory=CellRange,
        validation_alias=AliasChoices("cellRange", "cell_range"),
        serialization_alias="cellRange",
    )
    chart_theme_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("chartThemeName", "chart_theme_name"),
        serialization_alias="chartThemeName",
    )
    chart_options: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("chartOptions", "chart_options"),
        serialization_alias="chartOptions",
    )
    agg_func: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("aggFunc", "agg_func"),
        serialization_alias="aggFunc",
    )

    @field_validator("chart_id", mode="before")
    @classmethod
    def _normalize_chart_id(cls, value: Any) -> Optional[str]:
        return None if value is None else str(value)

    @field_validator("chart_options", mode="before")
    @classmethod
    def _normalize_options(cls, value: Any) -> dict[str, Any]:
        return value if isinstance(value, dict) else {}

    @field_validator("agg_func", mode="before")
    @classmethod
    def _normalize_agg_func(cls, value: Any) -> Optional[str]:
        return value if isinstance(value, str) and value else None

    @field_validator("cell_range", mode="before")
    @classmethod
    def _normalize_cell_range(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}

    @classmethod
    def from_raw(cls, raw: Any) -> Optional[ChartModel]:
        """解析图表模型；结构不兼容时返回 None，不抛异常。"""
        if isinstance(raw, ChartModel):
            return raw
        if not isinstance(raw, dict):
            return None
        try:
            return cls.model_validate(raw)
        except ValidationError as exc:
            logger.warning("图表模型结构无效: %s", exc.errors()[:3])
            return None

    def title(self) -> Optional[str]:
        """从 chartOptions 中取出启用的标题文本。"""
        for options in self.chart_options.values():
            if not isinstance(options, dict):
                continue
            title = options.get("title")
            if isinstance(title, dict) and title.get("enabled", True) and title.get("text"):
                return str(title["text"])
        return None


# ---- HTTP 响应 ----


class ColumnInfo(BaseModel):
    """列描述（推断类型、筛选器与图表角色）。"""

    id: str
    header_name: str
    inferred_type: str
    filter_kind: str
    chart_role: str


class WidgetStatusResponse(BaseModel):
    """组件加载结果。"""

    state: str
    title: str = ""
    columns: list[ColumnInfo] = Field(default_factory=list)
    row_count: int = 0
    has_chart: bool = False
    chart_type: Optional[str] = None
    error: Optional[str] = None
    applied_steps: list[str] = Field(default_factory=list)
