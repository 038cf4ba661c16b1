"""表格能力：视图状态应用与图表恢复所依赖的表格接口，以及基于 pandas 的实现。"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Optional, Protocol, Sequence

import pandas as pd

from statwidget.charts.container import ChartContainer, ChartHandle
from statwidget.charts.registry import get_chart_registry
from statwidget.config import settings
from statwidget.grid.columns import ColumnDescriptor, ColumnType
from statwidget.grid.filters import apply_filter_model, truncate_date_bound
from statwidget.models.schemas import ChartModel, ColumnStateEntry

logger = logging.getLogger(__name__)

BLANK_GROUP = "(Blanks)"
DEFAULT_AGG_FUNC = "sum"
_AGG_FUNCS = {
    "sum": "sum",
    "avg": "mean",
    "min": "min",
    "max": "max",
    "count": "count",
    "first": "first",
    "last": "last",
}


class TableHandle(Protocol):
    """视图状态应用器与图表恢复器使用的表格接口。"""

    def set_pivot_mode(self, enabled: bool) -> None: ...

    def set_filter_model(self, model: Optional[Mapping[str, Any]]) -> None: ...

    def set_row_group_columns(self, columns: Sequence[str]) -> None: ...

    def set_pivot_columns(self, columns: Sequence[str]) -> None: ...

    def set_value_columns(self, columns: Sequence[str]) -> None: ...

    def apply_column_state(
        self, state: Sequence[ColumnStateEntry], apply_order: bool = False
    ) -> bool: ...

    def size_columns_to_fit(self) -> None: ...

    def restore_chart(self, chart_model: Any, container: ChartContainer) -> Optional[ChartHandle]: ...


@dataclass(frozen=True)
class FirstDataRenderedEvent:
    """首次渲染数据信号，每次装载行数据只触发一次。"""

    table: FrameTable
    load_id: int


FirstDataRenderedHandler = Callable[[FirstDataRenderedEvent], None]


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, float) and pd.isna(value))


def _total(series: pd.Series, func: str) -> Any:
    """单列总计。first / last 与分组聚合一致，跳过空值。"""
    if func in ("first", "last"):
        present = series.dropna()
        if present.empty:
            return None
        return present.iloc[0] if func == "first" else present.iloc[-1]
    return series.agg(func)


def _merge_membership(
    current: list[str],
    entries: Iterable[ColumnStateEntry],
    flag: str,
    index: str,
) -> list[str]:
    """按列状态中显式给出的 rowGroup / pivot 标记更新成员列表。"""
    explicit = [e for e in entries if getattr(e, flag) is not None]
    if not explicit:
        return current
    mentioned = {e.col_id for e in explicit}
    kept = [c for c in current if c not in mentioned]
    added = sorted(
        (e for e in explicit if getattr(e, flag)),
        key=lambda e: (getattr(e, index) is None, getattr(e, index) or 0),
    )
    return kept + [e.col_id for e in added]


class FrameTable:
    """基于 pandas DataFrame 的只读表格。"""

    def __init__(
        self,
        descriptors: Sequence[ColumnDescriptor],
        rows: Sequence[Mapping[str, Any]],
        *,
        available_width: Optional[int] = None,
        page_size: Optional[int] = None,
    ):
        self._descriptors = {d.id: d for d in descriptors}
        self._columns = [d.id for d in descriptors]
        self._available_width = available_width or settings.table_available_width
        self._page_size = page_size or settings.table_page_size
        self._handlers: list[FirstDataRenderedHandler] = []
        self._order = list(self._columns)
        self._hidden: set[str] = set()
        self._widths: dict[str, float] = {}
        self._pinned: dict[str, Optional[str]] = {}
        self._sort: list[tuple[str, str]] = []
        self._agg_funcs: dict[str, str] = {}
        self._filter_model: dict[str, Any] = {}
        self._pivot_mode = False
        self._row_group: list[str] = []
        self._pivot: list[str] = []
        self._values: list[str] = []
        self.auto_fitted = False
        self._load_id = 0
        self._rendered = False
        self.set_row_data(rows)

    # ---- 列与数据 ----

    @property
    def columns(self) -> list[str]:
        return list(self._columns)

    @property
    def descriptors(self) -> Mapping[str, ColumnDescriptor]:
        return self._descriptors

    @property
    def column_defs(self) -> list[dict[str, Any]]:
        return [self._descriptors[c].to_column_def() for c in self._columns]

    @property
    def row_count(self) -> int:
        return len(self._frame)

    def set_row_data(self, rows: Sequence[Mapping[str, Any]]) -> None:
        records = [{c: row.get(c) for c in self._columns} for row in rows]
        self._frame = pd.DataFrame(records, columns=self._columns, dtype=object)
        self._load_id += 1
        self._rendered = False

    # ---- 首次渲染信号 ----

    def on_first_data_rendered(self, handler: FirstDataRenderedHandler) -> None:
        self._handlers.append(handler)

    def render(self) -> pd.DataFrame:
        """渲染当前页；装载数据后的第一次渲染触发 first-data-rendered。"""
        page = self.page(0)
        if not self._rendered and self.row_count:
            self._rendered = True
            event = FirstDataRenderedEvent(table=self, load_id=self._load_id)
            for handler in list(self._handlers):
                handler(event)
        return page

    # ---- 视图状态 ----

    @property
    def pivot_mode(self) -> bool:
        return self._pivot_mode

    def set_pivot_mode(self, enabled: bool) -> None:
        self._pivot_mode = bool(enabled)

    @property
    def filter_model(self) -> dict[str, Any]:
        return dict(self._filter_model)

    def set_filter_model(self, model: Optional[Mapping[str, Any]]) -> None:
        self._filter_model = dict(model or {})

    def _known(self, columns: Sequence[str], kind: str) -> list[str]:
        known: list[str] = []
        for col in columns:
            if col not in self._descriptors:
                logger.debug("%s 引用了不存在的列，忽略: %s", kind, col)
                continue
            if col not in known:
                known.append(col)
        return known

    @property
    def row_group_columns(self) -> list[str]:
        return list(self._row_group)

    def set_row_group_columns(self, columns: Sequence[str]) -> None:
        self._row_group = self._known(columns, "行分组")

    @property
    def pivot_columns(self) -> list[str]:
        return list(self._pivot)

    def set_pivot_columns(self, columns: Sequence[str]) -> None:
        self._pivot = self._known(columns, "透视列")

    @property
    def value_columns(self) -> list[str]:
        return list(self._values)

    def set_value_columns(self, columns: Sequence[str]) -> None:
        self._values = self._known(columns, "聚合列")

    @property
    def column_order(self) -> list[str]:
        return list(self._order)

    @property
    def column_widths(self) -> dict[str, float]:
        return dict(self._widths)

    @property
    def sort_model(self) -> list[tuple[str, str]]:
        return list(self._sort)

    @property
    def hidden_columns(self) -> set[str]:
        return set(self._hidden)

    @property
    def pinned_columns(self) -> dict[str, Optional[str]]:
        return dict(self._pinned)

    def agg_func(self, column: str) -> str:
        return self._agg_funcs.get(column, DEFAULT_AGG_FUNC)

    def apply_column_state(
        self, state: Sequence[ColumnStateEntry], apply_order: bool = False
    ) -> bool:
        """应用列状态；返回是否所有条目都匹配到现有列。"""
        entries = [
            e if isinstance(e, ColumnStateEntry) else ColumnStateEntry.model_validate(e)
            for e in state
        ]
        known = [e for e in entries if e.col_id in self._descriptors]
        if len(known) != len(entries):
            logger.debug("列状态中有 %d 个条目引用了不存在的列", len(entries) - len(known))

        for entry in known:
            provided = entry.model_fields_set
            if entry.width is not None:
                self._widths[entry.col_id] = float(entry.width)
            if entry.hide is not None:
                if entry.hide:
                    self._hidden.add(entry.col_id)
                else:
                    self._hidden.discard(entry.col_id)
            if "pinned" in provided:
                self._pinned[entry.col_id] = entry.pinned
            if "agg_func" in provided:
                if entry.agg_func:
                    self._agg_funcs[entry.col_id] = entry.agg_func
                    if entry.col_id not in self._values:
                        self._values.append(entry.col_id)
                else:
                    self._agg_funcs.pop(entry.col_id, None)
                    if entry.col_id in self._values:
                        self._values.remove(entry.col_id)

        self._row_group = _merge_membership(self._row_group, known, "row_group", "row_group_index")
        self._pivot = _merge_membership(self._pivot, known, "pivot", "pivot_index")
        self._apply_sort(known)

        if apply_order:
            ordered = [e.col_id for e in known]
            seen = set(ordered)
            self._order = ordered + [c for c in self._order if c not in seen]
        return len(known) == len(entries)

    def _apply_sort(self, entries: Sequence[ColumnStateEntry]) -> None:
        updates = [e for e in entries if "sort" in e.model_fields_set]
        if not updates:
            return
        ranked: dict[str, tuple[str, float]] = {
            col: (direction, float(pos)) for pos, (col, direction) in enumerate(self._sort)
        }
        base = len(ranked) + len(entries)
        for pos, entry in enumerate(updates):
            if entry.sort is None:
                ranked.pop(entry.col_id, None)
                continue
            rank = float(entry.sort_index) if entry.sort_index is not None else float(base + pos)
            ranked[entry.col_id] = (entry.sort, rank)
        self._sort = [
            (col, direction)
            for col, (direction, _) in sorted(ranked.items(), key=lambda item: item[1][1])
        ]

    def size_columns_to_fit(self) -> None:
        """按可用宽度平均分配可见列宽度。"""
        visible = [c for c in self._order if c not in self._hidden]
        if not visible:
            return
        width = max(settings.table_min_column_width, self._available_width // len(visible))
        for col in visible:
            self._widths[col] = float(width)
        self.auto_fitted = True

    # ---- 数据视图 ----

    @property
    def is_aggregated(self) -> bool:
        if self._row_group:
            return True
        return self._pivot_mode and bool(self._pivot or self._values)

    def _column_types(self) -> dict[str, ColumnType]:
        return {c: d.inferred_type for c, d in self._descriptors.items()}

    def _sort_key(self, series: pd.Series) -> pd.Series:
        descriptor = self._descriptors.get(str(series.name))
        if descriptor is not None and descriptor.inferred_type is ColumnType.NUMERIC:
            return pd.to_numeric(series, errors="coerce")
        if descriptor is not None and descriptor.inferred_type is ColumnType.DATE:
            return pd.to_datetime(series.map(truncate_date_bound), errors="coerce")
        if pd.api.types.is_numeric_dtype(series):
            return series
        return series.map(lambda v: None if _is_missing(v) else str(v).lower())

    def _sorted(self, frame: pd.DataFrame) -> pd.DataFrame:
        keys = [(c, d) for c, d in self._sort if c in frame.columns]
        if not keys or frame.empty:
            return frame
        return frame.sort_values(
            by=[c for c, _ in keys],
            ascending=[d == "asc" for _, d in keys],
            kind="mergesort",
            na_position="last",
            key=self._sort_key,
        )

    def row_frame(self) -> pd.DataFrame:
        """筛选并排序后的明细行。"""
        filtered = apply_filter_model(self._frame, self._filter_model, self._column_types())
        return self._sorted(filtered)

    def _aggregate(self, frame: pd.DataFrame) -> pd.DataFrame:
        group_cols = list(self._row_group)
        pivot_cols = [c for c in self._pivot if c not in group_cols] if self._pivot_mode else []
        value_cols = [c for c in self._values if c not in group_cols and c not in pivot_cols]
        funcs = {c: _AGG_FUNCS.get(self.agg_func(c), "sum") for c in value_cols}

        work = frame.copy()
        for col in group_cols + pivot_cols:
            work[col] = work[col].map(lambda v: BLANK_GROUP if _is_missing(v) else v)
        for col, func in funcs.items():
            if func not in ("count", "first", "last"):
                work[col] = pd.to_numeric(work[col], errors="coerce")

        if pivot_cols and value_cols:
            index = group_cols or ["__total__"]
            if not group_cols:
                work["__total__"] = ""
            table = pd.pivot_table(
                work,
                index=index,
                columns=pivot_cols,
                values=value_cols,
                aggfunc=funcs,
                sort=False,
            )
            table.columns = [
                "_".join(str(part) for part in (*key[1:], key[0])) for key in table.columns
            ]
            result = table.reset_index()
            return result.drop(columns=["__total__"], errors="ignore")

        if not group_cols:
            # 透视模式下没有分组和聚合时，只显示总计行
            totals = {c: _total(work[c], f) for c, f in funcs.items()}
            return pd.DataFrame([totals], columns=value_cols)

        if not value_cols:
            return work[group_cols].drop_duplicates().reset_index(drop=True)
        grouped = work.groupby(group_cols, sort=False, dropna=False)
        return grouped.agg(funcs).reset_index()

    def displayed_frame(self) -> pd.DataFrame:
        """表格当前展示的数据（筛选、分组/透视、排序、列顺序与隐藏）。"""
        filtered = apply_filter_model(self._frame, self._filter_model, self._column_types())
        if self.is_aggregated:
            result = self._sorted(self._aggregate(filtered))
            visible = [c for c in result.columns if c in self._row_group or c not in self._hidden]
            return result[visible].reset_index(drop=True)

        visible = [c for c in self._order if c not in self._hidden]
        return self._sorted(filtered)[visible].reset_index(drop=True)

    def page(self, number: int = 0) -> pd.DataFrame:
        frame = self.displayed_frame()
        start = max(number, 0) * self._page_size
        return frame.iloc[start : start + self._page_size]

    @property
    def page_count(self) -> int:
        total = len(self.displayed_frame())
        return max(1, -(-total // self._page_size))

    # ---- 图表 ----

    def restore_chart(self, chart_model: Any, container: ChartContainer) -> Optional[ChartHandle]:
        model = ChartModel.from_raw(chart_model)
        if model is None:
            return None
        return get_chart_registry().restore(self, model, container)
