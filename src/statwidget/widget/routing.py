"""嵌入参数 → 数据源选择。"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from statwidget.exceptions import InvalidEntryError


class EntryKind(str, Enum):
    """组件入口类型。"""

    CHART = "chart"  # statId + graphId，需鉴权，两次请求
    SNAPSHOT = "snapshot"  # token，公开快照，渲染图表
    TABLE = "table"  # token + view=table，公开报表快照，渲染表格


def _param(params: Mapping[str, Any], name: str) -> Optional[str]:
    value = params.get(name)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def select_entry(params: Mapping[str, Any]) -> EntryKind:
    """根据嵌入参数选择入口；参数组合无效时抛出 InvalidEntryError。"""
    stat_id = _param(params, "statId")
    graph_id = _param(params, "graphId")
    token = _param(params, "token")

    if stat_id and graph_id:
        return EntryKind.CHART
    if token and not stat_id and not graph_id:
        if (_param(params, "view") or "").lower() == "table":
            return EntryKind.TABLE
        return EntryKind.SNAPSHOT
    raise InvalidEntryError()


@dataclass(frozen=True)
class WidgetIdentifier:
    """一次装载的组件标识。标识变化即丢弃全部已装载数据。"""

    kind: EntryKind
    stat_id: Optional[str] = None
    graph_id: Optional[str] = None
    token: Optional[str] = None

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> WidgetIdentifier:
        kind = select_entry(params)
        if kind is EntryKind.CHART:
            return cls(kind=kind, stat_id=_param(params, "statId"), graph_id=_param(params, "graphId"))
        return cls(kind=kind, token=_param(params, "token"))

    @property
    def shows_table(self) -> bool:
        return self.kind is EntryKind.TABLE

    def describe(self) -> str:
        if self.kind is EntryKind.CHART:
            return f"stat:{self.stat_id} graph:{self.graph_id}"
        return f"{self.kind.value}:{self.token}"
