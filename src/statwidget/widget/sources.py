"""数据源：按入口类型从统计 API 取回原始载荷。

每个数据源返回一个原始载荷字典（字段仍可能是 JSON 字符串），
由 ``normalize_payload`` 统一解码。
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol
from urllib.parse import quote

from statwidget.config import settings
from statwidget.exceptions import FetchError
from statwidget.widget.client import StatsApiClient
from statwidget.widget.routing import EntryKind, WidgetIdentifier

logger = logging.getLogger(__name__)

# 图表记录中覆盖统计记录的字段
GRAPH_FIELDS = ("config", "filters", "sorting")


class PayloadSource(Protocol):
    async def fetch(self, identifier: WidgetIdentifier) -> dict[str, Any]: ...


def _as_record(data: Any, path: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise FetchError(f"Unexpected response from {path}", path=path)
    return data


def _as_list(data: Any) -> list[Any]:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in ("data", "items", "results"):
            if isinstance(data.get(key), list):
                return data[key]
    return []


def find_graph(graphs: Any, graph_id: str) -> Optional[dict[str, Any]]:
    """按 ID 查找图表记录；ID 统一按字符串比较。"""
    for graph in _as_list(graphs):
        if isinstance(graph, dict) and str(graph.get("id")) == str(graph_id):
            return graph
    return None


class ChartSource:
    """statId + graphId：先取统计结果，再取其图表列表并按 graphId 过滤。"""

    def __init__(self, client: StatsApiClient):
        self.client = client

    async def fetch(self, identifier: WidgetIdentifier) -> dict[str, Any]:
        stat_path = settings.stat_path.format(stat_id=quote(str(identifier.stat_id), safe=""))
        stat = _as_record(await self.client.fetch(stat_path), stat_path)

        stat_key = stat.get("id", identifier.stat_id)
        graphs = await self.client.fetch(settings.graphs_path, params={"stat_id": stat_key})
        graph = find_graph(graphs, str(identifier.graph_id))
        if graph is None:
            raise FetchError(
                f"Graph {identifier.graph_id} not found for stat {stat_key}",
                status_code=404,
                path=settings.graphs_path,
            )

        payload = dict(stat)
        for name in GRAPH_FIELDS:
            if graph.get(name) is not None:
                payload[name] = graph[name]
        return payload


class SnapshotSource:
    """token：公开的快照，渲染图表。"""

    def __init__(self, client: StatsApiClient):
        self.client = client

    async def fetch(self, identifier: WidgetIdentifier) -> dict[str, Any]:
        path = settings.snapshot_path.format(token=identifier.token)
        return _as_record(await self.client.fetch_public(path), path)


class TableSource:
    """token + view=table：公开的报表快照，渲染表格。"""

    def __init__(self, client: StatsApiClient):
        self.client = client

    async def fetch(self, identifier: WidgetIdentifier) -> dict[str, Any]:
        path = settings.table_snapshot_path.format(token=quote(str(identifier.token), safe=""))
        return _as_record(await self.client.fetch_public(path), path)


def source_for(kind: EntryKind, client: StatsApiClient) -> PayloadSource:
    if kind is EntryKind.CHART:
        return ChartSource(client)
    if kind is EntryKind.TABLE:
        return TableSource(client)
    return SnapshotSource(client)
