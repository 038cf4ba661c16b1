"""组件编排测试：状态迁移、过期结果丢弃、空数据与错误处理。"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest

from statwidget.exceptions import FetchError
from statwidget.widget import create_widget_controller
from statwidget.widget import controller as controller_module
from statwidget.widget.client import StatsApiClient
from statwidget.widget.controller import (
    NO_DATA_MESSAGE,
    WidgetState,
    assert_transition,
    can_transition,
    next_states,
)
from statwidget.widget.routing import EntryKind, WidgetIdentifier

from tests.stats_api import CHART_CONFIG, StatsApi, default_api, make_graph, make_stat

CHART_A = WidgetIdentifier(kind=EntryKind.CHART, stat_id="7", graph_id="3")
SNAPSHOT_B = WidgetIdentifier(kind=EntryKind.SNAPSHOT, token="snap-b")


def _payload(title: str, rows: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "title": title,
        "columns_order": json.dumps(["region", "sales"]),
        "json_results": json.dumps(rows),
        "config": json.dumps(CHART_CONFIG),
    }


class GatedSource:
    """按标识等待放行的数据源，用于构造竞争时序。"""

    def __init__(self, payloads: dict[WidgetIdentifier, Any]):
        self.payloads = payloads
        self.gates = {identifier: asyncio.Event() for identifier in payloads}
        self.started: list[WidgetIdentifier] = []

    async def fetch(self, identifier: WidgetIdentifier) -> dict[str, Any]:
        self.started.append(identifier)
        await self.gates[identifier].wait()
        result = self.payloads[identifier]
        if isinstance(result, Exception):
            raise result
        return result


def _controller(api: StatsApi):
    return create_widget_controller(StatsApiClient(transport=api.transport()))


def test_state_transitions() -> None:
    assert can_transition(WidgetState.LOADING, WidgetState.READY)
    assert can_transition(WidgetState.LOADING, WidgetState.LOADING)
    assert can_transition(WidgetState.READY, WidgetState.LOADING)
    assert not can_transition(WidgetState.READY, WidgetState.ERROR)
    assert not can_transition(WidgetState.EMPTY, WidgetState.READY)
    assert next_states(WidgetState.ERROR) == [WidgetState.LOADING]
    with pytest.raises(ValueError):
        assert_transition(WidgetState.ERROR, WidgetState.READY)


@pytest.mark.asyncio
async def test_chart_load_reaches_ready_and_restores_chart() -> None:
    controller = _controller(default_api())
    assert controller.state is WidgetState.LOADING

    view = await controller.load(CHART_A)
    chart = await controller.wait_for_chart()

    assert view.state is WidgetState.READY
    assert view.title == "Vendite per regione"
    assert [d.id for d in view.descriptors] == ["region", "sales", "order_date"]
    assert view.table is not None and view.table.row_count == 4
    assert view.applied is not None and view.applied.steps == ["size_columns_to_fit"]
    assert chart is not None
    assert chart.chart_type == "groupedColumn"
    assert controller.reconstructor.restore_count == 1

    status = controller.status()
    assert status.state == "ready"
    assert status.has_chart
    assert status.row_count == 4
    assert status.error is None


@pytest.mark.asyncio
async def test_chart_load_applies_graph_sorting_before_restore() -> None:
    api = StatsApi(
        stats={"7": make_stat()},
        graphs={"7": [make_graph(3, sorting=json.dumps([{"colId": "sales", "sort": "desc"}]))]},
    )
    controller = _controller(api)
    view = await controller.load(CHART_A)
    await controller.wait_for_chart()

    assert view.applied is not None and view.applied.steps[-1] == "column_state"
    assert view.table.displayed_frame()["sales"].tolist() == [120, 80.5, 45, 30]
    chart = controller.chart
    assert chart is not None
    assert list(chart.figure.data[0].y) == [120, 80.5, 45, 30]


@pytest.mark.asyncio
async def test_table_view_has_no_chart() -> None:
    controller = _controller(default_api())
    view = await controller.load(WidgetIdentifier(kind=EntryKind.TABLE, token="tok-1"))
    assert await controller.wait_for_chart() is None
    assert view.state is WidgetState.READY
    assert view.title == "Tabella vendite"
    assert view.chart_model is None


@pytest.mark.asyncio
async def test_empty_payload_reaches_empty_not_error() -> None:
    api = StatsApi(stats={"7": make_stat(columns_order="[]", json_results="[]")},
                   graphs={"7": [make_graph(3)]})
    controller = _controller(api)
    view = await controller.load(CHART_A)
    assert view.state is WidgetState.EMPTY
    assert view.message == NO_DATA_MESSAGE
    assert await controller.wait_for_chart() is None


@pytest.mark.asyncio
async def test_required_field_parse_failure_is_empty() -> None:
    api = StatsApi(stats={"7": make_stat(json_results="[{not json")},
                   graphs={"7": [make_graph(3)]})
    controller = _controller(api)
    view = await controller.load(CHART_A)
    assert view.state is WidgetState.EMPTY
    assert controller.status().error == NO_DATA_MESSAGE


@pytest.mark.asyncio
async def test_fetch_failure_reaches_error_with_message() -> None:
    api = StatsApi(stats={"7": make_stat()}, graphs={"7": []})
    controller = _controller(api)
    view = await controller.load(CHART_A)
    assert view.state is WidgetState.ERROR
    assert view.error == "The chart with stat:7 and graph:3 does not exist"

    snapshot = await controller.load(WidgetIdentifier(kind=EntryKind.SNAPSHOT, token="missing"))
    assert snapshot.state is WidgetState.ERROR
    assert snapshot.error == "Impossibile caricare lo snapshot selezionato"


@pytest.mark.asyncio
async def test_stale_load_result_is_discarded() -> None:
    source = GatedSource(
        {
            CHART_A: _payload("A", [{"region": "Nord", "sales": "1"}]),
            SNAPSHOT_B: _payload("B", [{"region": "Sud", "sales": "2"}]),
        }
    )
    controller = create_widget_controller(source_factory=lambda kind: source)

    task_a = controller.change_identifier(CHART_A)
    await asyncio.sleep(0)
    task_b = controller.change_identifier(SNAPSHOT_B)
    await asyncio.sleep(0)
    assert source.started == [CHART_A, SNAPSHOT_B]

    source.gates[SNAPSHOT_B].set()
    await task_b
    await controller.wait_for_chart()
    assert controller.state is WidgetState.READY
    assert controller.view.title == "B"
    rendered_chart = controller.chart

    source.gates[CHART_A].set()
    await task_a
    await controller.wait_for_chart()
    assert controller.view.title == "B"
    assert controller.view.identifier == SNAPSHOT_B
    assert controller.chart is rendered_chart
    assert controller.reconstructor.restore_count == 1


@pytest.mark.asyncio
async def test_stale_error_is_discarded() -> None:
    source = GatedSource(
        {
            CHART_A: FetchError("boom"),
            SNAPSHOT_B: _payload("B", [{"region": "Sud", "sales": "2"}]),
        }
    )
    controller = create_widget_controller(source_factory=lambda kind: source)
    task_a = controller.change_identifier(CHART_A)
    await asyncio.sleep(0)
    task_b = controller.change_identifier(SNAPSHOT_B)
    await asyncio.sleep(0)

    source.gates[SNAPSHOT_B].set()
    await task_b
    source.gates[CHART_A].set()
    await task_a
    assert controller.state is WidgetState.READY
    assert controller.view.error is None


@pytest.mark.asyncio
async def test_dispose_discards_in_flight_load() -> None:
    source = GatedSource({CHART_A: _payload("A", [{"region": "Nord", "sales": "1"}])})
    controller = create_widget_controller(source_factory=lambda kind: source)
    task = controller.change_identifier(CHART_A)
    await asyncio.sleep(0)

    controller.dispose()
    source.gates[CHART_A].set()
    view = await task
    assert view.state is WidgetState.LOADING
    assert controller.view.table is None
    assert controller.chart is None

    # 销毁后的装载被忽略
    again = await controller.load(CHART_A)
    assert again.state is WidgetState.LOADING
    assert source.started == [CHART_A]


@pytest.mark.asyncio
async def test_duplicate_first_render_signal_restores_once() -> None:
    controller = _controller(default_api())
    view = await controller.load(CHART_A)
    await controller.wait_for_chart()

    # 表格重复触发首次渲染（例如重新装载同一批数据）
    view.table.set_row_data(view.table.displayed_frame().to_dict("records"))
    view.table.render()
    await controller.wait_for_chart()
    assert controller.reconstructor.restore_count == 1
    assert len(controller.container.children) == 1


@pytest.mark.asyncio
async def test_unexpected_source_failure_reaches_error() -> None:
    source = GatedSource({CHART_A: RuntimeError("unexpected")})
    source.gates[CHART_A].set()
    controller = create_widget_controller(source_factory=lambda kind: source)

    view = await controller.load(CHART_A)
    assert view.state is WidgetState.ERROR
    assert view.error == "The chart with stat:7 and graph:3 does not exist"
    assert controller.status().error == view.error


@pytest.mark.asyncio
async def test_table_build_failure_reaches_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def broken_apply_state(*args: Any, **kwargs: Any) -> None:
        raise KeyError("region")

    original_apply_state = controller_module.apply_state
    monkeypatch.setattr(controller_module, "apply_state", broken_apply_state)
    controller = _controller(default_api())

    view = await controller.load(CHART_A)
    assert view.state is WidgetState.ERROR
    assert await controller.wait_for_chart() is None
    assert controller.container.is_empty

    # 失败后仍可重新装载
    monkeypatch.setattr(controller_module, "apply_state", original_apply_state)
    again = await controller.load(CHART_A)
    assert again.state is WidgetState.READY
    assert await controller.wait_for_chart() is not None


@pytest.mark.asyncio
async def test_background_load_exceptions_are_collected(caplog: pytest.LogCaptureFixture) -> None:
    controller = _controller(default_api())

    async def failing_load(identifier: WidgetIdentifier) -> None:
        raise RuntimeError("load crashed")

    controller.load = failing_load  # type: ignore[method-assign]
    task = controller.change_identifier(CHART_A)
    assert controller.pending_loads == 1
    await asyncio.wait([task])
    await asyncio.sleep(0)

    assert controller.pending_loads == 0
    assert "后台装载任务异常" in caplog.text
