"""两阶段图表恢复测试。"""

from __future__ import annotations

import asyncio
import logging

import pytest

from statwidget.charts.container import ChartContainer
from statwidget.charts.reconstructor import ChartReconstructor

MODEL = {"chartType": "line", "cellRange": {"columns": ["a", "b"]}}


class FakeTable:
    def __init__(self, result: object = "handle", error: Exception | None = None):
        self.result = result
        self.error = error
        self.calls = 0
        self.container_was_empty: list[bool] = []

    def restore_chart(self, chart_model, container: ChartContainer):
        self.calls += 1
        self.container_was_empty.append(container.is_empty)
        if self.error is not None:
            raise self.error
        if self.result is None:
            return None
        container.mount(self.result)
        return self.result


@pytest.mark.asyncio
async def test_restore_runs_at_most_once_per_load() -> None:
    reconstructor = ChartReconstructor(settle_delay=0)
    container = ChartContainer()
    table = FakeTable()

    reconstructor.prepare(container, MODEL)
    first = reconstructor.restore_chart(table, container, MODEL)
    second = reconstructor.restore_chart(table, container, MODEL)
    third = reconstructor.restore_chart(table, container, MODEL)
    await reconstructor.wait()

    assert first is not None
    assert second is None and third is None
    assert table.calls == 1
    assert reconstructor.restore_count == 1
    assert container.children == ["handle"]


@pytest.mark.asyncio
async def test_prepare_clears_stale_children_and_rearms() -> None:
    reconstructor = ChartReconstructor(settle_delay=0)
    container = ChartContainer(children=["old-chart"])
    table = FakeTable()

    reconstructor.prepare(container, MODEL)
    assert container.is_empty
    reconstructor.restore_chart(table, container, MODEL)
    await reconstructor.wait()

    reconstructor.prepare(container, MODEL)
    reconstructor.restore_chart(table, container, MODEL)
    await reconstructor.wait()
    assert table.calls == 2
    assert table.container_was_empty == [True, True]
    assert container.children == ["handle"]


@pytest.mark.asyncio
async def test_no_chart_model_is_a_no_op() -> None:
    reconstructor = ChartReconstructor(settle_delay=0)
    container = ChartContainer(children=["previous-load-chart"])
    table = FakeTable()
    reconstructor.prepare(container, None)
    assert container.is_empty
    assert not reconstructor.armed
    assert reconstructor.restore_chart(table, container, None) is None
    assert await reconstructor.wait() is None
    assert table.calls == 0


@pytest.mark.asyncio
async def test_restore_waits_for_settle_delay() -> None:
    reconstructor = ChartReconstructor(settle_delay=0.05)
    container = ChartContainer()
    table = FakeTable()
    reconstructor.prepare(container, MODEL)
    reconstructor.restore_chart(table, container, MODEL)
    await asyncio.sleep(0)
    assert table.calls == 0
    assert reconstructor.pending
    await reconstructor.wait()
    assert table.calls == 1


@pytest.mark.asyncio
async def test_stale_load_skips_restore() -> None:
    reconstructor = ChartReconstructor(settle_delay=0)
    container = ChartContainer()
    table = FakeTable()
    reconstructor.prepare(container, MODEL)
    reconstructor.restore_chart(table, container, MODEL, is_stale=lambda: True)
    assert await reconstructor.wait() is None
    assert table.calls == 0


@pytest.mark.asyncio
async def test_cancel_drops_pending_restore() -> None:
    reconstructor = ChartReconstructor(settle_delay=10)
    container = ChartContainer()
    table = FakeTable()
    reconstructor.prepare(container, MODEL)
    reconstructor.restore_chart(table, container, MODEL)
    reconstructor.cancel()
    assert await reconstructor.wait() is None
    assert not reconstructor.armed
    assert table.calls == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("table", [FakeTable(result=None), FakeTable(error=RuntimeError("boom"))])
async def test_failures_are_logged_not_raised(table: FakeTable, caplog: pytest.LogCaptureFixture) -> None:
    reconstructor = ChartReconstructor(settle_delay=0)
    container = ChartContainer()
    reconstructor.prepare(container, MODEL)
    with caplog.at_level(logging.WARNING, logger="statwidget.charts.reconstructor"):
        reconstructor.restore_chart(table, container, MODEL)
        assert await reconstructor.wait() is None
    assert container.is_empty
    assert any("图表恢复失败" in record.getMessage() for record in caplog.records)
