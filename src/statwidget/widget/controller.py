"""组件编排：装载周期、状态迁移与过期结果丢弃。

一次装载：取数 → 规范化 → 数值转换与列类型推断 → 构建表格 →
首次渲染时应用视图状态并恢复图表。
标识变化或组件销毁时，进行中的装载被标记为 disposed，其结果不会被应用。
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from statwidget.charts.container import ChartContainer, ChartHandle
from statwidget.charts.reconstructor import ChartReconstructor
from statwidget.exceptions import FetchError
from statwidget.grid.columns import ColumnDescriptor, cast_rows, describe_columns
from statwidget.grid.table import FirstDataRenderedEvent, FrameTable
from statwidget.grid.view_state import AppliedState, apply_state
from statwidget.models.schemas import ChartModel, ColumnInfo, ViewState, WidgetStatusResponse
from statwidget.utils.payload import normalize_payload
from statwidget.widget.client import StatsApiClient
from statwidget.widget.routing import EntryKind, WidgetIdentifier
from statwidget.widget.sources import PayloadSource, source_for

logger = logging.getLogger(__name__)

NO_DATA_MESSAGE = "No data available"


class WidgetState(str, Enum):
    """组件状态。"""

    LOADING = "loading"
    READY = "ready"
    ERROR = "error"
    EMPTY = "empty"


_ALLOWED_TRANSITIONS: Dict[WidgetState, List[WidgetState]] = {
    WidgetState.LOADING: [
        WidgetState.LOADING,
        WidgetState.READY,
        WidgetState.ERROR,
        WidgetState.EMPTY,
    ],
    WidgetState.READY: [WidgetState.LOADING],
    WidgetState.ERROR: [WidgetState.LOADING],
    WidgetState.EMPTY: [WidgetState.LOADING],
}


def can_transition(current: WidgetState, target: WidgetState) -> bool:
    """判断组件是否允许从当前状态迁移到目标状态。"""
    return target in _ALLOWED_TRANSITIONS.get(current, [])


def assert_transition(current: WidgetState, target: WidgetState) -> None:
    """校验组件状态迁移是否合法。"""
    if not can_transition(current, target):
        raise ValueError(f"不允许从 {current.value} 迁移到 {target.value}")


def next_states(current: WidgetState) -> List[WidgetState]:
    return list(_ALLOWED_TRANSITIONS.get(current, []))


def error_message(identifier: WidgetIdentifier) -> str:
    """面向用户的加载失败提示。"""
    if identifier.kind is EntryKind.CHART:
        return (
            f"The chart with stat:{identifier.stat_id} and graph:{identifier.graph_id} "
            "does not exist"
        )
    if identifier.kind is EntryKind.TABLE:
        return "Impossibile caricare la tabella selezionata"
    return "Impossibile caricare lo snapshot selezionato"


@dataclass
class LoadCycle:
    """一次装载周期。"""

    identifier: WidgetIdentifier
    number: int
    disposed: bool = False

    def dispose(self) -> None:
        self.disposed = True


@dataclass
class WidgetView:
    """组件当前可渲染的内容。"""

    identifier: Optional[WidgetIdentifier] = None
    state: WidgetState = WidgetState.LOADING
    title: str = ""
    error: Optional[str] = None
    message: Optional[str] = None
    descriptors: list[ColumnDescriptor] = field(default_factory=list)
    table: Optional[FrameTable] = None
    view_state: Optional[ViewState] = None
    chart_model: Optional[ChartModel] = None
    applied: Optional[AppliedState] = None

    @property
    def shows_table(self) -> bool:
        return self.identifier is not None and self.identifier.shows_table

    def to_status(self, chart: Optional[ChartHandle] = None) -> WidgetStatusResponse:
        return WidgetStatusResponse(
            state=self.state.value,
            title=self.title,
            columns=[ColumnInfo(**d.to_dict()) for d in self.descriptors],
            row_count=self.table.row_count if self.table is not None else 0,
            has_chart=chart is not None,
            chart_type=chart.chart_type if chart is not None else None,
            error=(self.error or self.message) if self.state is not WidgetState.READY else None,
            applied_steps=list(self.applied.steps) if self.applied else [],
        )


SourceFactory = Callable[[EntryKind], PayloadSource]


class WidgetController:
    """组件编排器。每个组件实例一个，实例之间不共享状态。"""

    def __init__(
        self,
        client: Optional[StatsApiClient] = None,
        *,
        source_factory: Optional[SourceFactory] = None,
        reconstructor: Optional[ChartReconstructor] = None,
        container: Optional[ChartContainer] = None,
    ):
        self.client = client or StatsApiClient()
        self._source_factory = source_factory or (lambda kind: source_for(kind, self.client))
        self.reconstructor = reconstructor or ChartReconstructor()
        self.container = container or ChartContainer()
        self.view = WidgetView()
        self._cycle: Optional[LoadCycle] = None
        self._cycles = 0
        self._disposed = False
        self._tasks: set[asyncio.Task[WidgetView]] = set()

    @property
    def state(self) -> WidgetState:
        return self.view.state

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def chart(self) -> Optional[ChartHandle]:
        return self.container.chart

    def _set_view(self, view: WidgetView) -> None:
        assert_transition(self.view.state, view.state)
        self.view = view

    def _is_current(self, cycle: LoadCycle) -> bool:
        return not cycle.disposed and cycle is self._cycle and not self._disposed

    async def load(self, identifier: WidgetIdentifier) -> WidgetView:
        """执行一次装载周期；周期被丢弃时返回当前视图，不覆盖它。"""
        if self._disposed:
            logger.debug("组件已销毁，忽略装载: %s", identifier.describe())
            return self.view

        if self._cycle is not None:
            self._cycle.dispose()
        self._cycles += 1
        cycle = LoadCycle(identifier=identifier, number=self._cycles)
        self._cycle = cycle

        self.reconstructor.cancel()
        self.container.clear()
        self._set_view(WidgetView(identifier=identifier))
        logger.info("开始装载组件 #%d: %s", cycle.number, identifier.describe())

        try:
            source = self._source_factory(identifier.kind)
            raw = await source.fetch(identifier)
        except FetchError as exc:
            if not self._is_current(cycle):
                logger.debug("丢弃过期装载 #%d 的错误: %s", cycle.number, exc.detail)
                return self.view
            logger.error("组件装载失败 (%s): %s", identifier.describe(), exc.detail)
            return self._fail(identifier)
        except Exception:
            if not self._is_current(cycle):
                logger.debug("丢弃过期装载 #%d 的异常", cycle.number, exc_info=True)
                return self.view
            logger.error("组件装载异常 (%s)", identifier.describe(), exc_info=True)
            return self._fail(identifier)

        if not self._is_current(cycle):
            logger.debug("丢弃过期装载 #%d 的结果", cycle.number)
            return self.view

        try:
            self._apply_payload(cycle, raw)
        except Exception:
            logger.error("组件数据处理失败 (%s)", identifier.describe(), exc_info=True)
            self.reconstructor.cancel()
            self.container.clear()
            return self._fail(identifier)
        return self.view

    def _fail(self, identifier: WidgetIdentifier) -> WidgetView:
        self._set_view(
            WidgetView(
                identifier=identifier,
                state=WidgetState.ERROR,
                error=error_message(identifier),
            )
        )
        return self.view

    def _apply_payload(self, cycle: LoadCycle, raw: Any) -> None:
        identifier = cycle.identifier
        payload = normalize_payload(raw)
        if payload.is_empty:
            logger.info("组件 #%d 没有可显示的数据", cycle.number)
            self._set_view(
                WidgetView(
                    identifier=identifier,
                    state=WidgetState.EMPTY,
                    title=payload.title,
                    message=NO_DATA_MESSAGE,
                )
            )
            return

        rows = cast_rows(payload.rows, payload.columns)
        descriptors = describe_columns(payload.columns, rows)
        table = FrameTable(descriptors, rows)
        chart_model = None if identifier.shows_table else payload.chart_model()
        view = WidgetView(
            identifier=identifier,
            state=WidgetState.READY,
            title=payload.title,
            descriptors=descriptors,
            table=table,
            view_state=payload.view_state(),
            chart_model=chart_model,
        )

        # 视图状态在首次渲染时应用；渲染成功后才进入 READY
        self.reconstructor.prepare(self.container, chart_model)
        table.on_first_data_rendered(lambda event: self._on_first_data_rendered(cycle, view, event))
        table.render()
        self._set_view(view)

    def _on_first_data_rendered(
        self, cycle: LoadCycle, view: WidgetView, event: FirstDataRenderedEvent
    ) -> None:
        if not self._is_current(cycle):
            logger.debug("过期装载 #%d 的首次渲染信号，忽略", cycle.number)
            return
        table = event.table
        if view.applied is None:
            view.applied = apply_state(table, view.view_state, table.descriptors)
        self.reconstructor.restore_chart(
            table,
            self.container,
            view.chart_model,
            is_stale=lambda: not self._is_current(cycle),
        )

    def change_identifier(self, identifier: WidgetIdentifier) -> asyncio.Task[WidgetView]:
        """标识变化：在后台启动新的装载，之前的装载结果将被丢弃。"""
        task = asyncio.get_running_loop().create_task(self.load(identifier))
        self._tasks.add(task)
        task.add_done_callback(self._collect_task)
        return task

    def _collect_task(self, task: asyncio.Task[WidgetView]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("后台装载任务异常: %s", exc, exc_info=exc)

    @property
    def pending_loads(self) -> int:
        return len(self._tasks)

    async def wait_for_chart(self) -> Optional[ChartHandle]:
        """等待图表恢复完成（服务端渲染与测试使用）。"""
        await self.reconstructor.wait()
        return self.container.chart

    def status(self) -> WidgetStatusResponse:
        return self.view.to_status(self.container.chart)

    def dispose(self) -> None:
        """销毁组件：进行中的装载与图表恢复都不再生效。"""
        if self._disposed:
            return
        self._disposed = True
        if self._cycle is not None:
            self._cycle.dispose()
        self.reconstructor.cancel()
        self.container.clear()
        logger.debug("组件已销毁")
