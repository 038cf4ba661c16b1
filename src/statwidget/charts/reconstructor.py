"""图表恢复：两阶段信号。

阶段一（prepare）：新一轮装载的数据与列定义就绪，清空容器并“上膛”一次恢复；
阶段二（restore_chart）：表格首次渲染后调度异步任务，等待布局稳定再恢复图表。
同一轮装载内重复的首次渲染信号不会导致重复恢复。
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Callable, Optional

from statwidget.charts.container import ChartContainer, ChartHandle
from statwidget.config import settings

if TYPE_CHECKING:
    from statwidget.grid.table import TableHandle

logger = logging.getLogger(__name__)


def _never_stale() -> bool:
    return False


class ChartReconstructor:
    """在表格首次渲染后恢复持久化的图表，每次装载至多一次。"""

    def __init__(self, settle_delay: Optional[float] = None):
        self._settle_delay = settle_delay
        self._armed = False
        self._task: Optional[asyncio.Task[Optional[ChartHandle]]] = None
        self.restore_count = 0

    @property
    def settle_delay(self) -> float:
        if self._settle_delay is not None:
            return max(self._settle_delay, 0.0)
        return settings.chart_settle_delay

    @property
    def armed(self) -> bool:
        return self._armed

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def prepare(self, container: ChartContainer, chart_model: Any) -> None:
        """阶段一：取消未完成的恢复，清空容器，有图表模型时上膛。"""
        self.cancel()
        container.clear()
        self._armed = chart_model is not None

    def restore_chart(
        self,
        table: TableHandle,
        container: ChartContainer,
        chart_model: Any,
        is_stale: Callable[[], bool] = _never_stale,
    ) -> Optional[asyncio.Task[Optional[ChartHandle]]]:
        """阶段二：由表格的首次渲染信号触发。"""
        if chart_model is None:
            return None
        if not self._armed:
            logger.debug("重复的首次渲染信号，忽略图表恢复")
            return None
        self._armed = False
        container.clear()
        self._task = asyncio.get_running_loop().create_task(
            self._restore_later(table, container, chart_model, is_stale)
        )
        return self._task

    async def _restore_later(
        self,
        table: TableHandle,
        container: ChartContainer,
        chart_model: Any,
        is_stale: Callable[[], bool],
    ) -> Optional[ChartHandle]:
        await asyncio.sleep(self.settle_delay)
        if is_stale():
            logger.debug("装载已过期，放弃图表恢复")
            return None
        container.clear()
        self.restore_count += 1
        try:
            handle = table.restore_chart(chart_model, container)
        except Exception as exc:
            logger.warning("图表恢复失败: %s", exc)
            container.clear()
            return None
        if handle is None:
            logger.warning("图表恢复失败：图表模型与当前表格不兼容")
            container.clear()
        return handle

    async def wait(self) -> Optional[ChartHandle]:
        """等待挂起的恢复任务完成。"""
        task = self._task
        if task is None:
            return None
        try:
            return await task
        except asyncio.CancelledError:
            return None

    def cancel(self) -> None:
        self._armed = False
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
