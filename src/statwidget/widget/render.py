"""将组件视图渲染为可嵌入的 HTML 页面。"""

from __future__ import annotations

import html
from typing import Any, Optional

from statwidget.charts.container import ChartHandle
from statwidget.config import settings
from statwidget.widget.controller import WidgetState, WidgetView

_PAGE = """<!DOCTYPE html>
<html lang="it">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>{title}</title>
<style>
body {{ margin: 0; font-family: Verdana, sans-serif; color: #464646; }}
.widget {{ display: flex; flex-direction: column; gap: 8px; padding: 8px; }}
.widget h1 {{ font-size: 18px; margin: 0; }}
.message {{ text-align: center; color: #ef4444; }}
.loader {{ text-align: center; color: #6b7280; }}
table.grid {{ border-collapse: collapse; width: 100%; font-size: 13px; }}
table.grid th, table.grid td {{ border: 1px solid #e0eaf1; padding: 4px 8px; }}
table.grid th {{ background: #f8fafc; text-align: left; }}
.pager {{ font-size: 12px; color: #6b7280; }}
</style>
</head>
<body>
<div class="widget" data-state="{state}">
{body}
</div>
</body>
</html>
"""


def _plotlyjs_mode() -> Any:
    mode = (settings.plotly_js_source or "cdn").strip().lower()
    if mode == "inline":
        return True
    if mode == "none":
        return False
    return "cdn"


def _title(view: WidgetView) -> str:
    return f"<h1>{html.escape(view.title)}</h1>" if view.title else ""


def render_table(view: WidgetView, page: int = 0) -> str:
    table = view.table
    if table is None:
        return ""
    headers = {d.id: d.header_name for d in view.descriptors}
    frame = table.page(page).rename(columns=headers)
    body = frame.to_html(index=False, classes="grid", border=0, na_rep="", escape=True)
    pager = (
        f'<div class="pager">{min(max(page, 0), table.page_count - 1) + 1} / {table.page_count}</div>'
    )
    return body + "\n" + pager


def render_body(view: WidgetView, chart: Optional[ChartHandle] = None, page: int = 0) -> str:
    if view.state is WidgetState.LOADING:
        return '<div class="loader">Loading...</div>'
    if view.state in (WidgetState.ERROR, WidgetState.EMPTY):
        text = view.error or view.message or ""
        return _title(view) + f'\n<p class="message">{html.escape(text)}</p>'

    parts = [_title(view)]
    if view.shows_table:
        parts.append(render_table(view, page))
    elif chart is not None:
        parts.append(chart.to_html(include_plotlyjs=_plotlyjs_mode()))
    else:
        # 无图表模型或恢复失败时退回表格视图
        parts.append(render_table(view, page))
    return "\n".join(p for p in parts if p)


def render_page(view: WidgetView, chart: Optional[ChartHandle] = None, page: int = 0) -> str:
    """渲染完整 HTML 页面。"""
    return _PAGE.format(
        title=html.escape(view.title or settings.app_name),
        state=view.state.value,
        body=render_body(view, chart, page),
    )
