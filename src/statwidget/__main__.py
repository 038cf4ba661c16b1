"""命令行入口：`python -m statwidget` / `statwidget`。"""

from __future__ import annotations

import argparse
import asyncio
from pathlib import Path
import sys
from typing import Sequence


def _default_env_content() -> str:
    return (
        "# Stat Widget 配置（首次运行建议修改）\n"
        "STATWIDGET_DEBUG=false\n"
        "\n"
        "# 统计 API\n"
        "STATWIDGET_API_BASE_URL=http://localhost:8080\n"
        "STATWIDGET_API_TOKEN=\n"
        "# 不设置时使用 HTTP 客户端默认超时\n"
        "# STATWIDGET_REQUEST_TIMEOUT=30\n"
        "STATWIDGET_STAT_PATH=v1/stats/{stat_id}\n"
        "STATWIDGET_GRAPHS_PATH=v1/stats/graphs\n"
        "STATWIDGET_SNAPSHOT_PATH=v1/newsletter/snapshots/{token}\n"
        "STATWIDGET_TABLE_SNAPSHOT_PATH=v1/reporting/snapshots/{token}\n"
        "\n"
        "# 表格\n"
        "STATWIDGET_TABLE_AVAILABLE_WIDTH=1200\n"
        "STATWIDGET_TABLE_MIN_COLUMN_WIDTH=60\n"
        "STATWIDGET_TABLE_PAGE_SIZE=20\n"
        "\n"
        "# 图表\n"
        "STATWIDGET_CHART_SETTLE_DELAY_MS=100\n"
        "STATWIDGET_CHART_DEFAULT_THEME=ag-default\n"
        "STATWIDGET_PLOTLY_JS_SOURCE=cdn\n"
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Stat Widget - 可嵌入的只读报表组件")
    subparsers = parser.add_subparsers(dest="command", required=True)

    start_parser = subparsers.add_parser("start", help="启动组件服务")
    start_parser.add_argument("--host", default="127.0.0.1", help="监听地址")
    start_parser.add_argument("--port", type=int, default=8000, help="监听端口")
    start_parser.add_argument("--reload", action="store_true", help="开发模式热重载")
    start_parser.add_argument(
        "--log-level",
        default="info",
        choices=["critical", "error", "warning", "info", "debug", "trace"],
        help="日志级别",
    )
    start_parser.set_defaults(func=_cmd_start)

    init_parser = subparsers.add_parser("init", help="生成首次运行配置文件")
    init_parser.add_argument(
        "--env-file",
        default=".env",
        help="配置文件路径，默认当前目录 .env",
    )
    init_parser.add_argument("--force", action="store_true", help="覆盖已存在的配置文件")
    init_parser.set_defaults(func=_cmd_init)

    render_parser = subparsers.add_parser("render", help="装载组件并输出 HTML 页面")
    render_parser.add_argument("--stat-id", default=None, help="统计 ID（需同时提供 --graph-id）")
    render_parser.add_argument("--graph-id", default=None, help="图表 ID")
    render_parser.add_argument("--token", default=None, help="公开快照 token")
    render_parser.add_argument(
        "--view",
        choices=["chart", "table"],
        default=None,
        help="token 入口的视图类型（table 渲染报表表格）",
    )
    render_parser.add_argument("--page", type=int, default=0, help="表格页码（从 0 开始）")
    render_parser.add_argument(
        "-o", "--output", type=Path, help="输出文件路径（HTML），默认输出到标准输出"
    )
    render_parser.set_defaults(func=_cmd_render)

    return parser


def _normalize_argv(argv: Sequence[str]) -> list[str]:
    if not argv or argv[0].startswith("-"):
        # `statwidget --port 9000` 等价于 `statwidget start --port 9000`
        return ["start", *argv]
    return list(argv)


def _cmd_start(args: argparse.Namespace) -> int:
    try:
        import uvicorn
    except ImportError:
        print("缺少依赖，请先运行: pip install -e .")
        return 1

    uvicorn.run(
        "statwidget.app:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
        reload_dirs=["src"] if args.reload else None,
        log_level=args.log_level,
    )
    return 0


def _cmd_init(args: argparse.Namespace) -> int:
    env_path = Path(args.env_file).expanduser().resolve()
    if env_path.exists() and not args.force:
        print(f"配置文件已存在: {env_path}")
        print("如需覆盖请添加 --force")
        return 1

    env_path.parent.mkdir(parents=True, exist_ok=True)
    env_path.write_text(_default_env_content(), encoding="utf-8")

    print(f"已生成配置文件: {env_path}")
    print("下一步：")
    print("1) 填写统计 API 地址与 token")
    print("2) 运行 `statwidget start --reload` 启动服务")
    return 0


async def _render(identifier, page: int):
    from statwidget.widget import create_widget_controller
    from statwidget.widget.render import render_page

    controller = create_widget_controller()
    try:
        view = await controller.load(identifier)
        chart = await controller.wait_for_chart()
        return view.state, render_page(view, chart, page=page)
    finally:
        controller.dispose()


def _cmd_render(args: argparse.Namespace) -> int:
    from statwidget.app import configure_logging
    from statwidget.exceptions import InvalidEntryError
    from statwidget.widget.controller import WidgetState
    from statwidget.widget.routing import WidgetIdentifier

    configure_logging()
    params = {
        "statId": args.stat_id,
        "graphId": args.graph_id,
        "token": args.token,
        "view": args.view,
    }
    try:
        identifier = WidgetIdentifier.from_params(params)
    except InvalidEntryError as exc:
        print(exc.detail, file=sys.stderr)
        return 2

    state, html = asyncio.run(_render(identifier, args.page))
    if args.output:
        args.output.write_text(html, encoding="utf-8")
        print(f"已输出到 {args.output}")
    else:
        print(html)
    return 1 if state is WidgetState.ERROR else 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(_normalize_argv(argv or sys.argv[1:]))
    try:
        return int(args.func(args))
    except KeyboardInterrupt:
        print("已中断。")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
