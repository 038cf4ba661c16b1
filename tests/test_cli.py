"""CLI 命令测试。"""

from __future__ import annotations

from pathlib import Path
import sys
from types import SimpleNamespace

import pytest

from statwidget.__main__ import main
from statwidget.widget import controller as controller_module
from statwidget.widget.client import StatsApiClient

from tests.stats_api import default_api


@pytest.fixture()
def stats_api(monkeypatch: pytest.MonkeyPatch):
    api = default_api()
    transport = api.transport()

    def _client(**kwargs) -> StatsApiClient:
        return StatsApiClient(transport=transport, **kwargs)

    monkeypatch.setattr(controller_module, "StatsApiClient", _client)
    return api


def test_cli_init_creates_env_file(tmp_path: Path) -> None:
    env_path = tmp_path / ".env.statwidget"
    ret = main(["init", "--env-file", str(env_path)])
    assert ret == 0
    text = env_path.read_text(encoding="utf-8")
    assert "STATWIDGET_API_BASE_URL=" in text
    assert "STATWIDGET_API_TOKEN=" in text
    assert "STATWIDGET_CHART_SETTLE_DELAY_MS=100" in text


def test_cli_init_without_force_refuses_overwrite(tmp_path: Path) -> None:
    env_path = tmp_path / ".env.statwidget"
    env_path.write_text("EXISTING=1\n", encoding="utf-8")
    assert main(["init", "--env-file", str(env_path)]) == 1
    assert env_path.read_text(encoding="utf-8") == "EXISTING=1\n"
    assert main(["init", "--env-file", str(env_path), "--force"]) == 0


def test_cli_start_default_command_invokes_uvicorn(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[tuple[tuple[object, ...], dict[str, object]]] = []

    def fake_run(*args: object, **kwargs: object) -> None:
        calls.append((args, kwargs))

    monkeypatch.setitem(sys.modules, "uvicorn", SimpleNamespace(run=fake_run))

    ret = main(["--port", "9001", "--host", "0.0.0.0"])
    assert ret == 0
    assert len(calls) == 1
    args, kwargs = calls[0]
    assert args == ("statwidget.app:create_app",)
    assert kwargs["factory"] is True
    assert kwargs["port"] == 9001
    assert kwargs["host"] == "0.0.0.0"


def test_cli_render_chart_to_file(tmp_path: Path, stats_api) -> None:
    output = tmp_path / "widget.html"
    ret = main(["render", "--stat-id", "7", "--graph-id", "3", "-o", str(output)])
    assert ret == 0
    html = output.read_text(encoding="utf-8")
    assert 'data-state="ready"' in html
    assert 'id="chart-c1"' in html


def test_cli_render_table_to_stdout(capsys: pytest.CaptureFixture[str], stats_api) -> None:
    ret = main(["render", "--token", "tok-1", "--view", "table"])
    assert ret == 0
    assert "Tabella vendite" in capsys.readouterr().out


def test_cli_render_error_exit_code(capsys: pytest.CaptureFixture[str], stats_api) -> None:
    ret = main(["render", "--stat-id", "7", "--graph-id", "404"])
    assert ret == 1
    assert "does not exist" in capsys.readouterr().out


def test_cli_render_invalid_entry(capsys: pytest.CaptureFixture[str]) -> None:
    ret = main(["render", "--stat-id", "7"])
    assert ret == 2
    assert "statId and graphId or token" in capsys.readouterr().err
