from __future__ import annotations

import json

from typer.testing import CliRunner

from scenesync import cli

runner = CliRunner()


def test_serve_runs_factory_without_autoload(monkeypatch) -> None:
    calls = []
    monkeypatch.delenv("SCENESYNC_SKIP_APP_AUTOLOAD", raising=False)
    monkeypatch.setattr(cli.uvicorn, "run", lambda *a, **kw: calls.append((a, kw)))

    result = runner.invoke(cli.app, ["serve", "--port", "6200", "--log-level", "DEBUG"])

    assert result.exit_code == 0, result.output
    (args, kwargs), = calls
    assert args == ("scenesync.server.app:create_app",)
    assert kwargs["factory"] is True
    assert kwargs["port"] == 6200
    assert kwargs["log_level"] == "debug"
    assert cli.os.environ["SCENESYNC_SKIP_APP_AUTOLOAD"] == "1"


def test_config_prints_server_and_features(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    result = runner.invoke(cli.app, ["config"])
    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["server"]["port"] == 5000
    assert payload["features"]["enable_collaboration"] is True
