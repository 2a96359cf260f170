from pathlib import Path

import yaml
from typer.testing import CliRunner

from user_explorer.app import app


def test_cli_bootstraps_home_and_reports_unreachable_server(tmp_path, monkeypatch):
    monkeypatch.setenv("USER_EXPLORER_HOME", str(tmp_path))
    config_path = Path(tmp_path) / "data" / "explorer_config.yaml"
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(
        yaml.safe_dump({"base_url": "http://127.0.0.1:9", "request_timeout": 1.0}),
        encoding="utf-8",
    )
    runner = CliRunner()

    result = runner.invoke(app, ["load", "--pages", "1"])
    assert result.exit_code == 1, result.stdout
    assert "No users loaded" in result.stdout

    assert (Path(tmp_path) / "data" / "cache" / "cache.db").exists()
    assert (Path(tmp_path) / "logs" / "explorer.log").exists()
