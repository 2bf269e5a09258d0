from __future__ import annotations

import logging
from pathlib import Path

import pytest
from typer.testing import CliRunner

from bluerat import cli
from bluerat.core.config import Config

runner = CliRunner()


class FakeApp:
    instances: list[FakeApp] = []
    return_code: int | None = 0

    def __init__(self, config: Config) -> None:
        self.config = config
        self.ran = False
        FakeApp.instances.append(self)

    def run(self) -> None:
        self.ran = True


@pytest.fixture(autouse=True)
def _isolated(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path / "state"))
    FakeApp.instances = []
    FakeApp.return_code = 0
    monkeypatch.setattr(cli, "BlueratApp", FakeApp)
    yield
    logger = logging.getLogger("bluerat")
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


def test_run_starts_app_and_logs_to_state_dir(tmp_path: Path) -> None:
    result = runner.invoke(cli.app, ["run"])
    assert result.exit_code == 0
    assert FakeApp.instances[0].ran
    assert FakeApp.instances[0].config == Config()
    assert (tmp_path / "state" / "bluerat" / "bluerat.log").exists()


def test_run_verbose_with_custom_log_file(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "debug.log"
    result = runner.invoke(cli.app, ["run", "--log-file", str(log_file), "--verbose"])
    assert result.exit_code == 0
    assert log_file.exists()
    assert logging.getLogger("bluerat").level == logging.DEBUG


def test_run_propagates_app_failure() -> None:
    FakeApp.return_code = 1
    result = runner.invoke(cli.app, ["run"])
    assert result.exit_code == 1


def test_run_with_bad_config_fails_before_starting(tmp_path: Path) -> None:
    result = runner.invoke(cli.app, ["run", "--config", str(tmp_path / "missing.yaml")])
    assert result.exit_code == 1
    assert "Error:" in result.output
    assert FakeApp.instances == []


def test_keys_command() -> None:
    result = runner.invoke(cli.app, ["keys"])
    assert result.exit_code == 0
    assert "Global Shortcuts:" in result.stdout
    assert "toggle connect: c" in result.stdout
    assert "show adapters: a, space" in result.stdout
    assert "No key collisions" in result.stdout


def test_check_config_prints_effective_theme(tmp_path: Path) -> None:
    config = tmp_path / "theme.yaml"
    config.write_text("theme:\n  border_color: red\n", encoding="utf-8")
    result = runner.invoke(cli.app, ["check-config", "--config", str(config)])
    assert result.exit_code == 0
    assert "Config OK" in result.stdout
    assert "border_color: red" in result.stdout


def test_check_config_reports_errors(tmp_path: Path) -> None:
    config = tmp_path / "theme.yaml"
    config.write_text("theme:\n  column_spacing: -1\n", encoding="utf-8")
    result = runner.invoke(cli.app, ["check-config", "--config", str(config)])
    assert result.exit_code == 1
    assert "Error: Schema validation failed" in result.output
