"""Typer CLI entrypoint."""

from __future__ import annotations

import logging
import os
from dataclasses import fields
from pathlib import Path

import typer

from bluerat.core.config import PROJECT_NAME, Config, load_config
from bluerat.core.errors import BlueratError
from bluerat.ui.keymap import all_keymaps, keymap_collisions
from bluerat.ui.terminal import BlueratApp

app = typer.Typer(help="Terminal dashboard for Bluetooth adapters and devices")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def default_log_file() -> Path:
    xdg_state = Path(os.environ.get("XDG_STATE_HOME", Path.home() / ".local" / "state"))
    return xdg_state / PROJECT_NAME / f"{PROJECT_NAME}.log"


def _setup_logging(log_file: Path, verbose: bool) -> None:
    """Log to a file; the terminal belongs to the dashboard while it runs."""
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_file, encoding="utf-8")
    except OSError as exc:
        typer.echo(f"Warning: cannot write log file {log_file}: {exc}", err=True)
        handler = logging.NullHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root = logging.getLogger(PROJECT_NAME)
    root.handlers[:] = [handler]
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    root.propagate = False


def _load(config: Path | None) -> Config:
    try:
        return load_config(config)
    except BlueratError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("run")
def run_dashboard(
    config: Path | None = typer.Option(None, "--config", help="Path to a YAML config file"),
    log_file: Path | None = typer.Option(None, "--log-file", help="Where to write the log"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at debug level"),
) -> None:
    """Start the dashboard."""
    _setup_logging(log_file or default_log_file(), verbose)
    effective = _load(config)

    dashboard = BlueratApp(effective)
    dashboard.run()
    if dashboard.return_code:
        raise typer.Exit(code=dashboard.return_code)


@app.command("keys")
def list_keys() -> None:
    """List keyboard shortcuts and report keys bound twice."""
    for keymap in all_keymaps():
        typer.echo(f"{keymap.title}:")
        for shortcut in keymap.shortcuts:
            typer.echo(f"  {shortcut.command.value}: {shortcut.describe()}")

    collisions = keymap_collisions()
    if not collisions:
        typer.echo("No key collisions")
        return
    for key, commands in collisions.items():
        typer.echo(f"Collision on '{key}': {', '.join(commands)}", err=True)
    raise typer.Exit(code=1)


@app.command("check-config")
def check_config(
    config: Path | None = typer.Option(None, "--config", help="Path to a YAML config file"),
) -> None:
    """Validate the config file and print the effective theme."""
    effective = _load(config)
    typer.echo("Config OK")
    for f in fields(effective.theme):
        typer.echo(f"  {f.name}: {getattr(effective.theme, f.name)}")


def run() -> None:
    app()


if __name__ == "__main__":
    run()
