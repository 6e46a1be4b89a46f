from __future__ import annotations

import os
from pathlib import Path
from typing import Annotated

import typer

from aquasweeper.config import (
    CONFIG_ENV_VAR,
    DatabaseConfig,
    Settings,
    data_dir_from_settings,
    render_settings_toml,
    write_settings,
)

from .common import load_settings_or_exit, resolve_config_path_or_exit

app = typer.Typer(no_args_is_help=True, help="Show, create or check the configuration file")

SECTIONS = tuple(Settings.model_fields)


def _describe_source(path: Path, exists: bool) -> str:
    if not exists:
        return "defaults"
    if os.environ.get(CONFIG_ENV_VAR):
        return f"{path} (from {CONFIG_ENV_VAR})"
    return str(path)


@app.command("show")
def show_config(
    section: Annotated[
        str | None,
        typer.Option("--section", "-s", help=f"Only show one of: {', '.join(SECTIONS)}"),
    ] = None,
) -> None:
    if section is not None and section not in SECTIONS:
        typer.echo(f"Unknown section {section!r}, expected one of: {', '.join(SECTIONS)}", err=True)
        raise typer.Exit(1)

    settings = load_settings_or_exit()
    path, exists = resolve_config_path_or_exit(allow_missing=True)

    typer.echo(f"Config source: {_describe_source(path, exists)}")
    typer.echo(f"Data directory: {data_dir_from_settings(settings)}")
    typer.echo(render_settings_toml(settings, only=section))


@app.command("init")
def init_config(
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Overwrite existing config"),
    ] = False,
    data_dir: Annotated[
        Path | None,
        typer.Option("--data-dir", help="Store paired devices and addresses here"),
    ] = None,
) -> None:
    path, exists = resolve_config_path_or_exit(allow_missing=True)

    if exists and not force:
        typer.echo(f"Config already exists at {path}")
        return

    settings = Settings()
    if data_dir is not None:
        settings = Settings(database=DatabaseConfig(path=str(data_dir)))
    write_settings(settings, path)
    typer.echo(f"Wrote default config to {path}")
    typer.echo(f"Device data will be kept in {data_dir_from_settings(settings)}")


@app.command("check")
def check_config() -> None:
    """Validate the configuration and explain the polling budget it yields."""
    settings = load_settings_or_exit()
    connection = settings.connection
    interval = connection.poll_interval

    typer.echo("Configuration is valid")
    typer.echo(f"Status poll every {interval:g}s")
    typer.echo(
        f"Reconnecting after {connection.failure_threshold} missed polls "
        f"(~{connection.failure_threshold * interval:g}s)"
    )
    typer.echo(
        f"Giving up after {connection.abandon_after} missed polls "
        f"(~{connection.abandon_after * interval:g}s)"
    )
    typer.echo(f"Pairing looks for the device access point at {settings.discovery.ap_address}")
