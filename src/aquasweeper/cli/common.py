from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from pathlib import Path
from typing import Any, TypeVar

import typer

from aquasweeper.config import (
    Settings,
    data_dir_from_settings,
    get_settings,
    resolve_config_path,
)
from aquasweeper.core import NetworkObserver
from aquasweeper.errors import AquaSweeperError
from aquasweeper.services import AquaSweeperServices
from aquasweeper.storage import Database

T = TypeVar("T")


def load_settings_or_exit() -> Settings:
    try:
        return get_settings()
    except (FileNotFoundError, ValueError) as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1) from exc


def resolve_config_path_or_exit(allow_missing: bool = False) -> tuple[Path, bool]:
    try:
        return resolve_config_path(allow_missing=allow_missing)
    except FileNotFoundError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1) from exc


def build_database(settings: Settings, data_dir: Path | None = None) -> Database:
    path = data_dir or data_dir_from_settings(settings)
    return Database(path)


def build_services(
    settings: Settings, observer: NetworkObserver | None = None
) -> AquaSweeperServices:
    return AquaSweeperServices.from_settings(settings, observer=observer)


def run_or_exit(coro: Coroutine[Any, Any, T]) -> T:
    try:
        return asyncio.run(coro)
    except AquaSweeperError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1) from exc
