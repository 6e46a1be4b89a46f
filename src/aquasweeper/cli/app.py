from __future__ import annotations

from typing import Annotated

import typer

from aquasweeper.utils.logging import setup_logging

from . import config as config_cmd
from . import devices as devices_cmd
from .control import register as register_control
from .init_cmd import register as register_init
from .pair import register as register_pair
from .reset import register as register_reset
from .scan import register as register_scan
from .status import register as register_status

app = typer.Typer(
    help="AquaSweeper - discover, pair and control pool robots", no_args_is_help=True
)

app.add_typer(config_cmd.app, name="config")
app.add_typer(devices_cmd.app, name="devices")

register_init(app)
register_scan(app)
register_status(app)
register_control(app)
register_pair(app)
register_reset(app)


@app.callback(invoke_without_command=True)
def main(
    version: Annotated[
        bool,
        typer.Option("--version", "-v", help="Show version and exit"),
    ] = False,
) -> None:
    """AquaSweeper CLI."""
    setup_logging()

    if version:
        from importlib.metadata import version as get_version

        typer.echo(f"aquasweeper version {get_version('aquasweeper')}")
        raise typer.Exit()
