from __future__ import annotations

from enum import Enum
from typing import Annotated

import typer
from rich.console import Console

from aquasweeper.models import DeviceCommand, DeviceStatus
from aquasweeper.services import AquaSweeperServices

from .common import build_services, load_settings_or_exit, run_or_exit
from .status import connect_last_device, print_status


class Action(str, Enum):
    START = "start"
    STOP = "stop"
    PAUSE = "pause"


async def _send(services: AquaSweeperServices, command: DeviceCommand) -> DeviceStatus | None:
    try:
        await connect_last_device(services)
        return await services.connection.send_command(command)
    finally:
        await services.connection.disconnect()


def register(app: typer.Typer) -> None:
    @app.command()
    def control(
        action: Annotated[Action, typer.Argument(help="What the device should do")],
    ) -> None:
        """Send a start, stop or pause command to the last used device."""
        console = Console()

        settings = load_settings_or_exit()
        services = build_services(settings)
        record = services.last_device()
        if record is None:
            typer.echo("No paired device. Run 'aquasweeper pair' first.", err=True)
            raise typer.Exit(1)

        status = run_or_exit(_send(services, DeviceCommand[action.name]))
        console.print(f"[green]✓[/green] {action.value} accepted")
        if status is not None:
            print_status(console, services.connection.record or record, status)
