from __future__ import annotations

import asyncio

import typer
from rich.console import Console

from aquasweeper.errors import DeviceNotFound
from aquasweeper.models import DeviceRecord, DeviceStatus
from aquasweeper.services import AquaSweeperServices

from .common import build_services, load_settings_or_exit, run_or_exit


def print_status(console: Console, record: DeviceRecord, status: DeviceStatus) -> None:
    summary = status.summary()
    console.print(f"[bold]{record.display_name}[/bold] at {record.current_address}")
    console.print(f"  State:   {summary['state']}")
    console.print(f"  Battery: {summary['battery']:g}%")
    if summary["is_running"] is not None:
        console.print(f"  Running: {'yes' if summary['is_running'] else 'no'}")
    if summary["is_paused"] is not None:
        console.print(f"  Paused:  {'yes' if summary['is_paused'] else 'no'}")


async def connect_last_device(services: AquaSweeperServices) -> DeviceStatus:
    status = await services.restore_last_device()
    if status is None:
        raise DeviceNotFound("Could not reach the last connected device")
    return status


async def _show_status(services: AquaSweeperServices, console: Console, watch: float) -> None:
    manager = services.connection
    try:
        status = await connect_last_device(services)
        assert manager.record is not None
        print_status(console, manager.record, status)
        if watch <= 0:
            return

        record = manager.record
        manager.on_status(lambda update: print_status(console, record, update))
        manager.on_connection_change(
            lambda phase: console.print(f"[yellow]Connection: {phase.value}[/yellow]")
        )
        await asyncio.sleep(watch)
    finally:
        await manager.disconnect()


def register(app: typer.Typer) -> None:
    @app.command()
    def status(
        watch: float = typer.Option(
            0.0, "--watch", "-w", help="Keep polling and printing for this many seconds"
        ),
    ) -> None:
        """Connect to the last used device and show its status."""
        console = Console()

        settings = load_settings_or_exit()
        services = build_services(settings)
        if services.last_device() is None:
            typer.echo("No paired device. Run 'aquasweeper pair' first.", err=True)
            raise typer.Exit(1)

        run_or_exit(_show_status(services, console, watch))
