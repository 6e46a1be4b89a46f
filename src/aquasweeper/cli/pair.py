"""Interactive pairing: walks the user through each step and retries on request."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TypeVar

import typer
from rich.console import Console

from aquasweeper.core import PairingWorkflow
from aquasweeper.errors import AquaSweeperError
from aquasweeper.models import DeviceRecord
from aquasweeper.services import AquaSweeperServices

from .common import build_services, load_settings_or_exit, run_or_exit

T = TypeVar("T")


async def _until_done(
    console: Console, step: Callable[[], Awaitable[T]], prompt: str | None = None
) -> T:
    if prompt:
        typer.confirm(prompt, default=True, abort=True)
    while True:
        try:
            return await step()
        except AquaSweeperError as exc:
            console.print(f"[red]✗[/red] {exc}")
        typer.confirm("Try again?", default=True, abort=True)


def _collect_credentials(workflow: PairingWorkflow) -> None:
    saved = workflow.resume_credentials()
    ssid = typer.prompt("Home Wi-Fi name", default=saved.ssid if saved else None)
    password = typer.prompt(
        "Home Wi-Fi password",
        hide_input=True,
        default=saved.password if saved else None,
        show_default=False,
    )
    workflow.submit_home_credentials(ssid, password)


async def _locate(workflow: PairingWorkflow, console: Console) -> str:
    typer.confirm("Are you back on your home Wi-Fi?", default=True, abort=True)
    while True:
        try:
            return await workflow.locate_on_home_network()
        except AquaSweeperError as exc:
            console.print(f"[red]✗[/red] {exc}")

        if workflow.session.manual_entry_offered:
            address = typer.prompt(
                "Device IP address (leave empty to scan again)",
                default="",
                show_default=False,
            )
            if address:
                try:
                    return await workflow.use_manual_address(address)
                except (AquaSweeperError, ValueError) as exc:
                    console.print(f"[red]✗[/red] {exc}")
        typer.confirm("Scan again?", default=True, abort=True)


async def _pair(services: AquaSweeperServices, console: Console) -> DeviceRecord:
    workflow = services.new_pairing()
    prefix = services.settings.discovery.ap_ssid_prefix
    try:
        _collect_credentials(workflow)

        console.print(f"\nJoin the Wi-Fi network whose name starts with [bold]{prefix}[/bold].")
        if workflow.refresh_ap_link():
            console.print("[green]Looks like you are on the device network.[/green]")
        status = await _until_done(
            console, workflow.confirm_ap_connection, "Connected to the device network?"
        )
        console.print(
            f"[green]✓[/green] Device answered: {status.operating_state}, "
            f"battery {status.battery_level:g}%"
        )

        await _until_done(console, workflow.configure_home_wifi)
        console.print("[green]✓[/green] Home Wi-Fi sent to the device")

        console.print("\nReconnect this computer to your home Wi-Fi.")
        address = await _locate(workflow, console)
        console.print(f"[green]✓[/green] Device found at {address}")

        return await _until_done(console, workflow.finalize)
    finally:
        workflow.abandon()
        await services.connection.disconnect()


def register(app: typer.Typer) -> None:
    @app.command()
    def pair() -> None:
        """Pair a new AquaSweeper with your home Wi-Fi."""
        console = Console()

        settings = load_settings_or_exit()
        services = build_services(settings)
        record = run_or_exit(_pair(services, console))
        console.print(
            f"[green]✓[/green] Paired {record.display_name} ({record.identity}) "
            f"at {record.current_address}"
        )
