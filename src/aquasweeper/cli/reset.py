from __future__ import annotations

from typing import Annotated

import typer
from rich.console import Console

from .common import build_services, load_settings_or_exit, run_or_exit


def register(app: typer.Typer) -> None:
    @app.command()
    def reset(
        address: Annotated[str, typer.Argument(help="IP address of the device")],
        yes: Annotated[
            bool, typer.Option("--yes", "-y", help="Do not ask for confirmation")
        ] = False,
    ) -> None:
        """Factory-reset a device, wiping its Wi-Fi credentials."""
        console = Console()
        if not yes:
            typer.confirm(f"Factory-reset the device at {address}?", abort=True)

        settings = load_settings_or_exit()
        services = build_services(settings)
        run_or_exit(services.probe.factory_reset(address))
        console.print(
            f"[green]✓[/green] Reset accepted. The device will restart with its own "
            f"{settings.discovery.ap_ssid_prefix}* network."
        )
