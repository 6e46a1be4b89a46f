from __future__ import annotations

from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from aquasweeper.models import normalize_mac
from aquasweeper.utils.redaction import Redactor

from .common import build_database, load_settings_or_exit

app = typer.Typer(no_args_is_help=True, help="Manage paired devices")


@app.command("list")
def list_devices(
    redact: bool = typer.Option(False, "--redact", help="Redact sensitive values"),
) -> None:
    console = Console()
    settings = load_settings_or_exit()
    db = build_database(settings)
    registry = db.load_devices()

    if not registry.devices:
        console.print("No paired devices. Run 'aquasweeper pair' to add one.")
        return

    cache = db.load_address_cache()
    redactor = Redactor(enabled=redact)
    table = Table()
    table.add_column("Name", style="green")
    table.add_column("MAC Address")
    table.add_column("Address", style="cyan")
    table.add_column("Firmware")
    table.add_column("Last seen")

    for identity, record in sorted(registry.devices.items()):
        name = record.display_name
        if identity == registry.last_connected:
            name = f"{name} *"
        address = cache.get(identity, record.current_address)
        last_seen = record.last_seen_at.strftime("%Y-%m-%d %H:%M") if record.last_seen_at else ""
        table.add_row(
            name,
            redactor.redact_mac(identity),
            redactor.redact_ip(address),
            record.firmware_version or "",
            last_seen,
        )
    console.print(table)


@app.command("forget")
def forget_device(
    identity: Annotated[str, typer.Argument(help="MAC address of the device")],
) -> None:
    settings = load_settings_or_exit()
    db = build_database(settings)
    try:
        identity = normalize_mac(identity)
    except ValueError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1) from exc

    if not db.remove_device(identity):
        typer.echo(f"No paired device {identity}", err=True)
        raise typer.Exit(1)
    typer.echo(f"Forgot {identity}")
