from __future__ import annotations

import logging

import typer
from rich.console import Console
from rich.table import Table

from aquasweeper.core import NetworkState, StaticNetworkObserver
from aquasweeper.core.scanner import DiscoveryResult
from aquasweeper.models import normalize_mac
from aquasweeper.utils.redaction import Redactor

from .common import build_services, load_settings_or_exit, run_or_exit

logger = logging.getLogger(__name__)


def register(app: typer.Typer) -> None:
    @app.command()
    def scan(
        identity: str | None = typer.Option(
            None, "--identity", "-i", help="Only accept the device with this MAC address"
        ),
        subnet: str | None = typer.Option(
            None,
            "--subnet",
            help="Sweep this /24 prefix (e.g. 192.168.1) instead of the local one",
        ),
        common: bool = typer.Option(
            True, help="Also try common home subnets after the local one"
        ),
        redact: bool = typer.Option(
            False,
            "--redact",
            help="Redact sensitive values in output",
        ),
    ) -> None:
        """Find an AquaSweeper on the network."""
        console = Console()

        settings = load_settings_or_exit()
        if identity is not None:
            try:
                identity = normalize_mac(identity)
            except ValueError as exc:
                typer.echo(str(exc), err=True)
                raise typer.Exit(1) from exc

        observer: StaticNetworkObserver | None = None
        if subnet is not None:
            observer = StaticNetworkObserver(
                NetworkState(connected=True, local_ip=f"{subnet.rstrip('.')}.1")
            )
        services = build_services(settings, observer=observer)

        console.print(f"Scanning for {identity or 'any AquaSweeper'}...")
        logger.info(
            "Scan settings: sweep_timeout=%.2fs, common_subnets=%s",
            settings.discovery.sweep_timeout,
            ",".join(settings.discovery.common_subnets) if common else "off",
        )
        result: DiscoveryResult = run_or_exit(
            services.scanner.find(identity, include_common=common)
        )

        known = services.database.load_devices().devices
        redactor = Redactor(enabled=redact)
        info = result.info
        record = known.get(info.identity or "")

        table = Table()
        table.add_column("IP", style="cyan")
        table.add_column("Name", style="green")
        table.add_column("Paired as", style="yellow")
        table.add_column("MAC Address")
        table.add_column("Firmware")
        table.add_column("Found via")
        table.add_row(
            redactor.redact_ip(result.address),
            info.name or "",
            record.display_name if record else "",
            redactor.redact_mac(info.identity),
            info.firmware_version or "",
            result.source,
        )
        console.print(table)
