"""
Command-line interface for sensorwatch.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import TypeVar

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from sensorwatch.client import MonitorClient
from sensorwatch.config import load_config
from sensorwatch.errors import (
    InvalidCredentials,
    LogoutFailed,
    NetworkError,
    NotAuthenticated,
    OperationInProgress,
    SensorwatchError,
)

app = typer.Typer(
    name="sensorwatch",
    help="Sensorwatch - temperature and fuel sensor monitoring client",
)
console = Console()

T = TypeVar("T")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
):
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=verbose, show_path=False)],
    )


def _run(command: Callable[[MonitorClient], Awaitable[T]]) -> T:
    """
    Run command against a started client, reporting errors as exit code 1.

    The client is started without the cold-start sweep; commands sweep
    explicitly when they need to.
    """

    async def _with_client():
        client = MonitorClient(load_config())
        try:
            await client.start()
            return await command(client)
        finally:
            await client.close()

    try:
        return asyncio.run(_with_client())
    except NotAuthenticated:
        console.print("[red]Not logged in.[/red] Run [bold]sensorwatch login[/bold] first.")
        raise typer.Exit(1) from None
    except SensorwatchError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from None


@app.command()
def login(
    email: str = typer.Option(..., "--email", "-e", prompt=True, help="Account email"),
    password: str = typer.Option(..., "--password", "-p", prompt=True, hide_input=True, help="Account password"),
):
    """Log in and persist the session."""

    async def _login(client: MonitorClient):
        try:
            session = await client.login(email, password)
        except InvalidCredentials:
            console.print("[red]Invalid email or password.[/red]")
            return
        except OperationInProgress:
            console.print("[yellow]A login is already in progress.[/yellow]")
            return
        except NetworkError as e:
            console.print(f"[red]Could not reach the backend:[/red] {e}")
            return

        console.print(f"[green]Logged in as user {session.user_id}[/green] ({session.role.value})")
        sensors = await client.sensors()
        console.print(f"{len(sensors)} sensors assigned")

        result = await client.cold_start()
        if result is not None and result.delivered:
            console.print(f"[red]{len(result.delivered)} alerts[/red] raised on the first sweep")

    _run(_login)


@app.command()
def logout():
    """Log out and clear local state."""

    async def _logout(client: MonitorClient):
        if client.session is None:
            console.print("[yellow]Not logged in.[/yellow]")
            await client.logout()
            return
        try:
            await client.logout()
        except LogoutFailed as e:
            console.print(f"[yellow]Logged out locally only:[/yellow] {e.cause}")
            return
        console.print("[green]Logged out.[/green]")

    _run(_logout)


@app.command()
def status():
    """Show the session, sensors and mute state."""

    async def _status(client: MonitorClient):
        session = client.session
        if session is None:
            console.print("[yellow]Not logged in.[/yellow]")
            return

        console.print("\n[bold]Session[/bold]")
        console.print(f"  User: {session.user_id}")
        console.print(f"  Role: {session.role.value}")
        console.print(f"  Since: {session.issued_at:%Y-%m-%d %H:%M}")

        user_id = session.user_id
        global_muted = await client.mute.is_global_muted(user_id)
        console.print(f"  Notifications: {'[red]muted[/red]' if global_muted else '[green]on[/green]'}")

        sensors = await client.sensors()
        if not sensors:
            console.print("\n[yellow]No sensors assigned.[/yellow]")
            return

        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Sensor")
        table.add_column("Kind")
        table.add_column("Range")
        table.add_column("Muted")

        for sensor in sensors:
            muted = await client.mute.is_sensor_muted(user_id, sensor.name)
            unit = sensor.kind.unit
            table.add_row(
                sensor.name,
                sensor.kind.value,
                f"{sensor.min_threshold:g}{unit} .. {sensor.max_threshold:g}{unit}",
                "yes" if muted else "-",
            )

        console.print()
        console.print(table)

    _run(_status)


@app.command()
def sweep():
    """Fetch the latest readings and raise alerts."""

    async def _sweep(client: MonitorClient):
        result = await client.sweep()

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Sensor")
        table.add_column("Value")
        table.add_column("Observed")
        table.add_column("Alert")

        delivered = {a.sensor_name: a for a in result.delivered}
        suppressed = {a.sensor_name: a for a in result.suppressed}

        for name, reading in result.readings.items():
            if name in delivered:
                alert = f"[red]{delivered[name].message}[/red]"
            elif name in suppressed:
                alert = f"[dim]{suppressed[name].message} (muted)[/dim]"
            else:
                alert = "[green]ok[/green]"
            table.add_row(name, f"{reading.value:g}", f"{reading.observed_at:%Y-%m-%d %H:%M}", alert)

        for unreachable in result.unreachable:
            table.add_row(unreachable.sensor_name, "-", "-", f"[yellow]unreachable: {unreachable.reason}[/yellow]")

        console.print(table)
        console.print(
            f"\n[bold]{len(result.alerts)}[/bold] alerts, "
            f"[bold]{len(result.delivered)}[/bold] delivered, "
            f"[bold]{len(result.suppressed)}[/bold] muted"
        )

    _run(_sweep)


@app.command()
def notifications(
    page: int = typer.Option(1, "--page", "-n", min=1, help="Page of the remote history, newest first"),
):
    """Show local and remote notification history."""

    async def _notifications(client: MonitorClient):
        view = await client.open_notifications(page)

        console.print("\n[bold]This device[/bold]")
        if view.local:
            console.print(_records_table(reversed(view.local)))
        else:
            console.print("[dim]No notifications.[/dim]")

        console.print("\n[bold]Account history[/bold]")
        if view.remote is None:
            console.print(f"[yellow]Unavailable:[/yellow] {view.remote_error}")
        elif not view.remote.records:
            console.print("[dim]No notifications.[/dim]")
        else:
            console.print(_records_table(view.remote))
            if not view.remote.end_of_data:
                console.print(f"[dim]More with --page {page + 1}[/dim]")

    _run(_notifications)


def _records_table(records) -> Table:
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Date")
    table.add_column("Sensor")
    table.add_column("Message")

    for record in records:
        table.add_row(f"{record.created_at:%Y-%m-%d %H:%M}", record.sensor_name or "-", record.message)
    return table


@app.command()
def history(
    sensor: str = typer.Argument(..., help="Sensor name"),
    limit: int = typer.Option(25, "--limit", "-l", min=1, help="Number of readings"),
    start: datetime = typer.Option(None, "--start", formats=["%Y-%m-%d"], help="First day (YYYY-MM-DD)"),
    end: datetime = typer.Option(None, "--end", formats=["%Y-%m-%d"], help="Last day (YYYY-MM-DD)"),
):
    """Show recent readings of one sensor."""

    async def _history(client: MonitorClient):
        try:
            result = await client.history(
                sensor,
                limit=limit,
                start=start.date() if start else None,
                end=end.date() if end else None,
            )
        except ValueError as e:
            console.print(f"[red]{e}[/red]")
            return

        unit = result.unit
        if result.min_threshold is not None and result.max_threshold is not None:
            console.print(f"Range: {result.min_threshold:g}{unit} .. {result.max_threshold:g}{unit}")
        if not result.readings:
            console.print("[yellow]No readings in range.[/yellow]")
            return

        flagged = {id(r) for r in result.out_of_range()}
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Observed")
        table.add_column("Value")
        for reading in result.readings:
            value = f"{reading.value:g}{unit}"
            table.add_row(
                f"{reading.observed_at:%Y-%m-%d %H:%M}",
                f"[red]{value}[/red]" if id(reading) in flagged else value,
            )
        console.print(table)

    _run(_history)


@app.command()
def thresholds(
    sensor: str = typer.Argument(..., help="Sensor name"),
    minimum: float = typer.Option(None, "--min", help="New lower bound"),
    maximum: float = typer.Option(None, "--max", help="New upper bound"),
):
    """Change a sensor's alert thresholds."""

    async def _thresholds(client: MonitorClient):
        try:
            updated = await client.update_thresholds(sensor, min_threshold=minimum, max_threshold=maximum)
        except ValueError as e:
            console.print(f"[red]{e}[/red]")
            return
        unit = updated.kind.unit
        console.print(
            f"[green]{updated.name}[/green] range is now "
            f"{updated.min_threshold:g}{unit} .. {updated.max_threshold:g}{unit}"
        )

    _run(_thresholds)


def _set_muted(muted: bool, sensor: str | None) -> None:
    async def _mute(client: MonitorClient):
        result = await client.set_muted(muted, sensor_name=sensor)
        target = f"sensor {sensor}" if sensor else "all notifications"
        verb = "Muted" if muted else "Unmuted"
        if result.synced:
            console.print(f"[green]{verb} {target}.[/green]")
        else:
            console.print(f"[yellow]{verb} {target} locally; the backend will be updated on next refresh.[/yellow]")

    _run(_mute)


@app.command()
def mute(
    sensor: str = typer.Option(None, "--sensor", "-s", help="Only this sensor"),
):
    """Mute notifications."""
    _set_muted(True, sensor)


@app.command()
def unmute(
    sensor: str = typer.Option(None, "--sensor", "-s", help="Only this sensor"),
):
    """Unmute notifications."""
    _set_muted(False, sensor)


if __name__ == "__main__":
    app()
