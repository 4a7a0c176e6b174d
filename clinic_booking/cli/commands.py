"""CLI commands for the clinic booking service."""

import asyncio
import uuid
from datetime import date, datetime
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from clinic_booking.config import get_settings

app = typer.Typer(
    name="clinic-booking",
    help="Clinic appointment availability and booking service",
    add_completion=False,
)
console = Console()


def _parse_date(value: str) -> date:
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        console.print(f"[red]Invalid date: {value}. Use YYYY-MM-DD[/red]")
        raise typer.Exit(1)


async def _with_session(fn):
    """Run *fn(session)* and dispose the engine before the loop closes."""
    from clinic_booking.core.database import _get_engine, get_session_factory

    try:
        async with get_session_factory()() as session:
            return await fn(session)
    finally:
        await _get_engine().dispose()


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", "-h", help="Host to bind"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port to bind"),
    reload: bool = typer.Option(False, "--reload", help="Enable auto-reload"),
):
    """Start the REST API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port

    console.print(f"Starting clinic booking API server on {host}:{port}")
    uvicorn.run(
        "clinic_booking.api.app:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
    )


@app.command("init-db")
def init_db_command(
    seed: bool = typer.Option(False, "--seed", help="Insert demo services, hours and staff"),
):
    """Create tables (and optionally demo data)."""
    from clinic_booking.core.database import _get_engine, init_db, seed_demo_data

    async def run():
        try:
            await init_db()
        finally:
            await _get_engine().dispose()
        if seed:
            await _with_session(seed_demo_data)

    asyncio.run(run())
    console.print("[green]Database initialized[/green]")


@app.command()
def slots(
    service_id: str = typer.Argument(..., help="Service ID"),
    on: str = typer.Option(..., "--date", "-d", help="Date (YYYY-MM-DD)"),
    staff_id: Optional[str] = typer.Option(None, "--staff", "-s", help="Doctor ID"),
):
    """List bookable slots for a service on a date."""
    from clinic_booking.booking.availability import format_time
    from clinic_booking.booking.transaction import BookingService

    target_date = _parse_date(on)
    try:
        sid = uuid.UUID(service_id)
        staff = uuid.UUID(staff_id) if staff_id else None
    except ValueError:
        console.print("[red]IDs must be UUIDs[/red]")
        raise typer.Exit(1)

    service = BookingService()
    found = asyncio.run(_with_session(lambda s: service.open_slots(s, sid, target_date, staff)))
    if found is None:
        console.print(f"[red]Service not found: {service_id}[/red]")
        raise typer.Exit(1)
    if not found:
        console.print(f"[yellow]No slots available on {target_date.isoformat()}[/yellow]")
        return

    table = Table(title=f"Available slots on {target_date.isoformat()}")
    table.add_column("Start")
    table.add_column("End")
    for slot in found:
        table.add_row(format_time(slot.start_time), format_time(slot.end_time))
    console.print(table)


@app.command()
def dates(
    days: Optional[int] = typer.Option(None, "--days", "-n", help="How many days ahead"),
):
    """List upcoming dates the clinic is open for booking."""
    from clinic_booking.booking.transaction import BookingService

    service = BookingService()
    found = asyncio.run(_with_session(lambda s: service.open_dates(s, days)))
    if not found:
        console.print("[yellow]No open dates[/yellow]")
        return
    for day in found:
        console.print(f"{day.isoformat()}  {day.strftime('%A')}")


@app.command()
def stats():
    """Show booking outcome statistics from the event log."""
    from clinic_booking.observability import get_booking_event_logger

    summary = get_booking_event_logger().get_stats()
    if not summary.get("total"):
        console.print("[yellow]No booking events recorded[/yellow]")
        return

    table = Table(title="Booking attempts")
    table.add_column("Metric")
    table.add_column("Value")
    for key in ("total", "committed", "rejected", "failed", "conflicts"):
        table.add_row(key, str(summary[key]))
    table.add_row("conflict_rate", f"{summary['conflict_rate']:.1%}")
    table.add_row("avg_duration_ms", f"{summary['avg_duration_ms']:.1f}")
    console.print(table)


@app.command()
def version():
    """Show version information."""
    from clinic_booking import __version__

    console.print(f"clinic-booking version {__version__}")


if __name__ == "__main__":
    app()
