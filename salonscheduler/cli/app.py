"""
Main CLI application using Typer.
"""

import asyncio
import logging
import random
from pathlib import Path
from typing import Annotated, List, Optional

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..adapters.memory_store import InMemoryAppointmentStore
from ..config import AppConfig, get_default_config_path
from ..domain.conflict_guard import Rejected, RejectionReason
from ..domain.exceptions import InvalidPolicy, SchedulingError
from ..domain.models import TimeRange
from ..services.scheduling_service import SchedulingService
from ..services.seeder import AppointmentSeeder

app = typer.Typer(
    name="salonscheduler",
    help="Check availability and book salon appointments",
    add_completion=False
)

console = Console()

REJECTION_MESSAGES = {
    RejectionReason.TOO_SOON: "Too short notice: appointments must be booked {hours} hours in advance.",
    RejectionReason.TOO_FAR_AHEAD: "Too far ahead: appointments can be booked at most {days} days in advance.",
    RejectionReason.OUTSIDE_WORKING_HOURS: "The requested time is outside working hours.",
    RejectionReason.CONFLICT: "The requested time overlaps an existing appointment ({appointment}).",
    RejectionReason.CONTENTION: "The calendar is busy right now, please try again.",
}

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")] = False,
):
    """
    Salon appointment scheduler.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _load(config_file: Optional[Path]):
    """Load config and the appointment store it points to."""
    config_path = config_file or get_default_config_path()
    config = AppConfig.load_from_yaml(config_path)

    store = InMemoryAppointmentStore(policies=config.build_policies())
    appointments_path = config.appointments_path(config_path.parent)
    store.load_json(appointments_path)

    return config, store, appointments_path


def _parse_date(value: str, tz: str, label: str):
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz).date()
    except ValueError as e:
        console.print(f"[red]Could not parse {label}: {e}[/red]")
        raise typer.Exit(1)


def _describe_rejection(decision: Rejected, config: AppConfig, resource_id: str) -> str:
    policy = config.policy_for(resource_id)
    return REJECTION_MESSAGES[decision.reason].format(
        hours=policy.min_advance_booking_hours,
        days=policy.max_advance_booking_days,
        appointment=decision.conflicting_appointment_id,
    )


@app.command()
def availability(
    resource: Annotated[str, typer.Argument(help="Resource id or name (e.g. 'ana').")],
    config_file: ConfigOption = None,
    start: Annotated[Optional[str], typer.Option("--start", help="Start date (YYYY-MM-DD)")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="End date (YYYY-MM-DD)")] = None,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Slot length in minutes")] = None,
):
    """
    List bookable slots for a resource.

    Examples:

        salonscheduler availability ana
        salonscheduler availability ana --start 2024-03-04 --end 2024-03-08 --duration 30
    """
    try:
        config, store, _ = _load(config_file)
        resource_id = config.resolve_resource(resource)
        tz = config.timezone

        today = pendulum.today(tz).date()
        start_date = _parse_date(start, tz, "start date") if start else today
        end_date = _parse_date(end, tz, "end date") if end else start_date.add(days=7)

        service = SchedulingService(store, max_commit_attempts=config.max_commit_attempts)
        slots = asyncio.run(
            service.get_availability(resource_id, start_date, end_date, duration_minutes=duration)
        )

        console.print()
        if not slots:
            console.print(
                "[yellow]⚠ No available slots found.[/yellow]\n"
                "Try a longer date range or a shorter duration."
            )
        else:
            console.print(f"[bold green]✓ {len(slots)} available slot(s) for {resource_id}:[/bold green]\n")
            for slot in slots:
                console.print(f"  {slot.format_display()}")
        console.print()

    except InvalidPolicy as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e}")
        raise typer.Exit(1)

    except (FileNotFoundError, ValueError, SchedulingError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def book(
    resource: Annotated[str, typer.Argument(help="Resource id or name.")],
    start: Annotated[str, typer.Argument(help="Start time (YYYY-MM-DD HH:mm)")],
    config_file: ConfigOption = None,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Length in minutes")] = None,
    client: Annotated[Optional[str], typer.Option("--client", help="Client reference")] = None,
    service_ref: Annotated[Optional[str], typer.Option("--service", help="Service reference")] = None,
):
    """
    Book an appointment.
    """
    try:
        config, store, appointments_path = _load(config_file)
        resource_id = config.resolve_resource(resource)
        policy = config.policy_for(resource_id)

        try:
            start_time = pendulum.from_format(start, "YYYY-MM-DD HH:mm", tz=config.timezone)
        except ValueError as e:
            console.print(f"[red]Could not parse start time: {e}[/red]")
            raise typer.Exit(1)

        minutes = duration if duration is not None else policy.slot_duration_minutes
        if minutes <= 0:
            console.print("[red]Duration must be positive.[/red]")
            raise typer.Exit(1)
        proposed = TimeRange(start=start_time, end=start_time.add(minutes=minutes))

        service = SchedulingService(store, max_commit_attempts=config.max_commit_attempts)
        decision = asyncio.run(
            service.book_appointment(resource_id, proposed, client_ref=client, service_ref=service_ref)
        )

        if isinstance(decision, Rejected):
            console.print(f"[bold red]✗ Rejected:[/bold red] {_describe_rejection(decision, config, resource_id)}")
            raise typer.Exit(2)

        store.save_json(appointments_path)
        console.print(f"[bold green]✓ Booked {proposed}[/bold green] (id: {decision.appointment_id})")

    except InvalidPolicy as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e}")
        raise typer.Exit(1)

    except (FileNotFoundError, ValueError, SchedulingError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def cancel(
    appointment_id: Annotated[str, typer.Argument(help="Appointment id")],
    config_file: ConfigOption = None,
):
    """
    Cancel an appointment, releasing its time.
    """
    try:
        _, store, appointments_path = _load(config_file)
        try:
            store.cancel_appointment(appointment_id)
        except KeyError:
            console.print(f"[bold red]Error:[/bold red] Unknown appointment: {appointment_id}")
            raise typer.Exit(1)
        store.save_json(appointments_path)
        console.print(f"[green]✓ Appointment {appointment_id} cancelled.[/green]")

    except (FileNotFoundError, ValueError, SchedulingError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def resources(config_file: ConfigOption = None):
    """
    List all configured resources and their policies.
    """
    try:
        config_path = config_file or get_default_config_path()
        config = AppConfig.load_from_yaml(config_path)

        if not config.resources:
            console.print("[yellow]No resources defined in the config file.[/yellow]")
            return

        table = Table(
            title="Configured resources",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Id", style="bold yellow")
        table.add_column("Name")
        table.add_column("E-Mail", style="dim")
        table.add_column("Slot / Buffer")
        table.add_column("Notice / Horizon")

        for resource in config.resources:
            policy = config.policy_for(resource.id)
            table.add_row(
                resource.id,
                resource.display_name(),
                resource.email,
                f"{policy.slot_duration_minutes} / {policy.buffer_minutes} min",
                f"{policy.min_advance_booking_hours} h / {policy.max_advance_booking_days} d",
            )

        console.print()
        console.print(table)
        console.print()

    except InvalidPolicy as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e}")
        raise typer.Exit(1)

    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def appointments(
    resource: Annotated[Optional[str], typer.Argument(help="Only show this resource.")] = None,
    config_file: ConfigOption = None,
    show_cancelled: Annotated[bool, typer.Option("--all", help="Include cancelled appointments.")] = False,
):
    """
    List stored appointments.
    """
    try:
        config, store, _ = _load(config_file)
        resource_id = config.resolve_resource(resource) if resource else None

        rows = [
            appointment
            for appointment in store.appointments(resource_id)
            if show_cancelled or appointment.blocks_time
        ]
        if not rows:
            console.print("[yellow]No appointments found.[/yellow]")
            return

        table = Table(title="Appointments", show_header=True, header_style="bold cyan")
        table.add_column("Id", style="dim")
        table.add_column("Resource", style="bold yellow")
        table.add_column("Time")
        table.add_column("Status")
        table.add_column("Client")

        for appointment in rows:
            table.add_row(
                appointment.id,
                appointment.resource_id,
                str(appointment.time_range),
                appointment.status.value,
                appointment.client_ref or "",
            )

        console.print()
        console.print(table)
        console.print()

    except (FileNotFoundError, ValueError, SchedulingError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def seed(
    config_file: ConfigOption = None,
    days: Annotated[int, typer.Option("--days", help="Number of days to fill")] = 7,
    fill: Annotated[float, typer.Option("--fill", help="Share of free slots to book (0-1)")] = 0.6,
    seed_value: Annotated[Optional[int], typer.Option("--seed", help="Random seed for repeatable data")] = None,
    clients: Annotated[Optional[List[str]], typer.Option("--client", help="Client references to use")] = None,
):
    """
    Fill every resource's calendar with random demo appointments.
    """
    try:
        config, store, appointments_path = _load(config_file)
        rng = random.Random(seed_value)
        now = pendulum.now(config.timezone)

        total = 0
        for resource in config.resources:
            seeder = AppointmentSeeder(config.policy_for(resource.id), rng=rng, fill_ratio=fill)
            generated = seeder.generate(
                resource.id,
                start_day=now.date(),
                days=days,
                now=now,
                existing=store.appointments(resource.id),
                client_refs=clients,
            )
            for appointment in generated:
                store.add(appointment)
            total += len(generated)
            console.print(f"  {resource.display_name()}: {len(generated)} appointment(s)")

        store.save_json(appointments_path)
        console.print(f"\n[green]✓ Created {total} appointment(s) in {appointments_path}[/green]")

    except InvalidPolicy as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e}")
        raise typer.Exit(1)

    except (FileNotFoundError, ValueError, SchedulingError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]salonscheduler[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
