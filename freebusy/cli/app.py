"""
Main CLI application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, List, Optional

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.http_repository import BookingApiClient, HttpCalendarRepository, HttpLocationRepository
from ..adapters.memory import load_repositories
from ..config import AppConfig, get_default_config_path
from ..domain.cron import OneShot, RepeatKind, plan_reminder
from ..domain.exceptions import AvailabilityError
from ..domain.models import AvailabilityQuery, Interval
from ..services.availability_resolver import AvailabilityResolver

app = typer.Typer(
    name="freebusy",
    help="Find common free time across booking calendars",
    add_completion=False
)

console = Console()

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _load_config(config_file: Optional[Path]) -> AppConfig:
    """Load the config file, or defaults when none exists and none was requested."""
    config_path = config_file or get_default_config_path()

    if config_file is None and not config_path.exists():
        logger.debug("No config file at %s, using defaults", config_path)
        return AppConfig()

    return AppConfig.load_from_yaml(config_path)


def _parse_date_option(value: str, tz: str, label: str):
    try:
        return pendulum.parse(value, tz=tz)
    except Exception as e:
        console.print(f"[red]Could not parse {label} '{value}': {e}[/red]")
        raise typer.Exit(1)


def _build_resolver(config: AppConfig, data_file: Optional[Path]) -> AvailabilityResolver:
    """Pick the repository backend: JSON data file first, then the REST API."""
    data_path = data_file or config.repository.data_file

    if data_path is not None:
        calendars, locations = load_repositories(data_path, timezone=config.timezone)
        for location_id, schedule in config.schedules().items():
            locations.add_schedule(location_id, schedule)
    elif config.repository.base_url:
        client = BookingApiClient(
            base_url=config.repository.base_url,
            timeout_seconds=config.repository.timeout_seconds,
        )
        calendars = HttpCalendarRepository(client, timezone=config.timezone)
        locations = HttpLocationRepository(client)
    else:
        console.print(
            "[bold red]Error:[/bold red] No data source. "
            "Pass --data or set repository.base_url / repository.data_file in the config."
        )
        raise typer.Exit(1)

    return AvailabilityResolver(
        calendar_repository=calendars,
        location_repository=locations,
        timeout_seconds=config.repository.timeout_seconds,
    )


@app.command()
def find(
    entities: Annotated[List[str], typer.Argument(help="Entity ids or configured aliases")],
    config_file: Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")] = None,
    data_file: Annotated[Optional[Path], typer.Option("--data", help="JSON file with calendars and locations")] = None,
    start: Annotated[Optional[str], typer.Option("--start", help="Range start (ISO 8601). Defaults to now")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="Range end (ISO 8601)")] = None,
    location: Annotated[Optional[str], typer.Option("--location", "-l", help="Clip to this location's opening hours")] = None,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Minimum slot length in minutes")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging")] = False,
):
    """
    Find the time in which all entities are free.

    Examples:

        freebusy find alice bob --data calendars.json

        freebusy find alice --location shop --start 2025-07-07 --end 2025-07-12
    """
    _configure_logging(verbose)

    try:
        config = _load_config(config_file)
        tz = config.timezone

        range_start = _parse_date_option(start, tz, "start") if start else pendulum.now(tz)
        if end:
            range_end = _parse_date_option(end, tz, "end")
        else:
            range_end = range_start.add(days=config.defaults.range_days)

        entity_ids = config.resolve_entities(entities)
        min_duration = duration if duration is not None else config.defaults.duration_minutes

        resolver = _build_resolver(config, data_file)
        query = AvailabilityQuery(
            entity_ids=tuple(entity_ids),
            range_start=range_start,
            range_end=range_end,
            location_id=location,
            min_duration_minutes=min_duration,
        )

        console.print(f"\n[bold cyan]Entities:[/bold cyan] {', '.join(entity_ids)}")
        console.print(
            f"[bold cyan]Range:[/bold cyan] {range_start.format('YYYY-MM-DD HH:mm')} - "
            f"{range_end.format('YYYY-MM-DD HH:mm')} ({tz})"
        )
        if location:
            console.print(f"[bold cyan]Location:[/bold cyan] {location}")
        console.print()

        slots = asyncio.run(resolver.find_common_free_slots(query))

        if not slots:
            console.print(
                "[yellow]No common free time found.[/yellow]\n"
                "Try a longer range or a shorter minimum duration."
            )
        else:
            console.print(
                f"[bold green]{len(slots)} common free slot(s), "
                f"{slots.total_minutes()} min in total:[/bold green]\n"
            )
            for slot in slots:
                local = Interval(start=slot.start.in_timezone(tz), end=slot.end.in_timezone(tz))
                console.print(f"  {local.format_display()}")

        console.print()

    except (FileNotFoundError, ValueError, AvailabilityError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def cron(
    when: Annotated[str, typer.Argument(help="Reminder time (ISO 8601)")],
    repeat: Annotated[RepeatKind, typer.Option("--repeat", "-r", case_sensitive=False, help="Repeat kind")] = RepeatKind.WEEKLY,
    config_file: Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file")] = None,
):
    """
    Show how a reminder would be dispatched (cron pattern or one-shot delay).
    """
    try:
        config = _load_config(config_file)
        tz = config.reminder_timezone
        time = _parse_date_option(when, tz, "time")

        plan = plan_reminder(time, repeat, timezone=tz)

        if plan is None:
            console.print("[yellow]Reminder time has passed, nothing would be scheduled.[/yellow]")
        elif isinstance(plan, OneShot):
            console.print(Panel.fit(
                f"[bold]One-shot[/bold] in {plan.delay.in_words()}\n"
                f"[bold]Fires at:[/bold] {time.format('YYYY-MM-DD HH:mm')} ({tz})",
                title="Reminder plan",
            ))
        else:
            console.print(Panel.fit(
                f"[bold]Cron:[/bold] {plan.cron}\n"
                f"[bold]Repeat:[/bold] {repeat.value} ({tz})",
                title="Reminder plan",
            ))

    except (FileNotFoundError, ValueError, AvailabilityError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def schedule(
    location: Annotated[str, typer.Argument(help="Location id")],
    config_file: Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file")] = None,
    data_file: Annotated[Optional[Path], typer.Option("--data", help="JSON file with calendars and locations")] = None,
):
    """
    Show the weekly opening hours of a location.
    """
    try:
        config = _load_config(config_file)
        configured = config.schedules()

        if location in configured:
            location_schedule = configured[location]
        else:
            data_path = data_file or config.repository.data_file
            if data_path is None:
                console.print(f"[yellow]Location {location} is not configured.[/yellow]")
                raise typer.Exit(1)
            _, locations = load_repositories(data_path, timezone=config.timezone)
            location_schedule = asyncio.run(locations.get_schedule(location))

        table = Table(
            title=f"Opening hours of {location} ({location_schedule.timezone})",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Day", style="bold yellow")
        table.add_column("Open")
        table.add_column("Close")

        for entry in sorted(location_schedule.entries, key=lambda e: e.weekday):
            table.add_row(
                entry.weekday.name.title(),
                entry.open.strftime("%H:%M"),
                entry.close.strftime("%H:%M"),
            )

        console.print()
        console.print(table)
        console.print()

    except (FileNotFoundError, ValueError, AvailabilityError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]freebusy[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
