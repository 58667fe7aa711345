"""
Main CLI application using Typer.
"""

import asyncio
from datetime import date
from pathlib import Path
from typing import Annotated, List, Optional, Tuple

import pendulum
import typer
from pendulum import DateTime
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..adapters.memory_store import InMemoryBookingStore
from ..adapters.rest_client import RestBookingSource
from ..config import AppConfig, get_default_config_path
from ..domain.calendar import week_start_for
from ..domain.exceptions import BookingEngineError
from ..domain.models import (
    CalendarContext,
    PlacementCandidate,
    PlacementOutcome,
    TimeInterval,
    day_of_week,
)
from ..domain.reschedule import DropTarget, RescheduleStage, RescheduleState
from ..logging_setup import configure_logging
from ..services.reschedule import RescheduleWorkflow
from ..services.scheduling import BookingSource, SchedulingService

app = typer.Typer(
    name="bookingengine",
    help="Plan, inspect and reschedule staff bookings",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]
DataOption = Annotated[
    Optional[Path],
    typer.Option("--data", help="JSON booking fixture. Overrides data_file from the config"),
]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging")]

OUTCOME_STYLES = {
    PlacementOutcome.CLEAN: "green",
    PlacementOutcome.CONFLICT: "red",
    PlacementOutcome.OUTSIDE_WORKING_HOURS: "yellow",
    PlacementOutcome.STAFF_TIME_OFF: "yellow",
}

WEEKDAY_NAMES = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]


def _load_config(config_file: Optional[Path]) -> AppConfig:
    """
    Load the config file, or fall back to defaults when no file exists
    at the default location.
    """
    if config_file is not None:
        return AppConfig.load_from_yaml(config_file)

    default_path = get_default_config_path()
    if default_path.exists():
        return AppConfig.load_from_yaml(default_path)
    return AppConfig()


def _build_source(config: AppConfig, data_file: Optional[Path]) -> Tuple[BookingSource, Optional[Path]]:
    """
    Pick the booking source: a JSON fixture if one is given, else the REST API.

    Returns:
        (source, fixture path or None)
    """
    path = data_file or config.data_file
    if path is not None:
        return InMemoryBookingStore.from_file(path, timezone=config.timezone), path

    if config.api is not None:
        source = RestBookingSource(
            base_url=config.api.base_url,
            token=config.api.token,
            timeout_seconds=config.api.timeout_seconds,
            timezone=config.timezone,
        )
        return source, None

    raise ValueError(
        "No booking data configured. Pass --data or set data_file or api in the config file."
    )


def _setup(
    config_file: Optional[Path],
    data_file: Optional[Path],
    verbose: bool,
) -> Tuple[AppConfig, SchedulingService, Optional[Path]]:
    configure_logging(verbose)
    config = _load_config(config_file)
    source, fixture_path = _build_source(config, data_file)
    service = SchedulingService(
        source,
        timezone=config.timezone,
        display=config.display.to_display_window(),
        slot_increment_minutes=config.scheduling.slot_increment_minutes,
    )
    return config, service, fixture_path


def _resolve_staff(config: AppConfig, identifiers: List[str]) -> List[str]:
    """
    Resolve names or ids against the config. Without configured staff,
    identifiers are taken as ids.
    """
    if config.staff:
        return config.resolve_staff_list(identifiers)
    if not identifiers:
        raise ValueError("No staff configured. Pass staff ids explicitly.")
    return list(dict.fromkeys(identifiers))


def _parse_day(value: Optional[str], tz: str) -> date:
    """Parse YYYY-MM-DD; None means today in the business time zone."""
    if value is None:
        today = pendulum.now(tz)
        return date(today.year, today.month, today.day)
    try:
        parsed = pendulum.from_format(value, "YYYY-MM-DD", tz=tz)
    except Exception as e:
        raise ValueError(f"Invalid date '{value}', expected YYYY-MM-DD") from e
    return date(parsed.year, parsed.month, parsed.day)


def _parse_month(value: Optional[str], tz: str) -> date:
    if value is None:
        return _parse_day(None, tz).replace(day=1)
    try:
        parsed = pendulum.from_format(value, "YYYY-MM", tz=tz)
    except Exception as e:
        raise ValueError(f"Invalid month '{value}', expected YYYY-MM") from e
    return date(parsed.year, parsed.month, 1)


def _parse_local_datetime(value: str, tz: str) -> DateTime:
    """Parse a wall-clock time such as 2026-03-02T10:00 in the business time zone."""
    try:
        parsed = pendulum.parse(value, tz=tz)
    except Exception as e:
        raise ValueError(f"Invalid date/time '{value}', expected YYYY-MM-DDTHH:MM") from e
    if not isinstance(parsed, DateTime):
        raise ValueError(f"Invalid date/time '{value}', expected YYYY-MM-DDTHH:MM")
    return parsed


def _format_interval(interval: TimeInterval, tz: str) -> str:
    start = interval.start.in_timezone(tz)
    end = interval.end.in_timezone(tz)
    return f"{start.format('ddd YYYY-MM-DD HH:mm')} - {end.format('HH:mm')}"


def _working_label(context: CalendarContext, day: date) -> str:
    if any(time_off.covers(day) for time_off in context.time_off):
        return "[yellow]time off[/yellow]"
    entry = context.working_hours.entry_for(day_of_week(day)) if context.working_hours else None
    if entry is None or not entry.is_usable():
        return "[dim]not working[/dim]"
    return f"{entry.start_time.strftime('%H:%M')} - {entry.end_time.strftime('%H:%M')}"


def _fail(e: Exception) -> None:
    console.print(f"[bold red]Error:[/bold red] {e}")
    raise typer.Exit(1)


@app.command()
def plan(
    staff: Annotated[str, typer.Argument(help="Staff id or configured name")],
    start: Annotated[str, typer.Argument(help="Local start time (YYYY-MM-DDTHH:MM)")],
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Duration in minutes")] = None,
    exclude: Annotated[Optional[str], typer.Option("--exclude", help="Booking id being moved")] = None,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
    verbose: VerboseOption = False,
):
    """
    Check whether a placement is clean, conflicting or outside availability.

    Examples:

        bookingengine plan anna 2026-03-02T10:00 --duration 60
        bookingengine plan s1 2026-03-02T14:00 --exclude b7
    """
    try:
        config, service, _ = _setup(config_file, data_file, verbose)
        tz = config.timezone
        staff_id = _resolve_staff(config, [staff])[0]
        minutes = duration if duration is not None else config.scheduling.default_duration_minutes

        candidate = PlacementCandidate(
            staff_id=staff_id,
            interval=TimeInterval.starting_at(_parse_local_datetime(start, tz), minutes),
            exclude_booking_id=exclude,
        )
        result, conflicts = asyncio.run(service.plan_with_conflicts(candidate))

        style = OUTCOME_STYLES[result.outcome]
        console.print(f"\n[bold]{_format_interval(candidate.interval, tz)}[/bold] for {staff_id}")
        console.print(f"Outcome: [bold {style}]{result.outcome.value}[/bold {style}]")

        if conflicts:
            table = Table(title="Conflicting bookings", show_header=True, header_style="bold cyan")
            table.add_column("Booking", style="bold yellow")
            table.add_column("Customer")
            table.add_column("Time", style="dim")
            table.add_column("Status")
            for booking in conflicts:
                table.add_row(
                    booking.id,
                    booking.customer_name or booking.customer_id,
                    _format_interval(booking.interval, tz),
                    booking.status.value,
                )
            console.print()
            console.print(table)
        console.print()

    except (BookingEngineError, FileNotFoundError, ValueError) as e:
        _fail(e)


@app.command()
def day(
    staff: Annotated[str, typer.Argument(help="Staff id or configured name")],
    on: Annotated[Optional[str], typer.Option("--date", help="Date (YYYY-MM-DD). Defaults to today")] = None,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
    verbose: VerboseOption = False,
):
    """
    Show one staff member's bookings positioned on the day grid.
    """
    try:
        config, service, _ = _setup(config_file, data_file, verbose)
        staff_id = _resolve_staff(config, [staff])[0]
        target = _parse_day(on, config.timezone)

        projection = asyncio.run(service.project_day(staff_id, target))
        contexts = asyncio.run(service.load_calendar_context([staff_id], target, target))

        console.print(
            f"\n[bold cyan]{staff_id}[/bold cyan] on {target.isoformat()} "
            f"({_working_label(contexts[staff_id], target)})\n"
        )
        if not projection.entries:
            console.print("[yellow]No bookings.[/yellow]\n")
            return

        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Booking", style="bold yellow")
        table.add_column("Status")
        table.add_column("Top", justify="right")
        table.add_column("Height", justify="right")
        for entry in projection.entries:
            table.add_row(
                entry.booking_id,
                entry.status.value,
                f"{entry.top_offset:g}",
                f"{entry.height:g}",
            )
        console.print(table)
        console.print()

    except (BookingEngineError, FileNotFoundError, ValueError) as e:
        _fail(e)


@app.command()
def week(
    staff: Annotated[Optional[List[str]], typer.Argument(help="Staff ids or names. Defaults to all configured staff")] = None,
    of: Annotated[Optional[str], typer.Option("--of", help="Any date in the week (YYYY-MM-DD)")] = None,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
    verbose: VerboseOption = False,
):
    """
    Show a Sunday-to-Saturday week for the selected staff.
    """
    try:
        config, service, _ = _setup(config_file, data_file, verbose)
        staff_ids = _resolve_staff(config, staff or [])
        week_start = week_start_for(_parse_day(of, config.timezone))

        projection = asyncio.run(service.project_week(staff_ids, week_start))

        table = Table(
            title=f"Week of {week_start.isoformat()}",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Day", style="bold")
        table.add_column("Date", style="dim")
        table.add_column("Bookings")
        for column in projection.columns:
            bookings = ", ".join(
                f"{entry.booking_id} ({entry.staff_id})" for entry in column.entries
            )
            table.add_row(
                WEEKDAY_NAMES[column.day_of_week],
                column.date.isoformat(),
                bookings or "[dim]-[/dim]",
            )

        console.print()
        console.print(table)
        console.print()

    except (BookingEngineError, FileNotFoundError, ValueError) as e:
        _fail(e)


@app.command()
def month(
    of: Annotated[Optional[str], typer.Argument(help="Month (YYYY-MM). Defaults to the current month")] = None,
    staff: Annotated[Optional[List[str]], typer.Option("--staff", "-s", help="Restrict to these staff members")] = None,
    location: Annotated[Optional[str], typer.Option("--location", help="Restrict to one location id")] = None,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
    verbose: VerboseOption = False,
):
    """
    Show per-day booking counts for a month.
    """
    try:
        config, service, _ = _setup(config_file, data_file, verbose)
        first = _parse_month(of, config.timezone)
        staff_ids = _resolve_staff(config, staff) if staff else None

        summaries = asyncio.run(service.project_month(first, staff_ids=staff_ids, location_id=location))

        table = Table(
            title=f"{first.strftime('%B %Y')}",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Date", style="bold")
        table.add_column("Total", justify="right")
        table.add_column("Confirmed", justify="right", style="green")
        table.add_column("Pending", justify="right", style="yellow")
        table.add_column("Cancelled", justify="right", style="red")

        total = 0
        for current, summary in summaries.items():
            total += summary.total
            row_style = None if summary.total else "dim"
            table.add_row(
                f"{WEEKDAY_NAMES[day_of_week(current)]} {current.isoformat()}",
                str(summary.total),
                str(summary.confirmed),
                str(summary.pending),
                str(summary.cancelled),
                style=row_style,
            )

        console.print()
        console.print(table)
        console.print(f"\n[bold]{total}[/bold] booking(s) this month\n")

    except (BookingEngineError, FileNotFoundError, ValueError) as e:
        _fail(e)


@app.command()
def slots(
    staff: Annotated[Optional[List[str]], typer.Argument(help="Staff ids or names. Defaults to all configured staff")] = None,
    on: Annotated[Optional[str], typer.Option("--date", help="Date (YYYY-MM-DD). Defaults to today")] = None,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Service duration in minutes")] = None,
    recommend: Annotated[bool, typer.Option("--recommend", help="Only show the best few slots")] = False,
    include_past: Annotated[bool, typer.Option("--include-past", help="Keep slots that already started")] = False,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
    verbose: VerboseOption = False,
):
    """
    List bookable slots for a day.

    Examples:

        bookingengine slots anna ben --date 2026-03-02
        bookingengine slots --duration 90 --recommend
    """
    try:
        config, service, _ = _setup(config_file, data_file, verbose)
        tz = config.timezone
        staff_ids = _resolve_staff(config, staff or [])
        target = _parse_day(on, tz)
        minutes = duration if duration is not None else config.scheduling.default_duration_minutes
        now = None if include_past else pendulum.now("UTC")
        names = config.staff_names()

        if recommend:
            found = asyncio.run(service.recommend_slots(
                staff_ids,
                target,
                minutes,
                now=now,
                staff_names=names,
                limit=config.scheduling.recommendation_limit,
            ))
        else:
            found = asyncio.run(service.find_available_slots(
                staff_ids,
                target,
                minutes,
                now=now,
                staff_names=names,
            ))

        console.print()
        if not found:
            console.print(
                "[yellow]⚠ No slots found.[/yellow]\n"
                "Try another day, a shorter duration or more staff members."
            )
        else:
            free = sum(1 for slot in found if slot.available)
            console.print(f"[bold green]✓ {free} free slot(s) of {len(found)}:[/bold green]\n")
            for slot in found:
                style = "" if slot.available else "[dim]"
                closing = "" if slot.available else "[/dim]"
                console.print(f"  {style}{slot.format_display(tz)}{closing}")
        console.print()

    except (BookingEngineError, FileNotFoundError, ValueError) as e:
        _fail(e)


async def _run_reschedule(
    service: SchedulingService,
    config: AppConfig,
    booking_id: str,
    staff: Optional[str],
    at: Optional[str],
    on: Optional[str],
    hour: Optional[int],
    offset: float,
    reason: Optional[str],
    assume_yes: bool,
) -> RescheduleState:
    tz = config.timezone
    workflow = RescheduleWorkflow(
        service,
        slot_height=config.display.slot_height,
        snap_minutes=config.display.snap_minutes,
    )
    booking = await service.source.get_booking(booking_id)
    staff_id = _resolve_staff(config, [staff])[0] if staff else booking.staff_id

    if at is not None:
        state = await workflow.pick_slot(booking, staff_id, _parse_local_datetime(at, tz))
    else:
        if hour is None:
            raise ValueError("Pass either --at or --hour")
        workflow.begin_drag(booking)
        target = DropTarget(
            staff_id=staff_id,
            day=_parse_day(on, tz) if on else booking.interval.local_date(tz),
            hour=hour,
            offset=offset,
        )
        state = await workflow.drop(target)

    if state.stage is RescheduleStage.IDLE:
        return state

    style = OUTCOME_STYLES[state.result.outcome]
    lines = [
        f"[bold]Booking:[/bold] {booking.id} ({booking.customer_name or booking.customer_id})",
        f"[bold]From:[/bold] {_format_interval(booking.interval, tz)} with {booking.staff_id}",
        f"[bold]To:[/bold] {_format_interval(state.candidate.interval, tz)} with {staff_id}",
        f"[bold]Check:[/bold] [{style}]{state.result.outcome.value}[/{style}]",
    ]
    if state.conflicts:
        lines.append(f"[bold red]Overlaps:[/bold red] {state.conflict_summary()}")
    console.print(Panel.fit("\n".join(lines), title="Reschedule"))

    prompt = "Book anyway?" if state.requires_override else "Move the booking?"
    if not assume_yes and not typer.confirm(prompt, default=True):
        return workflow.cancel()

    return await workflow.confirm(override_reason=reason)


@app.command()
def reschedule(
    booking_id: Annotated[str, typer.Argument(help="Booking to move")],
    staff: Annotated[Optional[str], typer.Option("--staff", "-s", help="New staff member. Defaults to the current one")] = None,
    at: Annotated[Optional[str], typer.Option("--at", help="New local start time (YYYY-MM-DDTHH:MM)")] = None,
    on: Annotated[Optional[str], typer.Option("--date", help="Drop target date (YYYY-MM-DD)")] = None,
    hour: Annotated[Optional[int], typer.Option("--hour", help="Drop target hour row")] = None,
    offset: Annotated[float, typer.Option("--offset", help="Drop offset inside the hour cell, in pixels")] = 0,
    reason: Annotated[Optional[str], typer.Option("--reason", help="Override reason when booking over a conflict")] = None,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Confirm without prompting")] = False,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
    verbose: VerboseOption = False,
):
    """
    Move a booking to another time or staff member.

    Examples:

        # Pick a time directly
        bookingengine reschedule b7 --at 2026-03-02T14:00

        # Drop onto the 14:00 row, 30px down (snaps to 14:30)
        bookingengine reschedule b7 --staff ben --hour 14 --offset 30
    """
    try:
        config, service, fixture_path = _setup(config_file, data_file, verbose)
        state = asyncio.run(_run_reschedule(
            service, config, booking_id, staff, at, on, hour, offset, reason, yes
        ))

        if state.stage is RescheduleStage.CANCELLED:
            console.print("\n[yellow]Reschedule cancelled.[/yellow]\n")
            return

        if state.stage is not RescheduleStage.COMMITTED:
            console.print(f"\n[bold red]✗ {state.error}[/bold red]\n")
            raise typer.Exit(1)

        if fixture_path is not None and isinstance(service.source, InMemoryBookingStore):
            service.source.save(fixture_path)

        moved = state.committed_booking
        console.print(
            f"\n[bold green]✓ Booking {moved.id} moved to "
            f"{_format_interval(moved.interval, config.timezone)} with {moved.staff_id}[/bold green]\n"
        )

    except (BookingEngineError, FileNotFoundError, ValueError) as e:
        _fail(e)


@app.command()
def list_staff(
    config_file: ConfigOption = None,
):
    """
    List all configured staff members.
    """
    try:
        config = _load_config(config_file)

        if not config.staff:
            console.print("[yellow]No staff members defined in the config file.[/yellow]")
            return

        table = Table(
            title="Configured staff",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Name (Alias)", style="bold yellow")
        table.add_column("Id", style="dim")

        for member in config.staff:
            table.add_row(member.name, member.id)

        console.print()
        console.print(table)
        console.print()

    except (FileNotFoundError, ValueError) as e:
        _fail(e)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]bookingengine[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
