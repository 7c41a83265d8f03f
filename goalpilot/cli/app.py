"""
Main CLI application using Typer.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Annotated, List, Optional

import pendulum
import typer
from pendulum import DateTime
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..config import AppConfig, WindowConfig, get_default_config_path, validate_timezone
from ..domain.block_validator import parse_time_block
from ..domain.block_windows import (
    due_for_reminder,
    has_free_stretch,
    missed_blocks,
    nudge_allowed,
    parse_scheduled_block,
    rescue_blocks,
    rescue_due,
)
from ..domain.exceptions import GoalPilotError
from ..domain.models import AvailabilityWindow, CandidateSlot, ScheduledBlock
from ..adapters.google_authenticator import GoogleAuthenticator
from ..adapters.google_calendar_client import GoogleCalendarClient
from ..adapters.mock_calendar_client import MockCalendarClient
from ..services.availability_finder import AvailabilityFinderService

app = typer.Typer(
    name="goalpilot",
    help="Find free time on your Google Calendar and sanity-check study plans",
    add_completion=False
)

console = Console()


ConfigOption = Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")]
MockOption = Annotated[bool, typer.Option("--mock", help="Use the bundled mock timetable and skip authentication.")]
NowOption = Annotated[Optional[str], typer.Option("--now", help="Pretend the current time is this ISO 8601 timestamp.")]
DurationOption = Annotated[Optional[int], typer.Option("--duration", "-d", help="Meeting duration in minutes")]
DaysOption = Annotated[Optional[str], typer.Option("--days", help="Comma-separated weekdays, e.g. mon,wed,fri")]
FromOption = Annotated[Optional[str], typer.Option("--from", help="Available from (HH:MM)")]
UntilOption = Annotated[Optional[str], typer.Option("--until", help="Available until (HH:MM)")]
HorizonOption = Annotated[Optional[int], typer.Option("--horizon", help="Number of days to search")]
StepOption = Annotated[Optional[int], typer.Option("--step", help="Minutes between candidate start times")]
MaxOption = Annotated[Optional[int], typer.Option("--max", help="Maximum number of slots to show")]
TimezoneOption = Annotated[Optional[List[str]], typer.Option("--tz", help="Extra display timezone, e.g. America/New_York (repeatable)")]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show informational log output.")] = False,
):
    """
    GoalPilot scheduling tools.
    """
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True
    )


def _load_config(config_file: Optional[Path]) -> AppConfig:
    config_path = config_file or get_default_config_path()
    return AppConfig.load_from_yaml(config_path)


def _resolve_now(now_option: Optional[str], tz: str) -> DateTime:
    """Parse the --now override or read the clock."""
    if not now_option:
        return pendulum.now(tz)
    try:
        return pendulum.parse(now_option, tz=tz)
    except ValueError as e:
        raise typer.BadParameter(f"Invalid --now timestamp: {e}") from e


def _build_calendar_client(config: AppConfig, mock: bool):
    """Create the mock client, or authenticate and create the Google client."""
    if mock:
        console.print("[yellow]⚠  MOCK MODE: using the bundled timetable[/yellow]\n")
        return MockCalendarClient()

    authenticator = GoogleAuthenticator(
        client_id=config.google.client_id,
        client_secret=config.google.client_secret
    )
    if authenticator.insecure_storage_warning:
        console.print(f"[yellow]{authenticator.insecure_storage_warning}[/yellow]")

    access_token = authenticator.get_access_token(force_refresh=False)
    return GoogleCalendarClient(access_token=access_token)


def _resolve_windows(
    config: AppConfig,
    days: Optional[str],
    from_time: Optional[str],
    until_time: Optional[str]
) -> List[AvailabilityWindow]:
    """
    Use the configured windows unless any window option is given, in which
    case a single window is built from the options.
    """
    if days is None and from_time is None and until_time is None:
        return config.availability_windows()

    window = WindowConfig(
        days=[d for d in days.split(",") if d.strip()] if days else [0, 1, 2, 3, 4],
        start=from_time or "09:00",
        end=until_time or "17:00"
    )
    return [window.to_window()]


def _search(
    *,
    config: AppConfig,
    client,
    now: DateTime,
    duration: Optional[int],
    days: Optional[str],
    from_time: Optional[str],
    until_time: Optional[str],
    horizon: Optional[int],
    step: Optional[int],
    max_results: Optional[int]
) -> List[CandidateSlot]:
    windows = _resolve_windows(config, days, from_time, until_time)
    search_config = config.search.to_search_config(
        config.timezone,
        duration_minutes=duration,
        horizon_days=horizon,
        step_minutes=step,
        max_results=max_results
    )

    console.print("[bold cyan]📊 Search:[/bold cyan]")
    console.print(f"   Windows: {'; '.join(w.describe() for w in windows)}")
    console.print(f"   Duration: {int(search_config.duration.total_seconds() // 60)} minutes")
    console.print(f"   Horizon: {search_config.horizon_days} days from {now.format('ddd, MMM D HH:mm')}")
    console.print()

    service = AvailabilityFinderService(calendar_client=client)
    return asyncio.run(
        service.find_slots(
            windows=windows,
            config=search_config,
            now=now,
            calendar_ids=config.google.calendar_ids
        )
    )


def _slot_table(slots: List[CandidateSlot], timezones: List[str]) -> Table:
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("#", style="bold yellow", justify="right")
    for tz in timezones:
        table.add_column(tz)
    table.add_column("Duration", style="dim")

    for index, slot in enumerate(slots, 1):
        localized = slot.localized(timezones)
        table.add_row(
            str(index),
            *[localized[tz] for tz in timezones],
            f"{slot.duration_minutes()} min"
        )

    return table


def _read_json(path: Path):
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc


@app.command()
def find(
    config_file: ConfigOption = None,
    duration: DurationOption = None,
    days: DaysOption = None,
    from_time: FromOption = None,
    until_time: UntilOption = None,
    horizon: HorizonOption = None,
    step: StepOption = None,
    max_results: MaxOption = None,
    tz: TimezoneOption = None,
    mock: MockOption = False,
    now: NowOption = None,
):
    """
    Find free slots on your calendar.

    Examples:

        goalpilot find

        goalpilot find --duration 60 --days mon,wed --from 10:00 --until 14:00

        goalpilot find --tz America/New_York --tz Asia/Tokyo

        goalpilot find --mock
    """
    try:
        config = _load_config(config_file)
        current = _resolve_now(now, config.timezone)
        client = _build_calendar_client(config, mock)

        slots = _search(
            config=config,
            client=client,
            now=current,
            duration=duration,
            days=days,
            from_time=from_time,
            until_time=until_time,
            horizon=horizon,
            step=step,
            max_results=max_results
        )

        if not slots:
            console.print(
                "[yellow]⚠ No available slots found.[/yellow]\n"
                "Try a longer horizon, wider windows or a shorter duration."
            )
            return

        timezones = config.all_display_timezones()
        for zone in tz or []:
            if validate_timezone(zone) not in timezones:
                timezones.append(zone)

        console.print(f"[bold green]✓ Found {len(slots)} available slot(s):[/bold green]\n")
        console.print(_slot_table(slots, timezones))
        console.print()

    except (GoalPilotError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def book(
    index: Annotated[int, typer.Argument(help="Slot number as listed by 'find'")],
    title: Annotated[str, typer.Option("--title", "-t", help="Event title")] = "Meeting",
    notes: Annotated[str, typer.Option("--notes", help="Notes added to the event description")] = "",
    no_meet: Annotated[bool, typer.Option("--no-meet", help="Do not create a Google Meet link.")] = False,
    config_file: ConfigOption = None,
    duration: DurationOption = None,
    days: DaysOption = None,
    from_time: FromOption = None,
    until_time: UntilOption = None,
    horizon: HorizonOption = None,
    step: StepOption = None,
    max_results: MaxOption = None,
    mock: MockOption = False,
    now: NowOption = None,
):
    """
    Book one of the slots found with the same search options.
    """
    try:
        config = _load_config(config_file)
        current = _resolve_now(now, config.timezone)
        client = _build_calendar_client(config, mock)

        slots = _search(
            config=config,
            client=client,
            now=current,
            duration=duration,
            days=days,
            from_time=from_time,
            until_time=until_time,
            horizon=horizon,
            step=step,
            max_results=max_results
        )

        if not 1 <= index <= len(slots):
            console.print(f"[bold red]Error:[/bold red] Slot {index} does not exist ({len(slots)} found).")
            raise typer.Exit(1)

        slot = slots[index - 1]
        event = client.create_event(
            slot,
            title=title,
            description=notes,
            timezone=config.timezone,
            with_meet=not no_meet
        )

        console.print(f"[bold green]✓ Meeting scheduled:[/bold green] {slot.format_display(config.timezone)}")
        link = GoogleCalendarClient.meet_link(event)
        if link:
            console.print(f"   Google Meet: [bold cyan]{link}[/bold cyan]")
        console.print()

    except (GoalPilotError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command("check-blocks")
def check_blocks(
    blocks_file: Annotated[Path, typer.Argument(help="JSON file with suggested blocks")],
    config_file: ConfigOption = None,
    mock: MockOption = False,
    now: NowOption = None,
):
    """
    Sanity-check suggested study blocks against the rules and your calendar.

    The file holds either a list of blocks or an object with a "blocks" list;
    each block has "start", "end" and optionally "title".
    """
    try:
        config = _load_config(config_file)
        current = _resolve_now(now, config.timezone)

        data = _read_json(blocks_file)
        raw_blocks = data.get("blocks", []) if isinstance(data, dict) else data
        blocks = [parse_time_block(item, config.timezone) for item in raw_blocks]

        client = _build_calendar_client(config, mock)
        service = AvailabilityFinderService(calendar_client=client)
        result = asyncio.run(
            service.screen_suggestions(
                blocks=blocks,
                now=current,
                rules=config.block_rules.to_rules(config.timezone),
                calendar_ids=config.google.calendar_ids
            )
        )

        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Block", style="bold")
        table.add_column("When")
        table.add_column("Result")

        for block in result.accepted:
            table.add_row(block.title or "-", _format_range(block.start, block.end, config.timezone), "[green]✓ accepted[/green]")
        for block, reason in result.rejected:
            table.add_row(block.title or "-", _format_range(block.start, block.end, config.timezone), f"[red]✗ {reason}[/red]")

        console.print(table)

        if result.all_rejected:
            console.print("[yellow]⚠ All suggested blocks were invalid. Please try again.[/yellow]")
            raise typer.Exit(1)

    except (GoalPilotError, FileNotFoundError, ValueError, KeyError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


def _format_range(start: DateTime, end: DateTime, tz: str) -> str:
    start = start.in_timezone(tz)
    end = end.in_timezone(tz)
    return f"{start.format('ddd, MMM D HH:mm')} – {end.format('HH:mm')}"


def _print_blocks(heading: str, blocks: List[ScheduledBlock], tz: str) -> None:
    console.print(f"[bold]{heading}[/bold] ({len(blocks)})")
    for block in blocks:
        console.print(f"  • {block.title} | {_format_range(block.start, block.end, tz)}")
    console.print()


@app.command()
def due(
    blocks_file: Annotated[Path, typer.Argument(help="JSON file with scheduled blocks")],
    write: Annotated[bool, typer.Option("--write", help="Mark reminded, followed-up and rescued blocks in the file.")] = False,
    last_nudge: Annotated[Optional[str], typer.Option("--last-nudge", help="When the last nudge was sent (ISO 8601).")] = None,
    last_interaction: Annotated[Optional[str], typer.Option("--last-interaction", help="When the user last replied (ISO 8601).")] = None,
    unresponsive: Annotated[int, typer.Option("--unresponsive", help="Reminders the user has not answered.")] = 0,
    config_file: ConfigOption = None,
    now: NowOption = None,
):
    """
    Show blocks due for a reminder, missed blocks and, for a user who has gone
    quiet, blocks to rescue.
    """
    try:
        config = _load_config(config_file)
        current = _resolve_now(now, config.timezone)
        windows = config.reminders

        data = _read_json(blocks_file)
        raw_blocks = data.get("blocks", []) if isinstance(data, dict) else data
        blocks = [parse_scheduled_block(item, config.timezone) for item in raw_blocks]

        reminders = due_for_reminder(blocks, current, windows.reminder_minutes)
        missed = missed_blocks(
            blocks,
            current,
            windows.missed_grace_minutes,
            windows.missed_lookback_minutes
        )

        last_interaction_at = _resolve_now(last_interaction, config.timezone) if last_interaction else None
        rescue: List[ScheduledBlock] = []
        if rescue_due(
            last_interaction_at,
            unresponsive,
            current,
            windows.rescue_idle_minutes,
            windows.rescue_min_unresponsive
        ):
            rescue = rescue_blocks(blocks, current, windows.rescue_horizon_hours)

        _print_blocks(f"🔔 Starting within {windows.reminder_minutes} min", reminders, config.timezone)
        _print_blocks("🛡️ Slipped by", missed, config.timezone)
        if rescue:
            _print_blocks(f"✨ Rescued (next {windows.rescue_horizon_hours}h)", rescue, config.timezone)

        last_nudge_at = _resolve_now(last_nudge, config.timezone) if last_nudge else None
        if has_free_stretch(blocks, current, windows.nudge_lookahead_minutes) and nudge_allowed(
            last_nudge_at, current, windows.nudge_cooldown_minutes
        ):
            console.print(f"[cyan]💡 Nothing planned for the next {windows.nudge_lookahead_minutes} min, time for a nudge.[/cyan]\n")

        if write:
            # Blocks may lack an id, so match on the parsed objects themselves
            for item, block in zip(raw_blocks, blocks):
                if _contains(reminders, block):
                    item["reminder_sent"] = True
                if _contains(missed, block):
                    item["missed_notification_sent"] = True
                if _contains(rescue, block):
                    item["status"] = "rescheduled"

            with open(blocks_file, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            console.print(f"[green]✓ Updated {blocks_file}[/green]")

    except (GoalPilotError, FileNotFoundError, ValueError, KeyError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


def _contains(selected: List[ScheduledBlock], block: ScheduledBlock) -> bool:
    return any(candidate is block for candidate in selected)


@app.command()
def test_auth(
    config_file: ConfigOption = None,
    force: bool = typer.Option(
        False,
        "--force",
        help="Force re-authentication"
    )
):
    """
    Test Google Calendar authentication.
    """
    try:
        config = _load_config(config_file)

        console.print("\n[bold]Testing Google Calendar authentication...[/bold]\n")

        authenticator = GoogleAuthenticator(
            client_id=config.google.client_id,
            client_secret=config.google.client_secret
        )

        access_token = authenticator.get_access_token(force_refresh=force)

        client = GoogleCalendarClient(access_token=access_token)
        calendar = client.test_connection()

        console.print(Panel.fit(
            f"[bold green]✓ Authentication successful![/bold green]\n\n"
            f"[bold]Calendar:[/bold] {calendar.get('summary', 'N/A')}\n"
            f"[bold]Timezone:[/bold] {calendar.get('timeZone', 'N/A')}\n"
            f"[bold]Token storage:[/bold] {authenticator.cache_backend}",
            title="✓ Connection test"
        ))
        console.print()

    except (GoalPilotError, FileNotFoundError, ValueError) as e:
        console.print(f"\n[bold red]✗ Error:[/bold red] {e}\n")
        raise typer.Exit(1)


@app.command()
def clear_cache(
    config_file: ConfigOption = None,
):
    """
    Clear the authentication token cache.
    """
    try:
        config = _load_config(config_file)

        authenticator = GoogleAuthenticator(
            client_id=config.google.client_id,
            client_secret=config.google.client_secret
        )

        authenticator.clear_cache()
        console.print("You will need to sign in again on the next call.\n")

    except (GoalPilotError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]goalpilot[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
