"""Cadence CLI - task and calendar scheduling."""

import asyncio
import json
import logging
import sys

import click

from . import __version__
from .adapters.google_calendar import GoogleCalendarAdapter
from .adapters.ticktick_api import authorize
from .config import GOOGLE_TOKEN_FILE, load_config
from .errors import CadenceError
from .workflows import (
    build_services,
    history,
    load_overview,
    ranked_tasks,
    run_adjustment,
    run_calendar_sync,
    run_cleanup,
    run_daily,
    run_smart,
    undo_last,
)


def _setup_logging(level: str, debug: bool = False) -> None:
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO),
    )


def _fail(e: Exception) -> None:
    click.echo(f"Error: {e}", err=True)
    sys.exit(1)


def _services():
    try:
        return build_services()
    except CadenceError as e:
        _fail(e)


def _echo_json(data) -> None:
    click.echo(json.dumps(data, indent=2, default=str, ensure_ascii=False))


@click.group()
@click.version_option(version=__version__)
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool):
    """Cadence - task and calendar scheduling automation."""
    _setup_logging(load_config().log_level, debug)


@main.command()
def auth():
    """Authenticate with TickTick."""
    try:
        authorize()
    except CadenceError as e:
        _fail(e)


@main.command("cal-auth")
def cal_auth():
    """Authenticate with Google Calendar."""
    config = load_config()

    if not config.google_client_secret_file:
        click.echo("GOOGLE_CLIENT_SECRET_FILE not set in cadence.conf", err=True)
        sys.exit(1)

    adapter = GoogleCalendarAdapter(
        client_secret_file=config.google_client_secret_file,
        timezone=config.timezone,
    )
    if not adapter.authenticate():
        click.echo("  ✗ Authentication failed", err=True)
        sys.exit(1)
    click.echo(f"  ✓ Token saved to {GOOGLE_TOKEN_FILE}")

    try:
        calendars = adapter.list_calendars()
    except CadenceError as e:
        click.echo(f"  ✗ Failed to list calendars: {e}")
        return
    click.echo("  Calendars (use the id as PRIMARY_CALENDAR / BUSINESS_CALENDAR):")
    for access, name, cal_id in calendars:
        click.echo(f"    {access:16} {name}  [{cal_id}]")


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def adjust(as_json: bool):
    """Run one continuous-adjustment pass."""
    services = _services()
    try:
        report = asyncio.run(run_adjustment(services))
    except CadenceError as e:
        _fail(e)

    if as_json:
        _echo_json(report.to_dict())
        return

    click.echo(report.summary())
    for failure in report.failures:
        click.echo(f"  ✗ {failure}")


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def daily(as_json: bool):
    """Run the daily orchestration (inbox cleanup, then adjustment)."""
    services = _services()
    try:
        report = asyncio.run(run_daily(services))
    except CadenceError as e:
        _fail(e)

    if as_json:
        _echo_json(report.to_dict())
        return

    click.echo(f"Daily orchestration: {report.status} ({report.total_duration_ms / 1000:.1f}s)")
    for step in report.steps:
        marker = "✓" if step.success else "✗"
        detail = step.error or ", ".join(f"{k}={v}" for k, v in step.counts.items() if not isinstance(v, list))
        click.echo(f"  {marker} {step.name}: {detail}")


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def smart(as_json: bool):
    """Schedule call sessions for stale CRM leads."""
    services = _services()
    try:
        report = asyncio.run(run_smart(services))
    except CadenceError as e:
        _fail(e)

    if as_json:
        _echo_json(report.to_dict())
        return

    click.echo(f"{report.leads_analyzed} leads analyzed: {report.buckets}")
    for title in report.created:
        click.echo(f"  ✓ {title}")
    for title in report.blocks_added:
        click.echo(f"  + {title} (calendar block added)")
    for title in report.duplicates:
        click.echo(f"  = {title} (already exists)")
    for title in report.unplaced:
        click.echo(f"  ✗ {title} (no slot)")
    for failure in report.failures:
        click.echo(f"  ✗ {failure}")


@main.command()
@click.option("--dry-run", is_flag=True, help="Report what would move without writing")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def cleanup(dry_run: bool, as_json: bool):
    """Relocate midnight events and resolve calendar overlaps."""
    services = _services()
    try:
        report = asyncio.run(run_cleanup(services, dry_run=dry_run))
    except CadenceError as e:
        _fail(e)

    if as_json:
        _echo_json(report.to_dict())
        return

    prefix = "[dry run] " if dry_run else ""
    click.echo(
        f"{prefix}{report.events_checked} events checked: "
        f"{report.midnight_found} at midnight, {report.conflicts_found} conflicts"
    )
    for move in report.moved:
        click.echo(f"  → {move.title}: {move.old_start} → {move.new_start} ({move.reason})")
    for title in report.unresolved:
        click.echo(f"  ✗ {title}: no free slot")


@main.command("sync-calendar")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def sync_calendar(as_json: bool):
    """Create calendar blocks for dated tasks."""
    services = _services()
    try:
        report = asyncio.run(run_calendar_sync(services))
    except CadenceError as e:
        _fail(e)

    if as_json:
        _echo_json(report.to_dict())
        return

    click.echo(
        f"{len(report.created)} placed, {report.already_placed} already on the calendar, "
        f"{len(report.unplaced)} without room"
    )
    for title in report.unplaced:
        click.echo(f"  ✗ {title}")


@main.command()
@click.option("--days", default=14, show_default=True, help="Days to show")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def load(days: int, as_json: bool):
    """Show tasks per day over the planning horizon."""
    services = _services()
    try:
        load_map = load_overview(services)
    except CadenceError as e:
        _fail(e)

    cap = services.settings.daily_cap
    shown = sorted(load_map.items())[:days]
    if as_json:
        _echo_json({d.isoformat(): n for d, n in shown})
        return

    for day, count in shown:
        bar = "█" * count
        flag = "  over cap" if count > cap else ""
        click.echo(f"{day.strftime('%a %b %d')}  {count:2} {bar}{flag}")


@main.command()
@click.option("--limit", "-n", default=10, show_default=True, help="Number of tasks to show")
@click.option("--details", is_flag=True, help="Show the score components")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def rank(limit: int, details: bool, as_json: bool):
    """List active tasks by priority score."""
    services = _services()
    try:
        ranked = ranked_tasks(services, details=details)[:limit]
    except CadenceError as e:
        _fail(e)

    if as_json:
        _echo_json(ranked)
        return

    for item in ranked:
        due = f" (due {item['due']})" if item["due"] else ""
        click.echo(f"{item['score']:.2f} [{item['tier']}] {item['title']}{due}")
        if details:
            c = item["components"]
            click.echo(
                f"       complexity={c['complexity']:.2f} urgency={c['urgency']:.2f} "
                f"duration={c['duration']:.2f} context={c['context']:.2f}"
            )


@main.command("history")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def history_cmd(as_json: bool):
    """Show the recent writes made by Cadence."""
    records = history(_services())

    if as_json:
        _echo_json([r.__dict__ for r in records])
        return

    if not records:
        click.echo("No recorded actions.")
        return
    for record in records:
        click.echo(f"{record.at}  {record.operation:14} {record.target_id}")


@main.command()
def undo():
    """Revert the most recent write."""
    services = _services()
    try:
        record = undo_last(services)
    except CadenceError as e:
        _fail(e)

    if record is None:
        click.echo("Nothing to undo.")
    else:
        click.echo(f"Undid {record.operation} on {record.target_id}")


@main.command()
def serve():
    """Run the background scheduler (adjustment + daily orchestration)."""
    from .jobs import serve as run_scheduler

    services = _services()
    click.echo("Starting Cadence scheduler...")
    click.echo("Press Ctrl+C to stop")
    run_scheduler(services)
