"""Cadence CLI - recurring work and task board."""

import json
import logging
import sys
from datetime import datetime, timedelta

import click

from .adapters.clock import FixedClock
from .bulk import Mutation
from .config import load_config
from .core.board import SORT_KEYS, BoardFilters, SortSpec, Urgency, apply_board, group_columns
from .core.calendar import filter_events_by_date, sort_events_by_start
from .core.recurrence import InvalidRuleError, validate_rule
from .core.schedule import date_key, preview_occurrences
from .core.tasks import Priority, Status
from .ports.occurrence_store import PersistenceError
from .workflows import get_bulk, get_clock, get_engine, get_store, get_transitions

STATUS_CHOICES = [s.value for s in Status]
PRIORITY_CHOICES = [p.value for p in Priority]

URGENCY_MARKERS = {
    Urgency.OVERDUE: "OVERDUE",
    Urgency.DUE_SOON: "due soon",
    Urgency.NORMAL: "",
}


@click.group()
@click.version_option()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool):
    """Cadence - recurring tasks, events and the task board."""
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=logging.DEBUG if debug else logging.WARNING,
    )


# ============== Recurrence rules ==============


def _rule_options(func):
    """Options describing a recurrence rule, shared by rule subcommands."""
    options = [
        click.option("--pattern", type=click.Choice(["daily", "weekly", "monthly", "yearly"]), required=True),
        click.option("--interval", type=int, default=1, show_default=True, help="Repeat every N units"),
        click.option("--days", default=None, help="Weekdays for weekly rules, 0=Sun..6=Sat (e.g. 1,3,5)"),
        click.option("--day-of-month", type=int, default=None, help="Day of month for monthly rules"),
        click.option("--end-date", default=None, help="Last possible date (YYYY-MM-DD)"),
        click.option(
            "--schedule-from",
            type=click.Choice(["due_date", "completion_date"]),
            default="due_date",
            show_default=True,
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _build_rule(pattern, interval, days, day_of_month, end_date, schedule_from):
    days_of_week = None
    if days is not None:
        try:
            days_of_week = [int(d) for d in days.split(",") if d.strip()]
        except ValueError:
            raise InvalidRuleError("days_of_week", f"expected comma-separated numbers, got {days!r}")
    return validate_rule(
        {
            "recurringPattern": pattern,
            "recurringInterval": interval,
            "daysOfWeek": days_of_week,
            "dayOfMonth": day_of_month,
            "recurringEndDate": end_date,
            "scheduleFrom": schedule_from,
        }
    )


@main.group()
def rule():
    """Check and preview recurrence rules."""
    pass


@rule.command("validate")
@_rule_options
def rule_validate(**kwargs):
    """Validate a recurrence rule."""
    try:
        r = _build_rule(**kwargs)
    except InvalidRuleError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(f"Valid: {r.describe()}")


@rule.command("preview")
@_rule_options
@click.option(
    "--from",
    "anchor",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Anchor date (YYYY-MM-DD), defaults to today",
)
@click.option("--count", type=int, default=None, help="Number of dates to show")
def rule_preview(anchor: datetime | None, count: int | None, **kwargs):
    """Show the next occurrence dates of a rule."""
    config = load_config()
    try:
        r = _build_rule(**kwargs)
    except InvalidRuleError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    start = anchor.date() if anchor else date_key(get_clock(config).now(), config.timezone)
    dates = preview_occurrences(r, start, count or config.preview_count)

    click.echo(f"{r.describe()}, after {start.strftime('%a %b %d, %Y')}:")
    if not dates:
        click.echo("  (no further occurrences)")
    for d in dates:
        click.echo(f"  {d.strftime('%a %Y-%m-%d')}")


# ============== Backfill ==============


def _clock_for(config, as_of: datetime | None):
    if as_of:
        return FixedClock(as_of, config.timezone)
    return get_clock(config)


def _result_json(result) -> dict:
    return {
        "series_id": result.series_id,
        "created": [d.isoformat() for d in result.created],
        "existing": [d.isoformat() for d in result.existing],
        "failed": [{"date": f.date.isoformat(), "reason": f.reason} for f in result.failed],
        "error": result.error,
        "dry_run": result.dry_run,
    }


def _show_result(result) -> None:
    verb = "Would create" if result.dry_run else "Created"
    if result.error:
        click.echo(f"{result.series_id}: {result.error}", err=True)
        return
    if not result.created and not result.failed:
        click.echo(f"{result.series_id}: up to date")
        return
    if result.created:
        click.echo(f"{result.series_id}: {verb} {len(result.created)}: " + ", ".join(d.isoformat() for d in result.created))
    for f in result.failed:
        click.echo(f"{result.series_id}: failed {f.date.isoformat()} ({f.reason})", err=True)


AS_OF_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M"]


@main.command()
@click.argument("series_id", required=False)
@click.option("--all", "all_series", is_flag=True, help="Backfill every recurring series")
@click.option("--dry-run", is_flag=True, help="Report what would be created")
@click.option(
    "--as-of", type=click.DateTime(formats=AS_OF_FORMATS), default=None, help="Pretend now is this local time"
)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def backfill(series_id: str | None, all_series: bool, dry_run: bool, as_of: datetime | None, as_json: bool):
    """Create missed occurrences of recurring series."""
    if not series_id and not all_series:
        raise click.UsageError("Give a SERIES_ID or --all")

    config = load_config()
    try:
        engine = get_engine(config, clock=_clock_for(config, as_of))
    except ValueError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)

    if all_series:
        summary = engine.backfill_all(dry_run=dry_run)
        results, ok = summary.results, summary.ok
        if summary.error:
            click.echo(f"Error: {summary.error}", err=True)
    else:
        result = engine.backfill(series_id, dry_run=dry_run)
        results, ok = [result], result.ok

    if as_json:
        click.echo(json.dumps([_result_json(r) for r in results], indent=2))
    else:
        for r in results:
            _show_result(r)

    if not ok:
        sys.exit(1)


# ============== Board ==============


@main.command()
@click.option("--status", type=click.Choice(STATUS_CHOICES), default=None)
@click.option("--priority", type=click.Choice(PRIORITY_CHOICES), default=None)
@click.option("--space", default=None, help="Space id")
@click.option("--search", default="", help="Text to find in title or description")
@click.option("--show-completed/--hide-completed", default=None, help="Include completed tasks")
@click.option("--sort", "sort_key", type=click.Choice(SORT_KEYS), default="created_at", show_default=True)
@click.option("--desc", is_flag=True, help="Sort descending")
@click.option("--columns", is_flag=True, help="Group by status column")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def board(status, priority, space, search, show_completed, sort_key, desc, columns, as_json):
    """Show the task board."""
    config = load_config()
    filters = BoardFilters(
        status=Status(status) if status else None,
        priority=Priority(priority) if priority else None,
        space_id=space,
        search=search,
        show_completed=config.show_completed if show_completed is None else show_completed,
    )
    try:
        tasks = get_store(config).list_tasks()
    except (PersistenceError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    now = get_clock(config).now()
    items = apply_board(tasks, filters, SortSpec(sort_key, desc), now, timedelta(hours=config.due_soon_hours))

    if as_json:
        click.echo(json.dumps([{**i.task.to_api(), "urgency": i.urgency.value} for i in items], indent=2))
        return

    if not items:
        click.echo("No tasks match the current filters.")
        return

    def line(item) -> str:
        t = item.task
        due = f" (due {date_key(t.due_date, config.timezone)})" if t.due_date else ""
        marker = URGENCY_MARKERS[item.urgency]
        flag = f" [{marker}]" if marker else ""
        return f"{t.id[:8]}  {t.priority.value:7} {t.status.value:12} {t.title}{due}{flag}"

    if columns:
        for column, column_items in group_columns(items).items():
            click.echo(f"### {column.value} ({len(column_items)})")
            for item in column_items:
                click.echo(f"  {line(item)}")
            click.echo()
    else:
        for item in items:
            click.echo(line(item))


@main.command()
@click.argument("task_id")
@click.argument("status", type=click.Choice(STATUS_CHOICES))
def move(task_id: str, status: str):
    """Move a task to a status column."""
    config = load_config()
    try:
        result = get_transitions(config).move(task_id, Status(status))
    except KeyError:
        click.echo(f"Error: task {task_id} not found", err=True)
        sys.exit(1)
    except (PersistenceError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"✓ {result.task.title} -> {result.task.status.value}")
    if result.backfill and result.backfill.created:
        nxt = ", ".join(d.isoformat() for d in result.backfill.created)
        click.echo(f"  Next occurrence scheduled: {nxt}")


@main.group()
def bulk():
    """Apply one change to many tasks."""
    pass


def _run_bulk(ids: tuple[str, ...], mutation: Mutation) -> None:
    config = load_config()
    try:
        result = get_bulk(config).apply(ids, mutation)
    except ValueError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)

    click.echo(f"{mutation.describe()}: {len(result.succeeded)} succeeded, {len(result.failed)} failed")
    for failure in result.failed:
        click.echo(f"  ✗ {failure.id}: {failure.reason}", err=True)
    if result.failed:
        click.echo("Retry with: " + " ".join(result.failed_ids), err=True)
        sys.exit(1)


@bulk.command("status")
@click.argument("status", type=click.Choice(STATUS_CHOICES))
@click.argument("ids", nargs=-1, required=True)
def bulk_status(status: str, ids: tuple[str, ...]):
    """Set the status of several tasks."""
    _run_bulk(ids, Mutation.set_status(Status(status)))


@bulk.command("priority")
@click.argument("priority", type=click.Choice(PRIORITY_CHOICES))
@click.argument("ids", nargs=-1, required=True)
def bulk_priority(priority: str, ids: tuple[str, ...]):
    """Set the priority of several tasks."""
    _run_bulk(ids, Mutation.set_priority(Priority(priority)))


@bulk.command("delete")
@click.argument("ids", nargs=-1, required=True)
@click.option("--yes", is_flag=True, help="Don't ask for confirmation")
def bulk_delete(ids: tuple[str, ...], yes: bool):
    """Delete several tasks."""
    if not yes and not click.confirm(f"Delete {len(ids)} task(s)?"):
        return
    _run_bulk(ids, Mutation.delete())


# ============== Series & calendar ==============


@main.group()
def series():
    """Recurring series."""
    pass


@series.command("list")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def series_list(as_json: bool):
    """List recurring series."""
    config = load_config()
    try:
        all_series = get_store(config).list_series()
    except (PersistenceError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps([s.to_api() for s in all_series], indent=2))
        return

    if not all_series:
        click.echo("No recurring series.")
        return

    for s in all_series:
        last = s.last_generated_anchor.isoformat() if s.last_generated_anchor else "never"
        paused = "" if s.is_recurring else " (paused)"
        click.echo(f"{s.id}  [{s.kind.value}] {s.title} - {s.rule.describe()}, last generated {last}{paused}")


@main.command()
@click.option("--days", type=int, default=7, show_default=True, help="Days ahead to show")
def calendar(days: int):
    """Show upcoming calendar events."""
    config = load_config()
    try:
        events = get_store(config).list_events()
    except (PersistenceError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    today = date_key(get_clock(config).now(), config.timezone)
    events = sort_events_by_start(filter_events_by_date(events, today, today + timedelta(days=days - 1)))
    if not events:
        click.echo("No events.")
        return

    current_date = None
    for event in events:
        event_date = event.start.date()
        if event_date != current_date:
            if current_date is not None:
                click.echo()
            click.echo(f"### {event_date.strftime('%A, %B %d')}")
            current_date = event_date
        loc = f" @ {event.location}" if event.location else ""
        click.echo(f"  {event.format_time():11} {event.title}{loc}")


@main.command()
def serve():
    """Run the daily backfill scheduler."""
    from .scheduler import run_scheduler

    logging.getLogger().setLevel(logging.INFO)
    click.echo("Starting Cadence backfill scheduler...")
    click.echo("Press Ctrl+C to stop")
    try:
        run_scheduler()
    except ValueError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nScheduler stopped.")


if __name__ == "__main__":
    main()
