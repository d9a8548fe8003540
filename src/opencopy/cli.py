"""CLI entry point for the OpenCopy content pipeline."""

from __future__ import annotations

import time as _time
from datetime import date, datetime, time

import click
from dateutil import parser as dateparser
from rich.console import Console
from rich.markup import escape
from rich.table import Table

console = Console()


def _parse_now(ctx: click.Context, param: click.Parameter, value: str | None) -> datetime:
    """Click callback: parse ``--now`` or fall back to the wall clock."""
    if value is None:
        return datetime.now()
    try:
        return dateparser.parse(value)
    except (ValueError, OverflowError) as e:
        raise click.BadParameter(f"Cannot parse '{value}' as a date/time: {e}")


def _parse_date(ctx: click.Context, param: click.Parameter, value: str) -> date:
    try:
        return dateparser.parse(value).date()
    except (ValueError, OverflowError) as e:
        raise click.BadParameter(f"Cannot parse '{value}' as a date: {e}")


def _parse_time(ctx: click.Context, param: click.Parameter, value: str | None) -> time | None:
    if value is None:
        return None
    try:
        return datetime.strptime(value, "%H:%M").time()
    except ValueError:
        raise click.BadParameter(f"Expected HH:MM, got '{value}'")


now_option = click.option(
    "--now",
    callback=_parse_now,
    help="Treat this moment as 'now' (ISO date/time). Default: current time",
)


@click.group()
@click.version_option(version="0.1.0")
def main() -> None:
    """OpenCopy scheduled content pipeline."""


# ---------------------------------------------------------------------------
# init-db: create the content store
# ---------------------------------------------------------------------------


@main.command("init-db")
def init_db() -> None:
    """Create the database tables (safe to run repeatedly)."""
    from opencopy.storage.database import get_engine

    settings = _bootstrap()
    get_engine(settings.db_path)
    console.print(f"[green]Database ready at {settings.db_path}[/green]")


# ---------------------------------------------------------------------------
# keyword: add keywords to a project's backlog
# ---------------------------------------------------------------------------


@main.group()
def keyword() -> None:
    """Manage keywords."""


@keyword.command("add")
@click.argument("project_id", type=int)
@click.argument("text")
@click.option("--words", "-w", type=int, default=None, help="Override the target word count")
@click.option("--tone", default=None, help="Tone for the generated article")
@click.option("--secondary", "-s", multiple=True, help="Secondary keyword (repeatable)")
def keyword_add(
    project_id: int,
    text: str,
    words: int | None,
    tone: str | None,
    secondary: tuple[str, ...],
) -> None:
    """Add a keyword; a backlog item with an inferred content type is created."""
    from opencopy.content.planner import add_keyword
    from opencopy.storage.database import get_session
    from opencopy.storage.models import Project

    settings = _bootstrap()
    with get_session(settings.db_path) as session:
        project = session.get(Project, project_id)
        if project is None:
            console.print(f"[bold red]Error:[/bold red] project {project_id} not found.")
            raise SystemExit(1)
        record, item = add_keyword(
            session,
            project,
            text,
            target_word_count=words,
            tone=tone,
            secondary_keywords=secondary,
        )
        console.print(
            f"[green]Added keyword #{record.id}[/green] '{escape(record.keyword)}' -> "
            f"backlog item #{item.id} ({item.content_type.value}, "
            f"{item.target_word_count} words)"
        )


# ---------------------------------------------------------------------------
# plan: move items through the content calendar
# ---------------------------------------------------------------------------


@main.group()
def plan() -> None:
    """Schedule, approve or shelve planned content."""


@plan.command("schedule")
@click.argument("content_id", type=int)
@click.argument("on", callback=_parse_date)
@click.option("--time", "at", default=None, callback=_parse_time, help="Time of day (HH:MM)")
def plan_schedule(content_id: int, on: date, at: time | None) -> None:
    """Schedule an item for generation on a date (or move its date)."""
    from opencopy.content import planner
    from opencopy.content.types import ContentStatus

    def apply(session, item):
        if item.status == ContentStatus.BACKLOG:
            return planner.schedule(session, item, on, at)
        return planner.reschedule(session, item, on, at)

    _plan_action(content_id, apply)


@plan.command("approve")
@click.argument("content_id", type=int)
def plan_approve(content_id: int) -> None:
    """Approve a reviewed item so it can be auto-published.

    Items reach the in-review state (with an article attached) through the
    external generation worker that consumes generate_article tasks.
    """
    from opencopy.content import planner

    _plan_action(content_id, planner.approve)


@plan.command("backlog")
@click.argument("content_id", type=int)
def plan_backlog(content_id: int) -> None:
    """Move an item back to the backlog, clearing its schedule."""
    from opencopy.content import planner

    _plan_action(content_id, planner.move_to_backlog)


@plan.command("list")
@click.option("--status", default=None, help="Only show items in this status")
def plan_list(status: str | None) -> None:
    """Show planned content."""
    from sqlmodel import select

    from opencopy.content.planner import display_title
    from opencopy.content.types import ContentStatus
    from opencopy.storage.database import get_session
    from opencopy.storage.models import ScheduledContent

    settings = _bootstrap()
    with get_session(settings.db_path) as session:
        query = select(ScheduledContent).order_by(
            ScheduledContent.scheduled_date, ScheduledContent.scheduled_time, ScheduledContent.id
        )
        if status:
            query = query.where(ScheduledContent.status == ContentStatus(status))
        items = session.exec(query).all()

        if not items:
            console.print("[yellow]No planned content.[/yellow]")
            return

        table = Table(title="Content Plan")
        table.add_column("ID", width=4, justify="right")
        table.add_column("Title", width=40)
        table.add_column("Type", width=14)
        table.add_column("Status", width=10)
        table.add_column("Scheduled", width=16)
        for item in items:
            when = item.scheduled_at()
            table.add_row(
                str(item.id),
                escape(display_title(session, item))[:40],
                item.content_type.value,
                item.status.label,
                when.strftime("%Y-%m-%d %H:%M") if when else "-",
            )
        console.print(table)


# ---------------------------------------------------------------------------
# generate-scan: queue generation for content coming due
# ---------------------------------------------------------------------------


@main.command("generate-scan")
@click.option("--days", type=int, default=None, help="Days ahead to look for scheduled content")
@click.option("--limit", type=int, default=None, help="Maximum items to process per run")
@click.option("--spread", type=int, default=60, help="Spread jobs over this many minutes (0 disables)")
@click.option("--dry-run", is_flag=True, help="Show what would be dispatched without dispatching")
@now_option
def generate_scan(
    days: int | None, limit: int | None, spread: int, dry_run: bool, now: datetime
) -> None:
    """Queue article generation for scheduled content that is due."""
    from opencopy.errors import StoreUnavailableError
    from opencopy.scheduling.dispatcher import run_generation_scan
    from opencopy.storage.database import get_session

    settings = _bootstrap()
    days = settings.scheduler.generation_days if days is None else days
    limit = settings.scheduler.generation_limit if limit is None else limit

    console.print(f"Checking for scheduled content due within {days} day(s)...")
    try:
        with get_session(settings.db_path) as session:
            report = run_generation_scan(
                session, now, days=days, limit=limit, spread_minutes=spread, dry_run=dry_run
            )
    except StoreUnavailableError as e:
        console.print(f"[bold red]Content store unavailable:[/bold red] {e}")
        raise SystemExit(1)

    _print_generation_report(report)


def _print_generation_report(report) -> None:
    if not report.found:
        console.print("No content ready to process.")
        return

    console.print(f"Found {report.found} item(s) ready to generate.")
    if report.spread_minutes > 0 and report.found > 1:
        console.print(f"Spreading jobs over {report.spread_minutes} minutes to balance load.")

    for item in report.items:
        title = escape(item.title)
        if item.action == "skipped":
            console.print(f"[yellow]  - Skipping '{title}': {escape(item.reason or '')}[/yellow]")
        elif item.action == "claimed_elsewhere":
            console.print(f"[dim]  - Already queued elsewhere: {title}[/dim]")
        elif report.dry_run:
            delay = f" (delay: {item.delay_minutes} min)" if item.delay_minutes else ""
            console.print(
                f"  - [DRY RUN] Would dispatch: {title} "
                f"(scheduled: {item.scheduled_date.isoformat()}){delay}"
            )
        else:
            delay = f" (starts in {item.delay_minutes} min)" if item.delay_minutes else ""
            console.print(f"  - Dispatched: {title}{delay}")

    console.print()
    prefix = "[DRY RUN] " if report.dry_run else ""
    console.print(f"{prefix}Summary: {report.summary}")
    if report.dry_run:
        console.print("[yellow]This was a dry run. No jobs were actually dispatched.[/yellow]")


# ---------------------------------------------------------------------------
# publish-scan: queue publishing for approved content that is due
# ---------------------------------------------------------------------------


@main.command("publish-scan")
@now_option
def publish_scan(now: datetime) -> None:
    """Queue publish jobs for approved content whose scheduled time has passed."""
    from opencopy.errors import StoreUnavailableError
    from opencopy.scheduling.dispatcher import run_publish_scan
    from opencopy.storage.database import get_session

    settings = _bootstrap()
    console.print("Checking for scheduled content ready to publish...")
    try:
        with get_session(settings.db_path) as session:
            report = run_publish_scan(session, now)
    except StoreUnavailableError as e:
        console.print(f"[bold red]Content store unavailable:[/bold red] {e}")
        raise SystemExit(1)

    _print_publish_report(report)


def _print_publish_report(report) -> None:
    if not report.items:
        console.print("No content ready to publish.")
        return

    console.print(f"Found {len(report.items)} item(s) ready to publish.")
    for item in report.items:
        title = escape(item.title)
        if item.action == "already_queued":
            console.print(f"[dim]  - Already queued: {title}[/dim]")
        else:
            console.print(f"  - Dispatching publish job for article: {title}")
    console.print(f"Done. {report.dispatched} dispatched, {report.already_queued} already queued.")


# ---------------------------------------------------------------------------
# work: run queued publish tasks
# ---------------------------------------------------------------------------


@main.command()
@click.option("--once", is_flag=True, help="Process due tasks once and exit")
@click.option("--interval", type=float, default=5.0, help="Seconds between polls")
@now_option
def work(once: bool, interval: float, now: datetime) -> None:
    """Run the publish worker against the task queue."""
    from opencopy.publishing.factory import PublisherFactory
    from opencopy.queue.worker import Worker, default_handlers
    from opencopy.storage.database import get_session

    settings = _bootstrap()
    worker = Worker(
        lambda: get_session(settings.db_path),
        default_handlers(PublisherFactory.from_settings(settings)),
        max_attempts=settings.scheduler.publish_max_attempts,
        backoff_seconds=settings.scheduler.publish_backoff_seconds,
    )

    if once:
        report = worker.run_once(now)
        console.print(
            f"Processed {report.processed} task(s): {report.completed} completed, "
            f"{report.retried} retrying, {report.failed} failed."
        )
        return

    console.print("[green]Worker started.[/green] Press Ctrl+C to stop.")
    try:
        while True:
            report = worker.run_once(datetime.now())
            if report.processed:
                console.print(
                    f"[dim]{datetime.now():%H:%M:%S}[/dim] {report.completed} completed, "
                    f"{report.retried} retrying, {report.failed} failed"
                )
            _time.sleep(interval)
    except KeyboardInterrupt:
        console.print("\n[yellow]Worker stopped[/yellow]")


# ---------------------------------------------------------------------------
# integration: check publishing destinations
# ---------------------------------------------------------------------------


@main.group()
def integration() -> None:
    """Manage publishing integrations."""


@integration.command("test")
@click.argument("integration_id", type=int)
def integration_test(integration_id: int) -> None:
    """Send a test payload to an integration and show the exchange."""
    from opencopy.errors import UnsupportedIntegrationError
    from opencopy.publishing.factory import PublisherFactory
    from opencopy.publishing.service import PublishingService
    from opencopy.storage.database import get_session
    from opencopy.storage.models import Integration

    settings = _bootstrap()
    with get_session(settings.db_path) as session:
        record = session.get(Integration, integration_id)
        if record is None:
            console.print(f"[bold red]Error:[/bold red] integration {integration_id} not found.")
            raise SystemExit(1)

        service = PublishingService(session, PublisherFactory.from_settings(settings))
        try:
            result = service.test(record)
        except UnsupportedIntegrationError as e:
            console.print(f"[bold red]Error:[/bold red] {e}")
            raise SystemExit(1)

    debug = result.to_debug()
    colour = "green" if result.is_successful else "red"
    console.print(f"[{colour}]{escape(debug['message'])}[/{colour}]")
    console.print_json(data=debug)


# ---------------------------------------------------------------------------
# run-scheduler: trigger both scans on their cadence
# ---------------------------------------------------------------------------


@main.command("run-scheduler")
@click.option("--ticks", type=int, default=None, help="Stop after this many ticks")
def run_scheduler(ticks: int | None) -> None:
    """Run generation-scan and publish-scan on the configured cadence."""
    from opencopy.scheduling.runner import ScanScheduler
    from opencopy.storage.database import get_session

    settings = _bootstrap()
    cadence = settings.scheduler
    console.print(
        f"[green]Scheduler started.[/green] Generation every "
        f"{cadence.generation_interval_minutes} min (spread {cadence.generation_spread_minutes} min), "
        f"publish every {cadence.publish_interval_minutes} min."
    )

    scheduler = ScanScheduler(
        cadence,
        lambda: get_session(settings.db_path),
        on_generation=lambda report: console.print(f"Generation scan: {report.summary}"),
        on_publish=lambda report: console.print(
            f"Publish scan: {report.dispatched} dispatched."
        ),
    )
    try:
        scheduler.run(ticks=ticks)
    except KeyboardInterrupt:
        console.print("\n[yellow]Scheduler stopped[/yellow]")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _bootstrap():
    """Load settings once and configure logging from them."""
    from opencopy.config import get_settings
    from opencopy.logs import configure_logging

    settings = get_settings()
    configure_logging(settings.log_level, json=settings.log_json)
    return settings


def _plan_action(content_id: int, action) -> None:
    """Load a scheduled item, apply a planner action, report the outcome."""
    from opencopy.content.planner import display_title
    from opencopy.errors import InvalidTransitionError
    from opencopy.storage.database import get_session
    from opencopy.storage.models import ScheduledContent

    settings = _bootstrap()
    with get_session(settings.db_path) as session:
        item = session.get(ScheduledContent, content_id)
        if item is None:
            console.print(f"[bold red]Error:[/bold red] content {content_id} not found.")
            raise SystemExit(1)
        try:
            item = action(session, item)
        except InvalidTransitionError as e:
            console.print(f"[bold red]Error:[/bold red] {e}")
            raise SystemExit(1)
        console.print(
            f"[green]{escape(display_title(session, item))}[/green] is now {item.status.label}"
        )
