"""Status command for Worklog Migrator."""

import asyncio
from datetime import date
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..config.settings import Settings, get_settings
from ..services.migration_service import MigrationService
from ..services.staging_store import MigrationStore
from ..services.trackers import build_trackers
from ..utils.formatters import format_date, parse_date

console = Console()


def resolve_day(value: Optional[str]) -> date:
    """Parse the --date option, defaulting to today."""
    if not value:
        return date.today()
    try:
        return parse_date(value)
    except ValueError as e:
        raise click.BadParameter(str(e))


def require_configured(settings: Settings):
    """Abort with a hint when tracker credentials are missing."""
    missing = [t.name for t in (settings.source_tracker(), settings.destination_tracker()) if not t.is_configured]
    if missing:
        console.print(Panel(
            f"[red]Error:[/red] Missing credentials for {', '.join(missing)}\n\n"
            "Set SOURCE_JIRA_SERVER, SOURCE_JIRA_EMAIL, SOURCE_JIRA_API_TOKEN,\n"
            "DEST_JIRA_SERVER, DEST_JIRA_EMAIL and DEST_JIRA_API_TOKEN in your .env file.",
            title="Configuration Error",
            border_style="red"
        ))
        raise click.Abort()


def render_source_table(store: MigrationStore, day: date) -> Table:
    table = Table(title=f"Source worklogs ({format_date(day)})", show_header=True, header_style="bold cyan")
    table.add_column("Issue", style="cyan", no_wrap=True)
    table.add_column("Type", style="dim")
    table.add_column("Time", justify="right")
    table.add_column("Comment", overflow="fold")
    table.add_column("Status")

    for worklog in store.source_worklogs:
        status = "[dim]Migrated[/dim]" if worklog.is_moved else "[green]Available[/green]"
        table.add_row(worklog.issue_key, worklog.issue_type, worklog.time_spent_formatted, worklog.comment, status)
    return table


def render_parents_table(store: MigrationStore) -> Table:
    table = Table(title="Destination parents", show_header=True, header_style="bold cyan")
    table.add_column("Parent", style="cyan", no_wrap=True)
    table.add_column("Worklog", overflow="fold")
    table.add_column("Time", justify="right")
    table.add_column("State")

    for parent in store.parents:
        table.add_row(
            f"[bold]{parent.issue_key}[/bold]",
            f"{parent.issue_summary} [dim]({parent.status})[/dim]",
            store.get_total_time(parent.id),
            f"+{store.get_added_time(parent.id)}" if parent.staged_children() else "",
        )
        for child in parent.children:
            state = "[yellow]Staged[/yellow]" if child.is_new else "[dim]Logged[/dim]"
            table.add_row("", f"{child.issue_key}: {child.comment}", child.time_spent_formatted, state)
    return table


@click.command()
@click.option(
    '--date',
    'day_str',
    type=str,
    help='Day to inspect (YYYY-MM-DD, default: today)'
)
@click.option(
    '--decimal',
    is_flag=True,
    help='Show times as decimal hours'
)
def status(day_str: Optional[str], decimal: bool):
    """Show source worklogs of a day and whether they are already migrated.

    Examples:

    \b
    Today's status:
    $ worklog-migrator status

    \b
    A specific day in decimal hours:
    $ worklog-migrator status --date 2026-10-16 --decimal
    """
    day = resolve_day(day_str)
    try:
        settings = get_settings()
        require_configured(settings)
        source, destination = build_trackers(settings)
        mode = 'decimal' if decimal else settings.time_display_mode
        store = MigrationStore(destination=destination, display_mode=mode)
        service = MigrationService(store, source, destination)

        with console.status("Fetching worklogs from both trackers..."):
            asyncio.run(service.refresh(day))

        console.print(render_source_table(store, day))
        console.print(render_parents_table(store))

        stats = store.source_stats()
        console.print(
            f"\n[green]{stats['available']}[/green] available, "
            f"[dim]{stats['moved']}[/dim] already migrated of {stats['total']} worklog(s)"
        )
    except click.Abort:
        raise
    except ValueError as e:
        console.print(f"[red]Error:[/red] {str(e)}")
        console.print("[yellow]Please check your .env file configuration.[/yellow]")
        raise click.Abort()
    except Exception as e:
        console.print(f"[red]Unexpected error:[/red] {str(e)}")
        raise click.Abort()
