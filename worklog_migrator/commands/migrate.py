"""Migrate command for Worklog Migrator."""

import asyncio
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from ..config.settings import get_settings
from ..models.worklog import MigrationProgress
from ..services.migration_service import MigrationService
from ..services.rule_service import load_rules
from ..services.staging_store import MigrationStore
from ..services.trackers import build_trackers
from ..utils.validators import validate_date
from .status import render_parents_table, render_source_table, require_configured, resolve_day

console = Console()


def render_summary_table(store: MigrationStore) -> Table:
    table = Table(title="Staged for migration", show_header=True, header_style="bold cyan")
    table.add_column("Parent", style="cyan", no_wrap=True)
    table.add_column("Source issue")
    table.add_column("Comment", overflow="fold")
    table.add_column("Time", justify="right")

    for batch in store.get_migration_summary():
        for i, child in enumerate(batch.children):
            parent_label = f"{batch.parent_key} ({batch.total_time})" if i == 0 else ""
            table.add_row(parent_label, child.issue_key, child.comment, child.time_spent_formatted)
    return table


@click.command()
@click.option(
    '--date',
    'day_str',
    type=str,
    help='Day whose worklogs are migrated (YYYY-MM-DD, default: today)'
)
@click.option(
    '--target-date',
    type=str,
    help='Day to log the time on in the destination (default: same day)'
)
@click.option(
    '--rules',
    'rules_file',
    type=str,
    help='JSON file with routing rules (default: RULES_FILE from .env)'
)
@click.option(
    '--dry-run',
    is_flag=True,
    help='Show what would be migrated, do not write anything'
)
@click.option(
    '--yes',
    is_flag=True,
    help='Do not ask for confirmation'
)
@click.option(
    '--verbose',
    is_flag=True,
    help='Show verbose output'
)
def migrate(day_str: Optional[str], target_date: Optional[str], rules_file: Optional[str],
            dry_run: bool, yes: bool, verbose: bool):
    """Route a day's worklogs with rules and write them to the destination.

    Worklogs that are already present in the destination (recognized by the
    "[ISSUE-KEY]" comment prefix and duration) are skipped.

    Examples:

    \b
    Preview today's migration:
    $ worklog-migrator migrate --rules rules.json --dry-run

    \b
    Migrate a specific day:
    $ worklog-migrator migrate --date 2026-10-16 --rules rules.json --yes
    """
    day = resolve_day(day_str)
    if target_date and not validate_date(target_date):
        raise click.BadParameter(f"Invalid date format: {target_date}. Expected YYYY-MM-DD")

    try:
        settings = get_settings()
        require_configured(settings)
        source, destination = build_trackers(settings)

        rules_path = rules_file or settings.rules_file
        rules = load_rules(rules_path) if rules_path else []
        store = MigrationStore(destination=destination, display_mode=settings.time_display_mode, rules=rules)
        service = MigrationService(store, source, destination)

        with console.status("Fetching worklogs from both trackers..."):
            asyncio.run(service.refresh(day))

        if verbose:
            console.print(render_source_table(store, day))

        staged = store.apply_rules()
        pending = store.get_total_pending_migration()
        if not staged and not pending.count:
            stats = store.source_stats()
            console.print(Panel(
                f"Nothing to migrate.\n\n"
                f"Available worklogs: {stats['available']}\n"
                f"Already migrated: {stats['moved']}\n"
                f"Rules loaded: {len(rules)}",
                title="Migration",
                border_style="yellow"
            ))
            return

        console.print(render_summary_table(store))
        console.print(f"\n[bold]{pending.count}[/bold] worklog(s), [bold]{pending.time}[/bold] in total")

        if dry_run:
            console.print("\n[yellow]DRY RUN MODE:[/yellow] Nothing was written.")
            return

        if not yes and not click.confirm("Migrate these worklogs?", default=False):
            console.print("[yellow]Migration cancelled.[/yellow]")
            return

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.completed}/{task.total}"),
            console=console
        ) as progress:
            task = progress.add_task("Migrating worklogs...", total=pending.count)

            def on_progress(update: MigrationProgress):
                description = f"[cyan]{update.phase}[/cyan]"
                if update.current_parent:
                    description += f" {update.current_parent}"
                progress.update(task, completed=update.current, description=description)

            result = asyncio.run(service.migrate(day, target_date, on_progress))

        border = "green" if result.success and not result.failed_count else "yellow" if result.success else "red"
        console.print(Panel(
            f"Migrated: [green]{result.migrated_count}[/green]\n"
            f"Failed: [red]{result.failed_count}[/red]\n"
            f"Total: {result.total}",
            title="Migration Result",
            border_style=border
        ))

        if verbose:
            console.print(render_parents_table(store))

        if not result.success:
            raise click.Abort()

    except click.Abort:
        raise
    except KeyboardInterrupt:
        console.print("\n[yellow]Migration cancelled by user.[/yellow]")
        raise click.Abort()
    except ValueError as e:
        console.print(f"[red]Error:[/red] {str(e)}")
        raise click.Abort()
    except Exception as e:
        console.print(f"[red]Unexpected error:[/red] {str(e)}")
        if verbose:
            import traceback
            console.print(traceback.format_exc())
        raise click.Abort()
