"""Main CLI entry point for Worklog Migrator."""

import click
from rich.console import Console
from rich.panel import Panel

from .commands.migrate import migrate
from .commands.status import status
from .config.auth import JiraAuth, TempoAuth
from .config.settings import get_settings

console = Console()


@click.group(invoke_without_command=True)
@click.pass_context
@click.version_option(version="0.1.0", prog_name="worklog-migrator")
def cli(ctx: click.Context):
    """Worklog Migrator - Move a day's Jira worklogs to parent tasks in another Jira.

    Reads your worklogs from the source Jira, detects which are already
    migrated and writes the rest to the destination Jira (natively or via
    Tempo).

    Examples:

    \b
    Test connections:
    $ worklog-migrator test

    \b
    Show today's migration status:
    $ worklog-migrator status

    \b
    Migrate with routing rules:
    $ worklog-migrator migrate --rules rules.json
    """
    if ctx.invoked_subcommand is None:
        console.print(Panel(
            "[bold cyan]Worklog Migrator[/bold cyan]\n\n"
            "Move worklogs from one Jira to parent tasks in another.\n\n"
            "[yellow]Available Commands:[/yellow]\n"
            "  test     - Test connection to both trackers\n"
            "  status   - Show a day's worklogs and their migration state\n"
            "  migrate  - Apply rules and migrate staged worklogs\n\n"
            "[dim]Use --help with any command for detailed help.[/dim]",
            title="Welcome",
            border_style="cyan"
        ))
        console.print(ctx.get_help())


@cli.command()
def test():
    """Test connection to the source and destination trackers.

    Uses credentials from the .env file. The Tempo token is tested only
    when DEST_TEMPO_TOKEN is set.

    Examples:

    \b
    Test connections:
    $ worklog-migrator test
    """
    try:
        settings = get_settings()
        source_config = settings.source_tracker()
        dest_config = settings.destination_tracker()

        results = [
            JiraAuth(source_config, settings.jira_timeout).test_connection(),
            JiraAuth(dest_config, settings.jira_timeout).test_connection(),
        ]
        if dest_config.uses_tempo:
            results.append(TempoAuth(dest_config, settings.jira_timeout).test_connection())

        if all(results):
            console.print("\n[green]✓[/green] Connection test successful!")
        else:
            console.print("\n[red]✗[/red] Connection test failed!")
            raise click.Abort()

    except ValueError as e:
        console.print(f"[red]Error:[/red] {str(e)}")
        console.print("[yellow]Please check your .env file configuration.[/yellow]")
        raise click.Abort()


# Register commands
cli.add_command(status)
cli.add_command(migrate)


if __name__ == '__main__':
    cli()
