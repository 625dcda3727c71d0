"""Async tracker gateways used by the staging store and the migration executor.

The HTTP services block, so every call runs in a worker thread. Any failure
is reported and turned into "no data" (empty list, None or False).
"""

import asyncio
from datetime import date
from typing import List, Optional, Tuple

from rich.console import Console

from ..config.auth import JiraAuth, TempoAuth
from ..config.settings import Settings
from ..models.issue import ParentTask, WorkAttributeDefinition
from ..models.worklog import WorklogEntry
from ..utils.formatters import format_provenance_comment
from .cache import TrackerCache
from .jira_service import JiraService
from .tempo_service import TempoService

console = Console()


def migration_comment(worklog: WorklogEntry) -> str:
    """Comment written to the destination: "[<source key>] <comment or summary>"."""
    return format_provenance_comment(worklog.issue_key, worklog.comment or worklog.issue_summary)


class SourceTracker:
    """Read-only access to the source Jira."""

    def __init__(self, jira: JiraService):
        self.jira = jira

    async def fetch_worklogs(self, day: date) -> List[WorklogEntry]:
        try:
            return await asyncio.to_thread(self.jira.fetch_worklogs_for_date, day)
        except Exception as e:
            console.print(f"[yellow]Warning:[/yellow] Could not fetch source worklogs: {str(e)}")
            return []


class DestinationTracker:
    """Read and write access to the destination Jira, optionally through Tempo."""

    def __init__(self, jira: JiraService, tempo: Optional[TempoService] = None):
        self.jira = jira
        self.tempo = tempo

    @property
    def uses_tempo(self) -> bool:
        return self.tempo is not None

    async def fetch_parents(self, day: date) -> List[ParentTask]:
        try:
            if self.tempo is not None:
                account_id = await self.get_author_account_id()
                if not account_id:
                    return []
                return await asyncio.to_thread(self.tempo.fetch_parents_for_date, day, account_id, self.jira)
            return await asyncio.to_thread(self.jira.fetch_parents_for_date, day)
        except Exception as e:
            console.print(f"[yellow]Warning:[/yellow] Could not fetch destination parents: {str(e)}")
            return []

    async def search_issues(self, query: str) -> List[ParentTask]:
        try:
            return await asyncio.to_thread(self.jira.search_issues, query)
        except Exception as e:
            console.print(f"[yellow]Warning:[/yellow] Issue search failed: {str(e)}")
            return []

    async def get_author_account_id(self) -> Optional[str]:
        try:
            user = await asyncio.to_thread(self.jira.get_current_user)
        except Exception as e:
            console.print(f"[yellow]Warning:[/yellow] Could not resolve current user: {str(e)}")
            return None
        return (user or {}).get('accountId')

    async def resolve_issue(self, issue_key: str) -> Optional[Tuple[int, str]]:
        """Numeric issue ID and summary of a destination issue."""
        try:
            issue = await asyncio.to_thread(self.jira.get_issue, issue_key)
        except Exception as e:
            console.print(f"[yellow]Warning:[/yellow] Could not resolve issue {issue_key}: {str(e)}")
            return None
        if not issue or not str(issue.get('id', '')).isdigit():
            return None
        return int(issue['id']), (issue.get('fields') or {}).get('summary') or ''

    async def fetch_required_attribute_definitions(self) -> List[WorkAttributeDefinition]:
        if self.tempo is None:
            return []
        try:
            definitions = await asyncio.to_thread(self.tempo.fetch_work_attributes)
        except Exception as e:
            console.print(f"[yellow]Warning:[/yellow] Could not fetch work attributes: {str(e)}")
            return []
        return [definition for definition in definitions if definition.required]

    async def create_worklog(
        self,
        parent_key: str,
        worklog: WorklogEntry,
        target_date: str,
        issue_id: Optional[int] = None,
        author_account_id: Optional[str] = None,
        attributes: Optional[List[dict]] = None,
    ) -> bool:
        """Write one staged worklog to a destination parent.

        Tempo is used when an issue ID and author are supplied, native Jira
        otherwise.
        """
        comment = migration_comment(worklog)
        try:
            if self.tempo is not None and issue_id and author_account_id:
                created = await asyncio.to_thread(
                    self.tempo.create_worklog, issue_id, worklog.time_spent_seconds,
                    target_date, comment, author_account_id, attributes
                )
            else:
                created = await asyncio.to_thread(
                    self.jira.add_worklog, parent_key, worklog.time_spent_seconds, target_date, comment
                )
        except Exception as e:
            console.print(f"[red]Error writing worklog to {parent_key}:[/red] {str(e)}")
            return False
        return created is not None

    async def delete_worklog(self, worklog_id: str, parent_key_or_id: str) -> bool:
        try:
            if self.tempo is not None:
                return await asyncio.to_thread(self.tempo.delete_worklog, worklog_id)
            return await asyncio.to_thread(self.jira.delete_worklog, parent_key_or_id, worklog_id)
        except Exception as e:
            console.print(f"[red]Error deleting worklog {worklog_id}:[/red] {str(e)}")
            return False


def build_trackers(settings: Settings) -> Tuple[SourceTracker, DestinationTracker]:
    """Create source and destination gateways from settings."""
    source_config = settings.source_tracker()
    dest_config = settings.destination_tracker()

    source = SourceTracker(JiraService(JiraAuth(source_config, settings.jira_timeout), TrackerCache()))
    tempo = TempoService(TempoAuth(dest_config, settings.jira_timeout)) if dest_config.uses_tempo else None
    destination = DestinationTracker(JiraService(JiraAuth(dest_config, settings.jira_timeout), TrackerCache()), tempo)
    return source, destination
