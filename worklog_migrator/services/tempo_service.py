"""Tempo Cloud API service for worklogs and work attributes."""

from collections import OrderedDict
from datetime import date, timedelta
from typing import List, Optional

import requests
from rich.console import Console

from ..config.auth import TempoAuth, safe_parse_response
from ..models.issue import ParentTask, WorkAttributeDefinition
from ..models.worklog import WorklogEntry
from ..utils.formatters import format_date, format_time
from .jira_service import JiraService, PARENT_LOOKBACK_DAYS

console = Console()

PAGE_LIMIT = 1000
TEMPO_START_TIME = "09:00:00"


class TempoService:
    """Service for Tempo REST API operations."""

    def __init__(self, auth: TempoAuth):
        self.auth = auth

    def fetch_user_worklogs(self, account_id: str, date_from: str, date_to: str) -> List[dict]:
        """Fetch worklogs of a user within a date range, following pagination.

        Raises:
            requests.exceptions.RequestException: On HTTP errors
        """
        worklogs = []
        endpoint = f"/worklogs/user/{account_id}"
        params = {'from': date_from, 'to': date_to, 'limit': PAGE_LIMIT}

        while endpoint:
            response = self.auth._make_request('GET', endpoint, params=params)
            data = safe_parse_response(response)
            if not isinstance(data, dict) or data.get('is_html'):
                break
            worklogs.extend(data.get('results', []) or [])

            endpoint = (data.get('metadata') or {}).get('next')
            params = None  # Pagination links carry their own query

        return worklogs

    def fetch_parents_for_date(self, day: date, account_id: str, jira: JiraService,
                               lookback_days: int = PARENT_LOOKBACK_DAYS) -> List[ParentTask]:
        """Build destination parents from the user's Tempo worklogs.

        Every issue with Tempo time in the lookback window becomes a parent;
        only worklogs of the selected day become its children.
        """
        date_str = format_date(day)
        start_str = format_date(day - timedelta(days=lookback_days - 1))

        try:
            tempo_worklogs = self.fetch_user_worklogs(account_id, start_str, date_str)
        except requests.exceptions.RequestException as e:
            console.print(f"[red]Tempo API error while fetching worklogs:[/red] {str(e).splitlines()[0]}")
            return []

        by_issue: "OrderedDict[str, List[dict]]" = OrderedDict()
        for wl in tempo_worklogs:
            issue_id = (wl.get('issue') or {}).get('id')
            if not issue_id:
                continue
            selected = by_issue.setdefault(str(issue_id), [])
            if wl.get('startDate') == date_str:
                selected.append(wl)

        parents = []
        for issue_id, selected in by_issue.items():
            issue = jira.get_issue(issue_id)
            if issue is None:
                console.print(f"[yellow]Warning:[/yellow] Could not load issue {issue_id}, skipping")
                continue

            fields = issue.get('fields', {}) or {}
            summary = fields.get('summary') or 'No summary'
            children = []
            for wl in selected:
                seconds = int(wl.get('timeSpentSeconds', 0) or 0)
                description = wl.get('description') or ''
                children.append(WorklogEntry(
                    id=str(wl.get('tempoWorklogId') or wl.get('id', '')),
                    issue_key=issue.get('key', ''),
                    issue_summary=description or summary,
                    time_spent_seconds=seconds,
                    time_spent_formatted=format_time(seconds),
                    comment=description or summary,
                    started=date_str,
                ))

            parents.append(ParentTask(
                id=issue_id,
                issue_key=issue.get('key', ''),
                issue_summary=summary,
                type=(fields.get('issuetype') or {}).get('name') or 'Task',
                status=(fields.get('status') or {}).get('name') or 'Status',
                children=children,
                initial_total_time_seconds=sum(c.time_spent_seconds for c in children),
            ))
        return parents

    def fetch_work_attributes(self) -> List[WorkAttributeDefinition]:
        """Fetch work attribute definitions (empty on error)."""
        try:
            response = self.auth._make_request('GET', '/work-attributes')
            data = safe_parse_response(response)
        except requests.exceptions.RequestException as e:
            console.print(f"[yellow]Warning:[/yellow] Could not load Tempo work attributes: {str(e).splitlines()[0]}")
            return []
        if not isinstance(data, dict) or data.get('is_html'):
            return []

        definitions = []
        for attr in data.get('results', []) or []:
            values = attr.get('values') or []
            if isinstance(values, dict):
                values = list(values.keys())
            definitions.append(WorkAttributeDefinition(
                key=attr.get('key', ''),
                name=attr.get('name', ''),
                type=attr.get('type'),
                required=bool(attr.get('required')),
                values=[str(v) for v in values],
            ))
        return definitions

    def create_worklog(self, issue_id: int, time_spent_seconds: int, start_date: str, description: str,
                       author_account_id: str, attributes: Optional[List[dict]] = None) -> Optional[str]:
        """Create a Tempo worklog.

        Returns:
            Tempo worklog ID (may be empty) or None on failure
        """
        payload = {
            'issueId': issue_id,
            'timeSpentSeconds': time_spent_seconds,
            'startDate': start_date,
            'startTime': TEMPO_START_TIME,
            'description': description,
            'authorAccountId': author_account_id,
        }
        if attributes:
            payload['attributes'] = attributes

        try:
            response = self.auth._make_request('POST', '/worklogs', json=payload)
            result = safe_parse_response(response)
            if isinstance(result, dict) and not result.get('is_html'):
                return str(result.get('tempoWorklogId', ''))
            return ''
        except requests.exceptions.RequestException as e:
            console.print(f"[red]Tempo worklog creation failed:[/red] {str(e)}")
            return None

    def delete_worklog(self, worklog_id: str) -> bool:
        try:
            self.auth._make_request('DELETE', f'/worklogs/{worklog_id}')
            console.print(f"[dim]Tempo worklog {worklog_id} deleted[/dim]")
            return True
        except requests.exceptions.RequestException as e:
            console.print(f"[red]Tempo worklog deletion failed:[/red] {str(e)}")
            return False
