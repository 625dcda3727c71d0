"""Jira API service for issues and work logs using requests library."""

from typing import Any, Dict, List, Optional
from datetime import date, timedelta
import re
import requests
from rich.console import Console

from ..config.auth import JiraAuth, extract_jira_error_payload, safe_parse_response
from ..models.issue import ParentTask
from ..models.worklog import WorklogEntry
from ..utils.formatters import format_date, format_time
from ..utils.validators import validate_issue_key, looks_like_project_key
from .cache import TrackerCache

console = Console()

# Older endpoints that still accept plain-text comments
LEGACY_API_VERSION = '2'
MAX_RESULTS = 100
WORKLOG_START_TIME = "T09:00:00.000+0000"
PARENT_LOOKBACK_DAYS = 7

_HTML_TAG = re.compile(r"<[^>]*>?")


def extract_comment_text(comment: Any) -> str:
    """Flatten a worklog comment (plain string or Atlassian document) to text."""
    if not comment:
        return ""
    if isinstance(comment, str):
        return comment
    if isinstance(comment, dict):
        if comment.get('type') == 'text':
            return comment.get('text', '')
        for node in comment.get('content', []) or []:
            text = extract_comment_text(node)
            if text:
                return text
    return ""


def is_own_worklog(worklog: dict, email: Optional[str], account_id: Optional[str], user_name: Optional[str]) -> bool:
    """Check that a worklog was written by the current user.

    Matches by email first (Server/Data Center), then account ID (Cloud),
    then user name. Worklogs without any matching attribute are skipped.
    """
    author = worklog.get('author') or {}
    author_email = author.get('emailAddress')
    if email and author_email and author_email.lower() == email.lower():
        return True
    if account_id and author.get('accountId') == account_id:
        return True
    if user_name and author.get('name') == user_name:
        return True
    return False


class JiraService:
    """Service for Jira API operations using requests library."""

    def __init__(self, auth: JiraAuth, cache: Optional[TrackerCache] = None):
        """Initialize Jira service.

        Args:
            auth: Jira authentication handler
            cache: Cache for user and issue lookups (creates new if None)
        """
        self.auth = auth
        self.cache = cache or TrackerCache()

    def _report_error(self, action: str, e: requests.exceptions.RequestException):
        console.print(f"[red]{self.auth.tracker.name} API error while {action}:[/red] {str(e).splitlines()[0]}")
        if getattr(e, 'response', None) is not None:
            error_payload = getattr(e, 'error_payload', None) or extract_jira_error_payload(e.response)
            if error_payload['formatted']:
                console.print(f"[yellow]Error details:[/yellow]\n{error_payload['formatted']}")

    def get_current_user(self) -> Optional[dict]:
        """Get current authenticated user information.

        Returns:
            Dictionary with user info (accountId, name, emailAddress, ...) or None if failed
        """
        cache_key = f"{self.auth.tracker.url}|{self.auth.tracker.email}"
        cached = self.cache.get_user(cache_key)
        if cached is not None:
            return cached

        try:
            response = self.auth._make_request('GET', '/myself')
            result = safe_parse_response(response)
            if isinstance(result, dict) and result.get('is_html'):
                console.print("[yellow]Warning:[/yellow] Could not get current user info (HTML response)")
                return None
            self.cache.set_user(cache_key, result)
            return result
        except requests.exceptions.RequestException as e:
            console.print(f"[yellow]Warning:[/yellow] Could not get current user info: {str(e).splitlines()[0]}")
            return None

    def get_issue(self, issue_id_or_key: str) -> Optional[dict]:
        """Get issue details by ID or key.

        Returns:
            Raw issue dictionary or None if not found
        """
        cached = self.cache.get_issue(issue_id_or_key)
        if cached is not None:
            return cached

        try:
            response = self.auth._make_request('GET', f'/issue/{issue_id_or_key}', api_version=LEGACY_API_VERSION)
            data = safe_parse_response(response)
            if not isinstance(data, dict) or data.get('is_html'):
                return None
            self.cache.set_issue(issue_id_or_key, data)
            return data
        except requests.exceptions.RequestException:
            return None

    def search_jql(self, jql: str, fields: List[str]) -> List[dict]:
        """Run a JQL search and return raw issues."""
        response = self.auth._make_request('POST', '/search/jql', json={
            'jql': jql,
            'fields': fields,
            'maxResults': MAX_RESULTS
        })
        data = safe_parse_response(response)
        if not isinstance(data, dict) or data.get('is_html'):
            console.print("[yellow]Warning:[/yellow] Received HTML response from /search/jql endpoint")
            return []
        return data.get('issues', []) or []

    def get_issue_worklogs(self, issue_key: str) -> List[dict]:
        """Get raw worklogs of an issue (empty on error)."""
        try:
            response = self.auth._make_request('GET', f'/issue/{issue_key}/worklog')
            data = safe_parse_response(response)
            if not isinstance(data, dict) or data.get('is_html'):
                return []
            return data.get('worklogs', []) or []
        except requests.exceptions.RequestException:
            return []

    def _own_worklogs_by_issue(self, jql: str, fields: List[str], dates: List[str]) -> List[tuple]:
        """Issues found by JQL paired with the current user's worklogs on the given dates."""
        user = self.get_current_user() or {}
        account_id = user.get('accountId')
        user_name = user.get('name')
        email = self.auth.tracker.email

        result = []
        for issue in self.search_jql(jql, fields):
            own = [
                wl for wl in self.get_issue_worklogs(issue.get('key', ''))
                if any(str(wl.get('started', '')).startswith(d) for d in dates)
                and is_own_worklog(wl, email, account_id, user_name)
            ]
            result.append((issue, own))
        return result

    def fetch_worklogs_for_date(self, day: date) -> List[WorklogEntry]:
        """Fetch the current user's worklogs of one day.

        Args:
            day: Day to fetch

        Returns:
            List of WorklogEntry objects (empty on error)
        """
        date_str = format_date(day)
        jql = f"worklogDate = '{date_str}' AND worklogAuthor = currentUser()"

        try:
            pairs = self._own_worklogs_by_issue(jql, ['key', 'summary', 'labels', 'issuetype'], [date_str])
        except requests.exceptions.RequestException as e:
            self._report_error("fetching worklogs", e)
            return []

        worklogs = []
        for issue, own in pairs:
            fields = issue.get('fields', {}) or {}
            summary = fields.get('summary', '') or ''
            for wl in own:
                seconds = int(wl.get('timeSpentSeconds', 0) or 0)
                worklogs.append(WorklogEntry(
                    id=str(wl.get('id', '')),
                    issue_key=issue.get('key', ''),
                    issue_summary=summary,
                    issue_type=(fields.get('issuetype') or {}).get('name', ''),
                    labels=fields.get('labels', []) or [],
                    time_spent_seconds=seconds,
                    time_spent_formatted=format_time(seconds),
                    comment=extract_comment_text(wl.get('comment')) or summary,
                    author=(wl.get('author') or {}).get('displayName'),
                    started=date_str,
                ))
        return worklogs

    def fetch_parents_for_date(self, day: date, lookback_days: int = PARENT_LOOKBACK_DAYS) -> List[ParentTask]:
        """Fetch destination parents from native Jira worklogs.

        Issues the user logged time on during the last lookback_days days become
        parents, so recently used buckets show up even when nothing was logged
        on the selected day. Only worklogs of the selected day become children.
        """
        date_str = format_date(day)
        start_str = format_date(day - timedelta(days=lookback_days - 1))
        jql = (
            f"worklogDate >= '{start_str}' AND worklogDate <= '{date_str}' "
            f"AND worklogAuthor = currentUser()"
        )

        try:
            pairs = self._own_worklogs_by_issue(jql, ['key', 'summary', 'issuetype', 'status'], [date_str])
        except requests.exceptions.RequestException as e:
            self._report_error("fetching parent issues", e)
            return []

        parents = []
        for issue, own in pairs:
            parent = self._issue_to_parent(issue)
            for wl in own:
                seconds = int(wl.get('timeSpentSeconds', 0) or 0)
                comment = extract_comment_text(wl.get('comment'))
                parent.children.append(WorklogEntry(
                    id=str(wl.get('id', '')),
                    issue_key=parent.issue_key,
                    issue_summary=comment or parent.issue_summary,
                    time_spent_seconds=seconds,
                    time_spent_formatted=format_time(seconds),
                    comment=comment,
                    author=(wl.get('author') or {}).get('displayName'),
                    started=date_str,
                ))
            parent.initial_total_time_seconds = sum(c.time_spent_seconds for c in parent.children)
            parents.append(parent)
        return parents

    @staticmethod
    def _issue_to_parent(issue: dict) -> ParentTask:
        fields = issue.get('fields', {}) or {}
        return ParentTask(
            id=str(issue.get('id', '')),
            issue_key=issue.get('key', ''),
            issue_summary=fields.get('summary') or 'No summary',
            type=(fields.get('issuetype') or {}).get('name') or 'Task',
            status=(fields.get('status') or {}).get('name') or 'Status',
        )

    def search_issues(self, query: str) -> List[ParentTask]:
        """Search issues by key, summary or project, falling back to the issue picker.

        Args:
            query: Search text (at least 2 characters)

        Returns:
            List of ParentTask objects without children
        """
        clean_query = (query or '').strip()
        if len(clean_query) < 2:
            return []

        jql = f'summary ~ "{clean_query}*"'
        if validate_issue_key(clean_query):
            jql = f'key = "{clean_query}" OR {jql}'
        else:
            jql = f'key ~ "{clean_query}*" OR {jql}'
            if looks_like_project_key(clean_query):
                jql += f' OR project = "{clean_query}"'

        try:
            issues = self.search_jql(jql, ['key', 'summary', 'issuetype', 'status'])
            if issues:
                return [self._issue_to_parent(issue) for issue in issues]
        except requests.exceptions.RequestException as e:
            console.print(f"[yellow]Warning:[/yellow] JQL search failed, trying issue picker: {str(e).splitlines()[0]}")

        try:
            response = self.auth._make_request('GET', '/issue/picker', params={'query': clean_query})
            data = safe_parse_response(response)
            if not isinstance(data, dict) or data.get('is_html'):
                return []
        except requests.exceptions.RequestException as e:
            self._report_error("searching issues", e)
            return []

        results = []
        for section in data.get('sections', []) or []:
            for issue in section.get('issues', []) or []:
                summary = _HTML_TAG.sub('', issue.get('summaryText') or '') or 'No summary'
                results.append(ParentTask(
                    id=str(issue.get('id', '')),
                    issue_key=issue.get('key', ''),
                    issue_summary=summary,
                    type='Task',
                    status='Active',
                ))
        return results

    def add_worklog(self, issue_key: str, time_spent_seconds: int, started: str, comment: str) -> Optional[str]:
        """Add work log to a Jira issue.

        Args:
            issue_key: Jira issue key
            time_spent_seconds: Time spent in seconds
            started: Work date (YYYY-MM-DD)
            comment: Plain-text comment

        Returns:
            ID of the created worklog (may be empty) or None on failure
        """
        worklog_data = {
            'timeSpentSeconds': time_spent_seconds,
            'started': f"{started}{WORKLOG_START_TIME}",
            'comment': comment
        }
        try:
            response = self.auth._make_request(
                'POST', f'/issue/{issue_key}/worklog',
                api_version=LEGACY_API_VERSION,
                params={'adjustEstimate': 'leave'},
                json=worklog_data
            )
            result = safe_parse_response(response)
            if isinstance(result, dict) and not result.get('is_html'):
                return str(result.get('id', ''))
            return ''
        except requests.exceptions.RequestException as e:
            self._report_error(f"adding worklog to {issue_key}", e)
            return None

    def delete_worklog(self, issue_key_or_id: str, worklog_id: str) -> bool:
        """Delete a worklog from a Jira issue."""
        try:
            self.auth._make_request(
                'DELETE', f'/issue/{issue_key_or_id}/worklog/{worklog_id}',
                api_version=LEGACY_API_VERSION
            )
            console.print(f"[dim]Worklog {worklog_id} deleted from {issue_key_or_id}[/dim]")
            return True
        except requests.exceptions.RequestException as e:
            self._report_error(f"deleting worklog {worklog_id}", e)
            return False
