"""Input validation utilities."""

import re
from datetime import datetime

from .formatters import DISPLAY_MODES

_ISSUE_KEY_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_]*-\d+$")
_PROJECT_KEY_PATTERN = re.compile(r"^[A-Za-z0-9]+$")


def validate_date(date_str: str) -> bool:
    """Validate date string in YYYY-MM-DD format.

    Args:
        date_str: Date string to validate

    Returns:
        True if valid, False otherwise
    """
    try:
        datetime.strptime(date_str, "%Y-%m-%d")
        return True
    except (ValueError, TypeError):
        return False


def validate_issue_key(issue_key: str) -> bool:
    """Validate Jira issue key format (e.g. PROJ-123).

    Args:
        issue_key: Issue key to validate

    Returns:
        True if valid, False otherwise
    """
    if not issue_key or not isinstance(issue_key, str):
        return False
    return bool(_ISSUE_KEY_PATTERN.match(issue_key.strip()))


def looks_like_project_key(query: str) -> bool:
    """Check whether a search query could be a bare project key."""
    return bool(query) and bool(_PROJECT_KEY_PATTERN.match(query))


def validate_display_mode(mode: str) -> bool:
    """Validate time display mode ("hm" or "decimal")."""
    return mode in DISPLAY_MODES
