"""Data formatting utilities."""

import re
from datetime import datetime, date
from typing import Optional

HM_MODE = "hm"
DECIMAL_MODE = "decimal"
DISPLAY_MODES = (HM_MODE, DECIMAL_MODE)

# A bare number below this many units is read as hours, otherwise as minutes
BARE_HOURS_THRESHOLD = 8

_NUMBER = r"(\d+(?:\.\d*)?|\.\d+)"
_UNIT_PATTERN = re.compile(rf"^(?:{_NUMBER}\s*h)?\s*(?:{_NUMBER}\s*m)?$")
_BARE_PATTERN = re.compile(rf"^{_NUMBER}$")
_PROVENANCE_PATTERN = re.compile(r"^\[([^\[\]\s]+)\]")


def format_date(d: Optional[date]) -> str:
    """Format date to YYYY-MM-DD string.

    Args:
        d: Date to format

    Returns:
        Formatted date string or empty string
    """
    if d is None:
        return ""
    return d.strftime("%Y-%m-%d")


def parse_date(date_str: str) -> date:
    """Parse date string to date object.

    Args:
        date_str: Date string in YYYY-MM-DD format

    Returns:
        Date object
    """
    try:
        return datetime.strptime(date_str, "%Y-%m-%d").date()
    except (ValueError, TypeError) as e:
        raise ValueError(f"Invalid date format: {date_str}. Expected YYYY-MM-DD") from e


def format_time(seconds: int, mode: str = HM_MODE) -> str:
    """Format seconds for display.

    Args:
        seconds: Time in seconds
        mode: "hm" for "2h 30m" or "decimal" for "2.5"

    Returns:
        Formatted time string ("0h" / "0" for zero)
    """
    seconds = max(int(seconds or 0), 0)

    if mode == DECIMAL_MODE:
        hours = round(seconds / 3600.0, 2)
        text = f"{hours:.2f}".rstrip('0').rstrip('.')
        return text if text and text != "0" else "0"

    hours, remainder = divmod(seconds, 3600)
    minutes = remainder // 60
    parts = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    return " ".join(parts) or "0h"


def parse_formatted_time(text: Optional[str], mode: Optional[str] = None) -> int:
    """Parse a user-edited time string to seconds.

    Accepts "1h 30m", "1.5h", "90m", "1,5" and bare numbers. A bare number
    is hours when it has a decimal separator or is below 8, minutes otherwise
    ("2" is two hours, "45" is 45 minutes). Passing mode="decimal" reads every
    bare number as hours, which is how decimal-mode strings are written.

    Args:
        text: Time string
        mode: Display mode the string was produced in, if known

    Returns:
        Time in seconds, 0 when the text cannot be parsed
    """
    if not text:
        return 0

    normalized = str(text).strip().lower().replace(',', '.')
    if not normalized:
        return 0

    bare = _BARE_PATTERN.match(normalized)
    if bare:
        value = float(bare.group(1))
        if mode == DECIMAL_MODE or '.' in normalized or value < BARE_HOURS_THRESHOLD:
            return int(round(value * 3600))
        return int(round(value * 60))

    units = _UNIT_PATTERN.match(normalized)
    if not units or (units.group(1) is None and units.group(2) is None):
        return 0

    hours = float(units.group(1)) if units.group(1) else 0.0
    minutes = float(units.group(2)) if units.group(2) else 0.0
    return int(round(hours * 3600 + minutes * 60))


def format_provenance_comment(issue_key: str, text: Optional[str]) -> str:
    """Prefix a comment with the source issue key, e.g. "[PROJ-1] Fixed login".

    The prefix is the only marker linking a written worklog back to its source.
    """
    body = (text or "").strip()
    return f"[{issue_key}] {body}".rstrip()


def parse_provenance_key(comment: Optional[str]) -> Optional[str]:
    """Extract the source issue key from a "[KEY] ..." comment."""
    if not comment:
        return None
    match = _PROVENANCE_PATTERN.match(comment.strip())
    return match.group(1) if match else None
