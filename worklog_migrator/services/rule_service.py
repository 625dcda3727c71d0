"""Rule-based routing of source worklogs to destination parent tasks."""

import json
from pathlib import Path
from typing import Iterable, List, Optional, Set

from pydantic import TypeAdapter, ValidationError
from rich.console import Console

from ..models.rule import MigrationRule
from ..models.worklog import WorklogEntry

console = Console()

_RULES_ADAPTER = TypeAdapter(List[MigrationRule])


def rule_matches(rule: MigrationRule, worklog: WorklogEntry) -> bool:
    """Check a single rule against a worklog."""
    if rule.source_type == "task":
        return worklog.issue_key == rule.source_value
    if rule.source_type == "label":
        return rule.source_value in (worklog.labels or [])
    if rule.source_type == "type":
        return worklog.issue_type == rule.source_value
    return False


def find_matching_rule(
    worklog: WorklogEntry,
    rules: Iterable[MigrationRule],
    staged_original_ids: Optional[Set[str]] = None,
) -> Optional[MigrationRule]:
    """Return the first rule matching the worklog.

    Worklogs already consumed (is_moved) or already staged under any parent
    never match, so repeated passes do not stage the same worklog twice.

    Args:
        worklog: Source worklog
        rules: Rules in evaluation order
        staged_original_ids: Original IDs of every staged child

    Returns:
        Matching rule or None
    """
    if worklog.is_moved:
        return None
    if staged_original_ids and worklog.id in staged_original_ids:
        return None

    for rule in rules:
        if rule_matches(rule, worklog):
            return rule
    return None


def match_rule(
    worklog: WorklogEntry,
    rules: Iterable[MigrationRule],
    staged_original_ids: Optional[Set[str]] = None,
) -> Optional[str]:
    """Return the target task key of the first matching rule, or None."""
    rule = find_matching_rule(worklog, rules, staged_original_ids)
    return rule.target_task_key if rule else None


def load_rules(path: str) -> List[MigrationRule]:
    """Load migration rules from a JSON file.

    The file holds a list of objects with source_type, source_value,
    target_task_key and optional target_task_summary.

    Args:
        path: Path to the rules file

    Returns:
        List of rules (empty if the file is missing or invalid)
    """
    rules_file = Path(path)
    if not rules_file.exists():
        console.print(f"[yellow]Warning:[/yellow] Rules file not found: {path}")
        return []

    try:
        data = json.loads(rules_file.read_text(encoding="utf-8"))
        return _RULES_ADAPTER.validate_python(data)
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid JSON in rules file:[/red] line {e.lineno}, column {e.colno}: {e.msg}")
        return []
    except ValidationError as e:
        console.print(f"[red]Invalid rules in {path}:[/red]\n{e}")
        return []


def save_rules(path: str, rules: List[MigrationRule]) -> None:
    """Save migration rules to a JSON file."""
    Path(path).write_text(
        _RULES_ADAPTER.dump_json(rules, indent=2).decode("utf-8"),
        encoding="utf-8",
    )
