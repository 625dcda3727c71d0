"""Reconciliation of source worklogs against destination parents.

The trackers keep no link from a migrated worklog back to the worklog it was
copied from. A source entry is therefore considered moved when either

* it is staged in this session (a staged child carries its ID in
  original_worklog_id), or
* a destination worklog exists whose comment starts with "[<issue key>]" and
  whose duration equals the source duration exactly.

Historical matches consume one destination worklog each, greedily in source
order. Two source worklogs on the same issue with the same duration and a
single destination worklog yield one moved entry and one available entry;
which one is moved is not meaningful.
"""

from collections import defaultdict
from typing import Dict, Iterable, List, Set

from ..models.issue import ParentTask
from ..models.worklog import WorklogEntry
from ..utils.formatters import parse_provenance_key


def collect_pending_original_ids(parents: Iterable[ParentTask]) -> Set[str]:
    """Original IDs of every staged child across all parents."""
    return {
        child.original_worklog_id
        for parent in parents
        for child in parent.children
        if child.is_new and child.original_worklog_id
    }


def build_historical_pool(parents: Iterable[ParentTask]) -> Dict[str, List[int]]:
    """Durations of already-written destination worklogs, grouped by source issue key.

    Only children whose comment carries a "[KEY]" prefix take part. Equal
    durations are kept as separate slots.
    """
    pool: Dict[str, List[int]] = defaultdict(list)
    for parent in parents:
        for child in parent.children:
            if child.is_new:
                continue
            issue_key = parse_provenance_key(child.comment)
            if issue_key:
                pool[issue_key].append(child.time_spent_seconds)
    return pool


def resolve_already_migrated(source_worklogs: List[WorklogEntry], parents: List[ParentTask]) -> int:
    """Recompute is_moved on every source worklog.

    Args:
        source_worklogs: Source entries, updated in place
        parents: Destination parents with their children

    Returns:
        Number of source entries marked as moved
    """
    pending_ids = collect_pending_original_ids(parents)
    pool = build_historical_pool(parents)

    moved = 0
    for worklog in source_worklogs:
        if worklog.id in pending_ids:
            worklog.is_moved = True
        else:
            slots = pool.get(worklog.issue_key)
            if slots and worklog.time_spent_seconds in slots:
                slots.remove(worklog.time_spent_seconds)
                worklog.is_moved = True
            else:
                worklog.is_moved = False

        if worklog.is_moved:
            moved += 1

    return moved


def is_visible_as_historical(staged: WorklogEntry, historical: WorklogEntry) -> bool:
    """Check whether a destination worklog is the written copy of a staged child."""
    if historical.is_new or staged.time_spent_seconds != historical.time_spent_seconds:
        return False
    return parse_provenance_key(historical.comment) == staged.issue_key
