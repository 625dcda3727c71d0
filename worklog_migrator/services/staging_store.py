"""In-memory staging model for moving source worklogs under destination parents."""

import uuid
from typing import Callable, Dict, List, Optional, Set, Tuple

from rich.console import Console

from ..models.issue import ParentTask
from ..models.rule import MigrationRule
from ..models.worklog import MigrationBatch, PendingTotals, WorklogEntry
from ..utils.formatters import HM_MODE, format_time, parse_formatted_time, parse_provenance_key
from ..utils.validators import validate_display_mode
from .reconciliation_service import (
    collect_pending_original_ids,
    is_visible_as_historical,
    resolve_already_migrated as reconcile_source_worklogs,
)
from .rule_service import find_matching_rule

console = Console()

# Status markers of parents that exist only locally
RULE_PARENT_STATUS = "Rule"
PLACEHOLDER_PARENT_STATUS = "Pending"

POSITION_BEFORE = "before"
POSITION_AFTER = "after"


def _new_staged_id() -> str:
    return f"staged-{uuid.uuid4().hex[:12]}"


class MigrationStore:
    """Mutable model of one migration session.

    Holds the source worklogs of the selected day, the destination parents
    with their children, the selection and the drag state. Every mutation
    notifies subscribers. Remote deletes go through the destination tracker;
    local state changes never wait for them to succeed.
    """

    def __init__(
        self,
        destination=None,
        display_mode: str = HM_MODE,
        rules: Optional[List[MigrationRule]] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        """Initialize the store.

        Args:
            destination: Destination tracker used for remote deletes (optional)
            display_mode: "hm" or "decimal"
            rules: Routing rules for apply_rules
            id_factory: Generator for staged worklog IDs
        """
        if not validate_display_mode(display_mode):
            raise ValueError(f"Invalid display mode: {display_mode}")

        self.destination = destination
        self.display_mode = display_mode
        self.rules: List[MigrationRule] = list(rules or [])
        self._id_factory = id_factory or _new_staged_id

        self.source_worklogs: List[WorklogEntry] = []
        self.parents: List[ParentTask] = []
        self.selected_worklog_ids: Set[str] = set()

        self.dragged_worklog_id: Optional[str] = None
        self.drag_over_parent_id: Optional[str] = None
        self.drag_over_child_id: Optional[str] = None
        self.drag_over_position: Optional[str] = None

        self._subscribers: List[Callable[["MigrationStore"], None]] = []

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, callback: Callable[["MigrationStore"], None]) -> Callable[[], None]:
        """Register a callback run after every mutation.

        Returns:
            Function removing the callback again
        """
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self):
        for callback in list(self._subscribers):
            callback(self)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find_parent(self, parent_id: str) -> Optional[ParentTask]:
        for parent in self.parents:
            if parent.id == parent_id:
                return parent
        return None

    def find_parent_by_key(self, issue_key: str) -> Optional[ParentTask]:
        for parent in self.parents:
            if parent.issue_key == issue_key:
                return parent
        return None

    def find_source_worklog(self, worklog_id: str) -> Optional[WorklogEntry]:
        for worklog in self.source_worklogs:
            if worklog.id == worklog_id:
                return worklog
        return None

    def find_child(self, worklog_id: str) -> Tuple[Optional[ParentTask], Optional[WorklogEntry]]:
        """Locate a worklog among the parents' children."""
        for parent in self.parents:
            child = parent.find_child(worklog_id)
            if child is not None:
                return parent, child
        return None, None

    def _locate_child(self, worklog: WorklogEntry) -> Tuple[Optional[ParentTask], Optional[WorklogEntry]]:
        """Find the child a worklog object stands for.

        Source and destination IDs come from different trackers and may
        collide, so the source entry itself is never taken for a child.
        """
        for parent in self.parents:
            for child in parent.children:
                if child is worklog:
                    return parent, child
        if self.find_source_worklog(worklog.id) is not None:
            return None, None
        return self.find_child(worklog.id)

    def find_worklog(self, worklog_id: str) -> Optional[WorklogEntry]:
        """Locate a worklog in the source list or under any parent."""
        worklog = self.find_source_worklog(worklog_id)
        if worklog is not None:
            return worklog
        return self.find_child(worklog_id)[1]

    def _format(self, seconds: int) -> str:
        return format_time(seconds, self.display_mode)

    def _reformat(self, worklog: WorklogEntry):
        worklog.time_spent_formatted = self._format(worklog.time_spent_seconds)

    # ------------------------------------------------------------------
    # Refresh from the trackers
    # ------------------------------------------------------------------

    def set_source_worklogs(self, worklogs: List[WorklogEntry]):
        """Replace the source list and recompute which entries are already moved."""
        self.source_worklogs = [worklog.model_copy(deep=True) for worklog in worklogs]
        for worklog in self.source_worklogs:
            worklog.is_moved = False
            self._reformat(worklog)

        present = {worklog.id for worklog in self.source_worklogs}
        self.selected_worklog_ids &= present

        self.resolve_already_migrated()
        self._notify()

    def set_destination_parents(self, parents: List[ParentTask]):
        """Replace the destination parents, keeping staged work.

        Staged children are re-attached to the parent with the same issue key
        (a placeholder parent is kept when the server no longer returns it).
        A staged child whose written copy is now present on the parent is
        dropped. Children keep their previous relative order.
        """
        previous = {parent.issue_key: parent for parent in self.parents}
        merged: List[ParentTask] = []

        for parent in (p.model_copy(deep=True) for p in parents):
            for child in parent.children:
                self._reformat(child)
            if not parent.initial_total_time_seconds:
                parent.initial_total_time_seconds = sum(
                    child.time_spent_seconds for child in parent.historical_children()
                )

            old_parent = previous.pop(parent.issue_key, None)
            if old_parent is not None:
                parent.children = self._merge_children(old_parent.children, parent.children)
                parent.is_expanded = old_parent.is_expanded
            merged.append(parent)

        # Parents the server dropped survive only while they hold staged work
        for old_parent in previous.values():
            staged = old_parent.staged_children()
            if not staged:
                continue
            placeholder = old_parent.model_copy(update={
                'children': list(staged),
                'initial_total_time_seconds': 0,
            })
            if placeholder.status not in (RULE_PARENT_STATUS, PLACEHOLDER_PARENT_STATUS):
                placeholder.status = PLACEHOLDER_PARENT_STATUS
            merged.append(placeholder)

        self.parents = merged
        self.resolve_already_migrated()
        self._notify()

    @staticmethod
    def _merge_children(old_children: List[WorklogEntry], new_children: List[WorklogEntry]) -> List[WorklogEntry]:
        """Combine refreshed server children with the staged children of the previous state."""
        fresh = {child.id: child for child in new_children}
        known = {child.id for child in old_children}
        used: Set[str] = set()

        # Newly written worklogs may each stand for one staged child
        absorbable = [child for child in new_children if not child.is_new and child.id not in known]

        result: List[WorklogEntry] = []
        for old_child in old_children:
            if old_child.is_new:
                written = next(
                    (child for child in absorbable if is_visible_as_historical(old_child, child)),
                    None,
                )
                if written is not None:
                    absorbable.remove(written)
                    continue
                result.append(old_child)
            elif old_child.id in fresh and old_child.id not in used:
                result.append(fresh[old_child.id])
                used.add(old_child.id)

        for child in new_children:
            if child.id not in used:
                result.append(child)
                used.add(child.id)

        return result

    def resolve_already_migrated(self) -> int:
        """Recompute is_moved on every source worklog.

        The selection is left alone; moved entries are skipped when staging.
        """
        return reconcile_source_worklogs(self.source_worklogs, self.parents)

    # ------------------------------------------------------------------
    # Parents
    # ------------------------------------------------------------------

    def add_parent(self, parent: ParentTask) -> bool:
        """Add a destination parent (e.g. from search results) if not present."""
        if self.find_parent(parent.id) or self.find_parent_by_key(parent.issue_key):
            return False
        self.parents.append(parent.model_copy(update={'children': [], 'is_expanded': True}))
        self._notify()
        return True

    def toggle_parent_expanded(self, parent_id: str):
        parent = self.find_parent(parent_id)
        if parent:
            parent.is_expanded = not parent.is_expanded
            self._notify()

    async def remove_parent(self, parent_id: str) -> bool:
        """Move all children of a parent back to source, then drop the parent."""
        parent = self.find_parent(parent_id)
        if parent is None:
            return False

        await self.move_worklogs_to_source(list(parent.children))

        # The parent may have been removed while deletes were in flight
        parent = self.find_parent(parent_id)
        if parent is not None:
            self.parents.remove(parent)
            self._notify()
        return True

    # ------------------------------------------------------------------
    # Staging
    # ------------------------------------------------------------------

    def _stage_clone(self, worklog: WorklogEntry) -> WorklogEntry:
        clone = worklog.model_copy(deep=True, update={
            'id': self._id_factory(),
            'is_new': True,
            'is_moved': False,
            'original_worklog_id': worklog.id,
        })
        self._reformat(clone)
        return clone

    @staticmethod
    def _insert(parent: ParentTask, child: WorklogEntry, anchor_id: Optional[str], position: str):
        index = len(parent.children)
        if anchor_id:
            for i, existing in enumerate(parent.children):
                if existing.id == anchor_id:
                    index = i if position == POSITION_BEFORE else i + 1
                    break
        parent.children.insert(index, child)

    def add_child_to_parent(
        self,
        parent_id: str,
        worklog: WorklogEntry,
        anchor_id: Optional[str] = None,
        position: str = POSITION_AFTER,
    ) -> Optional[WorklogEntry]:
        """Stage a source worklog under a parent, or reposition an existing child.

        A source worklog is cloned with a fresh ID and is_new set; the source
        entry stays in the list with is_moved set. An existing child keeps its
        ID and is only moved. Without an anchor the worklog is appended.

        Args:
            parent_id: Target parent ID
            worklog: Source worklog or existing child
            anchor_id: Child ID to place the worklog next to
            position: "before" or "after" the anchor

        Returns:
            The child as placed under the parent, or None if nothing changed
        """
        target = self.find_parent(parent_id)
        if target is None:
            console.print(f"[yellow]Warning:[/yellow] Parent {parent_id} not found")
            return None

        current_parent, child = self._locate_child(worklog)
        if child is not None:
            if not child.is_new and current_parent is not target:
                console.print(
                    f"[yellow]Warning:[/yellow] Worklog {child.id} is already written to "
                    f"{current_parent.issue_key} and can only be reordered there"
                )
                return None
            if anchor_id == child.id:
                return child
            current_parent.children.remove(child)
            self._insert(target, child, anchor_id, position)
            target.is_expanded = True
            self._notify()
            return child

        source = self.find_source_worklog(worklog.id)
        if source is None:
            console.print(f"[yellow]Warning:[/yellow] Worklog {worklog.id} not found")
            return None
        if source.is_moved:
            return None

        clone = self._stage_clone(source)
        self._insert(target, clone, anchor_id, position)
        source.is_moved = True
        self.selected_worklog_ids.discard(source.id)
        target.is_expanded = True
        self._notify()
        return clone

    def move_worklog_to_parent(
        self,
        worklog_id: str,
        parent_id: str,
        anchor_id: Optional[str] = None,
        position: str = POSITION_AFTER,
    ) -> Optional[WorklogEntry]:
        """Move a worklog, wherever it lives, under a parent by ID."""
        worklog = self.find_worklog(worklog_id)
        if worklog is None:
            return None
        return self.add_child_to_parent(parent_id, worklog, anchor_id, position)

    def add_selected_to_parent(
        self,
        parent_id: str,
        anchor_id: Optional[str] = None,
        position: str = POSITION_AFTER,
    ) -> List[WorklogEntry]:
        """Stage every selected source worklog under a parent, keeping source order."""
        staged: List[WorklogEntry] = []
        for worklog in self.get_selected_worklogs():
            child = self.add_child_to_parent(parent_id, worklog, anchor_id, position)
            if child is None:
                continue
            staged.append(child)
            # Following worklogs go after the one just placed
            anchor_id, position = child.id, POSITION_AFTER

        self.selected_worklog_ids = set()
        self._notify()
        return staged

    async def remove_child_from_parent(self, parent_id: str, worklog_id: str) -> bool:
        parent = self.find_parent(parent_id)
        if parent is None:
            return False
        child = parent.find_child(worklog_id)
        if child is None:
            return False
        await self.move_worklogs_to_source([child])
        return True

    async def move_worklogs_to_source(self, worklogs: List[WorklogEntry]) -> int:
        """Detach children from their parents and make their source entries available.

        Children already written to the destination are deleted remotely first.
        A failed delete is reported and the child is removed locally anyway.

        Returns:
            Number of children removed
        """
        removed = 0
        for worklog in worklogs:
            parent, child = self.find_child(worklog.id)
            if child is None:
                continue

            if not child.is_new:
                await self._delete_remote(child, parent)
                # State may have changed while the delete was in flight
                parent, child = self.find_child(worklog.id)
                if child is None:
                    continue

            parent.children.remove(child)
            self._release_source(child)
            removed += 1

        if removed:
            self._notify()
        return removed

    async def _delete_remote(self, child: WorklogEntry, parent: ParentTask):
        if self.destination is None:
            console.print(
                f"[yellow]Warning:[/yellow] No destination tracker configured, "
                f"worklog {child.id} removed locally only"
            )
            return
        try:
            deleted = await self.destination.delete_worklog(child.id, parent.issue_key)
            if not deleted:
                console.print(
                    f"[yellow]Warning:[/yellow] Could not delete worklog {child.id} "
                    f"from {parent.issue_key}, removed locally only"
                )
        except Exception as e:
            console.print(f"[red]Error deleting worklog {child.id}:[/red] {str(e)}")

    def _release_source(self, child: WorklogEntry):
        """Clear is_moved on the source entry a child came from."""
        if child.original_worklog_id:
            source = self.find_source_worklog(child.original_worklog_id)
            if source is not None:
                source.is_moved = False
                return

        issue_key = parse_provenance_key(child.comment) or (child.issue_key if child.is_new else None)
        if not issue_key:
            return

        # Entries moved because they are staged elsewhere stay moved
        staged_ids = collect_pending_original_ids(self.parents)
        candidates = [
            w for w in self.source_worklogs
            if w.issue_key == issue_key and w.is_moved and w.id not in staged_ids
        ]
        same_duration = [w for w in candidates if w.time_spent_seconds == child.time_spent_seconds]
        match = (same_duration or candidates or [None])[0]
        if match is not None:
            match.is_moved = False

    def clear_all_children(self) -> int:
        """Return every staged child to source; written children stay."""
        cleared = 0
        for parent in self.parents:
            for child in parent.staged_children():
                parent.children.remove(child)
                self._release_source(child)
                cleared += 1
        if cleared:
            self._notify()
        return cleared

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def set_rules(self, rules: List[MigrationRule]):
        self.rules = list(rules)
        self._notify()

    def apply_rules(self) -> int:
        """Stage every available source worklog that matches a rule.

        Missing target parents are created as rule placeholders. Running it
        again stages nothing new.

        Returns:
            Number of worklogs staged
        """
        if not self.rules:
            return 0

        staged_ids = collect_pending_original_ids(self.parents)
        staged = 0
        for worklog in list(self.source_worklogs):
            rule = find_matching_rule(worklog, self.rules, staged_ids)
            if rule is None:
                continue

            parent = self.find_parent_by_key(rule.target_task_key)
            if parent is None:
                parent = ParentTask(
                    id=f"rule-{rule.target_task_key}",
                    issue_key=rule.target_task_key,
                    issue_summary=rule.target_task_summary or rule.target_task_key,
                    status=RULE_PARENT_STATUS,
                )
                self.parents.append(parent)

            if any(child.original_worklog_id == worklog.id for child in parent.children):
                continue

            clone = self._stage_clone(worklog)
            parent.children.append(clone)
            parent.is_expanded = True
            worklog.is_moved = True
            self.selected_worklog_ids.discard(worklog.id)
            staged_ids.add(worklog.id)
            staged += 1

        if staged:
            console.print(f"[green]Rules staged {staged} worklog(s)[/green]")
            self._notify()
        return staged

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def update_worklog(
        self,
        worklog_id: str,
        comment: Optional[str] = None,
        time_spent_formatted: Optional[str] = None,
    ) -> bool:
        """Edit the comment or time of a worklog wherever it lives.

        The time string is parsed to seconds and re-rendered in the active
        display mode, so "90m" becomes "1h 30m". Unparseable input counts as 0.
        """
        worklog = self.find_worklog(worklog_id)
        if worklog is None:
            return False

        if comment is not None:
            worklog.comment = comment
        if time_spent_formatted is not None and time_spent_formatted.strip() != worklog.time_spent_formatted:
            worklog.time_spent_seconds = parse_formatted_time(time_spent_formatted, self.display_mode)
            self._reformat(worklog)

        self._notify()
        return True

    def set_display_mode(self, mode: str):
        """Switch between "hm" and "decimal" and re-render all times."""
        if not validate_display_mode(mode):
            raise ValueError(f"Invalid display mode: {mode}")
        self.display_mode = mode
        for worklog in self.source_worklogs:
            self._reformat(worklog)
        for parent in self.parents:
            for child in parent.children:
                self._reformat(child)
        self._notify()

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def toggle_worklog_selection(self, worklog_id: str):
        if worklog_id in self.selected_worklog_ids:
            self.selected_worklog_ids.discard(worklog_id)
        elif self.find_source_worklog(worklog_id) is not None:
            self.selected_worklog_ids.add(worklog_id)
        self._notify()

    def select_all_worklogs(self):
        self.selected_worklog_ids = {w.id for w in self.source_worklogs if not w.is_moved}
        self._notify()

    def deselect_all_worklogs(self):
        self.selected_worklog_ids = set()
        self._notify()

    def is_worklog_selected(self, worklog_id: str) -> bool:
        return worklog_id in self.selected_worklog_ids

    def get_selected_worklogs(self) -> List[WorklogEntry]:
        return [w for w in self.source_worklogs if w.id in self.selected_worklog_ids]

    def get_selected_count(self) -> int:
        return len(self.selected_worklog_ids)

    def get_selected_total_time(self) -> str:
        return self._format(sum(w.time_spent_seconds for w in self.get_selected_worklogs()))

    # ------------------------------------------------------------------
    # Drag state
    # ------------------------------------------------------------------

    def start_drag(self, worklog_id: str):
        self.dragged_worklog_id = worklog_id
        self._notify()

    def set_drag_over(self, parent_id: Optional[str], child_id: Optional[str] = None, position: Optional[str] = None):
        self.drag_over_parent_id = parent_id
        self.drag_over_child_id = child_id
        self.drag_over_position = position
        self._notify()

    def end_drag(self):
        self.dragged_worklog_id = None
        self.drag_over_parent_id = None
        self.drag_over_child_id = None
        self.drag_over_position = None
        self._notify()

    def drop(self) -> Optional[WorklogEntry]:
        """Move the dragged worklog to the current drop target."""
        worklog_id, parent_id = self.dragged_worklog_id, self.drag_over_parent_id
        anchor_id, position = self.drag_over_child_id, self.drag_over_position or POSITION_AFTER
        self.end_drag()
        if not worklog_id or not parent_id:
            return None
        return self.move_worklog_to_parent(worklog_id, parent_id, anchor_id, position)

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    def _parent_seconds(self, parent_id: str, staged: Optional[bool]) -> int:
        parent = self.find_parent(parent_id)
        if parent is None:
            return 0
        return sum(
            child.time_spent_seconds for child in parent.children
            if staged is None or child.is_new == staged
        )

    def get_initial_time(self, parent_id: str) -> str:
        """Remote total of the parent at the last fetch."""
        parent = self.find_parent(parent_id)
        return self._format(parent.initial_total_time_seconds if parent else 0)

    def get_original_time(self, parent_id: str) -> str:
        """Time of the children already written to the destination."""
        return self._format(self._parent_seconds(parent_id, staged=False))

    def get_added_time(self, parent_id: str) -> str:
        """Time staged under the parent in this session."""
        return self._format(self._parent_seconds(parent_id, staged=True))

    def get_total_children_time(self, parent_id: str) -> str:
        return self.get_added_time(parent_id)

    def get_total_time(self, parent_id: str) -> str:
        """Time of all children, written and staged."""
        return self._format(self._parent_seconds(parent_id, staged=None))

    def get_total_pending_migration(self) -> PendingTotals:
        staged = [child for parent in self.parents for child in parent.staged_children()]
        return PendingTotals(
            count=len(staged),
            time=self._format(sum(child.time_spent_seconds for child in staged)),
        )

    def get_migration_summary(self) -> List[MigrationBatch]:
        """Staged worklogs grouped by parent, in display order."""
        batches = []
        for parent in self.parents:
            staged = parent.staged_children()
            if not staged:
                continue
            batches.append(MigrationBatch(
                parent_id=parent.id,
                parent_key=parent.issue_key,
                parent_summary=parent.issue_summary,
                children=[child.model_copy() for child in staged],
                total_time=self._format(sum(child.time_spent_seconds for child in staged)),
            ))
        return batches

    def source_stats(self) -> Dict[str, int]:
        """Counts of available and moved source worklogs."""
        moved = sum(1 for w in self.source_worklogs if w.is_moved)
        return {'total': len(self.source_worklogs), 'moved': moved, 'available': len(self.source_worklogs) - moved}
