"""Migration of staged worklogs to the destination tracker."""

import asyncio
from datetime import date
from typing import Callable, List, Optional

from rich.console import Console

from ..models.issue import ParentTask, WorkAttributeDefinition
from ..models.worklog import MigrationBatch, MigrationProgress, MigrationResult, WorklogEntry
from ..utils.formatters import format_date
from .staging_store import MigrationStore

console = Console()

PHASE_INIT = "init"
PHASE_ATTRIBUTES = "attributes"
PHASE_PREPARE = "prepare"
PHASE_MIGRATING = "migrating"
PHASE_COMPLETE = "complete"

# Summary keywords and the category values they map to, in order of preference
CATEGORY_KEYWORDS = [
    (("development", "coding", "dev"), ("Coding", "Development")),
    (("communication", "management"), ("Communication & Management", "Communication")),
]
FALLBACK_ATTRIBUTE_VALUE = "Dev"

ProgressCallback = Callable[[MigrationProgress], None]


def choose_attribute_value(definition: WorkAttributeDefinition, parent_summary: str) -> str:
    """Pick a value for a required Tempo work attribute.

    Category attributes are chosen by keywords in the parent summary; every
    other case falls back to the first allowed value.
    """
    if definition.is_category and definition.values:
        summary = (parent_summary or "").lower()
        for keywords, preferred in CATEGORY_KEYWORDS:
            if any(keyword in summary for keyword in keywords):
                for value in preferred:
                    if value in definition.values:
                        return value
                break
    if definition.values:
        return definition.values[0]
    return FALLBACK_ATTRIBUTE_VALUE


def build_attributes(definitions: List[WorkAttributeDefinition], parent_summary: str) -> List[dict]:
    """Attribute payload with one value per required definition."""
    return [
        {'key': definition.key, 'value': choose_attribute_value(definition, parent_summary)}
        for definition in definitions
        if definition.required
    ]


class MigrationExecutor:
    """Writes staged worklogs to the destination one at a time.

    Failures are counted per worklog and never stop the batch. cancel() stops
    the run after the worklog currently being written.
    """

    def __init__(self, destination):
        """Initialize the executor.

        Args:
            destination: Destination tracker gateway
        """
        self.destination = destination
        self._cancel_requested = False

    def cancel(self):
        """Stop after the current worklog."""
        self._cancel_requested = True

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested

    async def migrate(
        self,
        batches: List[MigrationBatch],
        target_date: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> MigrationResult:
        """Write every staged child, parent by parent.

        Args:
            batches: Staged worklogs grouped by parent
            target_date: Date (YYYY-MM-DD) to log the time on; defaults to each worklog's date
            on_progress: Called with a MigrationProgress snapshot

        Returns:
            MigrationResult; success means at least one worklog was written
        """
        self._cancel_requested = False
        total = sum(len(batch.children) for batch in batches)
        current = 0
        migrated = 0
        failed = 0

        def report(phase: str, parent: Optional[str] = None, worklog: Optional[str] = None):
            if on_progress is None:
                return
            percentage = int(current * 100 / total) if total else 100
            on_progress(MigrationProgress(
                current=current,
                total=total,
                percentage=percentage,
                current_parent=parent,
                current_worklog=worklog,
                phase=phase,
            ))

        report(PHASE_INIT)

        uses_tempo = bool(getattr(self.destination, 'uses_tempo', False))
        author_account_id = None
        definitions: List[WorkAttributeDefinition] = []
        if uses_tempo and total:
            author_account_id = await self.destination.get_author_account_id()
            if not author_account_id:
                console.print("[yellow]Warning:[/yellow] Could not resolve Tempo author, using native worklogs")
            report(PHASE_ATTRIBUTES)
            definitions = await self.destination.fetch_required_attribute_definitions()

        for batch in batches:
            if self._cancel_requested:
                break

            report(PHASE_PREPARE, parent=batch.parent_key)
            issue_id = None
            attributes = None
            if uses_tempo and author_account_id:
                resolved = await self.destination.resolve_issue(batch.parent_key)
                if resolved:
                    issue_id, summary = resolved
                    attributes = build_attributes(definitions, summary or batch.parent_summary) or None
                else:
                    console.print(
                        f"[yellow]Warning:[/yellow] Could not resolve {batch.parent_key} for Tempo, "
                        "using native worklogs"
                    )

            for worklog in batch.children:
                if self._cancel_requested:
                    break

                work_date = target_date or worklog.started or format_date(date.today())
                ok = await self._create(batch.parent_key, worklog, work_date, issue_id, author_account_id, attributes)
                current += 1
                if ok:
                    migrated += 1
                else:
                    failed += 1
                    console.print(f"[red]Migration failed:[/red] {worklog.issue_key} → {batch.parent_key}")
                report(PHASE_MIGRATING, parent=batch.parent_key, worklog=worklog.issue_key)

        report(PHASE_COMPLETE)
        return MigrationResult(
            success=migrated > 0,
            migrated_count=migrated,
            failed_count=failed,
            total=total,
            cancelled=self._cancel_requested and current < total,
        )

    async def _create(self, parent_key: str, worklog: WorklogEntry, work_date: str,
                      issue_id: Optional[int], author_account_id: Optional[str],
                      attributes: Optional[List[dict]]) -> bool:
        try:
            return bool(await self.destination.create_worklog(
                parent_key, worklog, work_date,
                issue_id=issue_id,
                author_account_id=author_account_id,
                attributes=attributes,
            ))
        except Exception as e:
            console.print(f"[red]Error migrating {worklog.issue_key}:[/red] {str(e)}")
            return False


class MigrationService:
    """Loads a day into the staging store and migrates what the user staged."""

    def __init__(self, store: MigrationStore, source, destination):
        self.store = store
        self.source = source
        self.destination = destination
        self.executor = MigrationExecutor(destination)

    async def refresh(self, day: date):
        """Fetch both trackers and merge the results into the store."""
        worklogs, parents = await asyncio.gather(
            self.source.fetch_worklogs(day),
            self.destination.fetch_parents(day),
        )
        self.store.set_source_worklogs(worklogs)
        self.store.set_destination_parents(parents)

    async def search_parents(self, query: str) -> List[ParentTask]:
        return await self.destination.search_issues(query)

    async def migrate(
        self,
        day: date,
        target_date: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> MigrationResult:
        """Write all staged worklogs and reload the day afterwards."""
        batches = self.store.get_migration_summary()
        if not batches:
            return MigrationResult(success=False)

        result = await self.executor.migrate(batches, target_date or format_date(day), on_progress)
        await self.refresh(day)
        return result
