import asyncio
from datetime import date

from worklog_migrator.models.issue import WorkAttributeDefinition
from worklog_migrator.models.worklog import MigrationBatch
from worklog_migrator.services.migration_service import (
    FALLBACK_ATTRIBUTE_VALUE,
    MigrationExecutor,
    MigrationService,
    build_attributes,
    choose_attribute_value,
)
from worklog_migrator.services.staging_store import MigrationStore
from worklog_migrator.utils.formatters import format_provenance_comment

from conftest import FakeDestination, FakeSource, make_parent, make_worklog


def _batch(parent_key, *children, summary=""):
    return MigrationBatch(parent_id=parent_key, parent_key=parent_key, parent_summary=summary, children=list(children))


class WritingDestination(FakeDestination):
    """Destination double whose created worklogs show up on the next fetch."""

    async def create_worklog(self, parent_key, worklog, target_date, **kwargs):
        ok = await super().create_worklog(parent_key, worklog, target_date, **kwargs)
        if ok:
            parent = next(p for p in self.parents if p.issue_key == parent_key)
            parent.children.append(make_worklog(
                f"written-{len(self.created)}",
                parent_key,
                worklog.time_spent_seconds,
                comment=format_provenance_comment(worklog.issue_key, worklog.comment),
            ))
        return ok


def test_native_migration_uses_target_date():
    destination = FakeDestination()
    executor = MigrationExecutor(destination)
    batches = [
        _batch("Y-1", make_worklog("s1", "A-1", started="2026-01-02"), make_worklog("s2", "A-2")),
        _batch("Y-2", make_worklog("s3", "A-3")),
    ]

    result = asyncio.run(executor.migrate(batches, "2026-01-05"))

    assert result.success is True
    assert (result.migrated_count, result.failed_count, result.total) == (3, 0, 3)
    assert [c["parent_key"] for c in destination.created] == ["Y-1", "Y-1", "Y-2"]
    assert {c["target_date"] for c in destination.created} == {"2026-01-05"}
    assert all(c["issue_id"] is None and c["attributes"] is None for c in destination.created)


def test_date_falls_back_to_worklog_date():
    destination = FakeDestination()
    batches = [_batch("Y-1", make_worklog("s1", "A-1", started="2026-01-02"))]

    asyncio.run(MigrationExecutor(destination).migrate(batches))

    assert destination.created[0]["target_date"] == "2026-01-02"


def test_partial_failure_continues():
    destination = FakeDestination(fail_keys={"A-2"})
    batches = [_batch("Y-1", make_worklog("s1", "A-1"), make_worklog("s2", "A-2"), make_worklog("s3", "A-3"))]

    result = asyncio.run(MigrationExecutor(destination).migrate(batches, "2026-01-05"))

    assert result.success is True
    assert (result.migrated_count, result.failed_count) == (2, 1)
    assert len(destination.created) == 3


def test_all_failures_report_no_success():
    destination = FakeDestination(fail_keys={"A-1"})

    result = asyncio.run(MigrationExecutor(destination).migrate([_batch("Y-1", make_worklog("s1", "A-1"))]))

    assert result.success is False
    assert result.failed_count == 1


def test_exception_counts_as_failure():
    class Exploding(FakeDestination):
        async def create_worklog(self, *args, **kwargs):
            raise RuntimeError("network down")

    result = asyncio.run(MigrationExecutor(Exploding()).migrate([_batch("Y-1", make_worklog("s1"))]))

    assert (result.migrated_count, result.failed_count) == (0, 1)


def test_progress_phases():
    events = []
    batches = [_batch("Y-1", make_worklog("s1", "A-1"), make_worklog("s2", "A-2"))]

    asyncio.run(MigrationExecutor(FakeDestination()).migrate(batches, "2026-01-05", events.append))

    assert [e.phase for e in events] == ["init", "prepare", "migrating", "migrating", "complete"]
    assert [e.percentage for e in events if e.phase == "migrating"] == [50, 100]
    assert events[2].current_parent == "Y-1"
    assert events[2].current_worklog == "A-1"
    assert events[-1].current == events[-1].total == 2


def test_empty_batches():
    events = []
    result = asyncio.run(MigrationExecutor(FakeDestination()).migrate([], on_progress=events.append))

    assert result.success is False
    assert result.total == 0
    assert events[-1].percentage == 100


def test_tempo_mode_resolves_issue_and_attributes():
    destination = FakeDestination(
        uses_tempo=True,
        issues={"Y-1": (10001, "Development work")},
        attributes=[
            WorkAttributeDefinition(key="_Category_", name="Category", required=True,
                                    values=["Meeting", "Coding", "Development"]),
            WorkAttributeDefinition(key="_Account_", name="Account", required=True, values=["ACC-1"]),
            WorkAttributeDefinition(key="_Optional_", name="Optional", required=False, values=["x"]),
        ],
    )
    events = []

    result = asyncio.run(MigrationExecutor(destination).migrate(
        [_batch("Y-1", make_worklog("s1", "A-1"))], "2026-01-05", events.append,
    ))

    assert result.migrated_count == 1
    created = destination.created[0]
    assert created["issue_id"] == 10001
    assert created["author_account_id"] == "acc-1"
    assert created["attributes"] == [
        {"key": "_Category_", "value": "Coding"},
        {"key": "_Account_", "value": "ACC-1"},
    ]
    assert "attributes" in [e.phase for e in events]


def test_tempo_mode_unresolved_issue_writes_natively():
    destination = FakeDestination(uses_tempo=True)

    asyncio.run(MigrationExecutor(destination).migrate([_batch("Y-1", make_worklog("s1"))], "2026-01-05"))

    assert destination.created[0]["issue_id"] is None
    assert destination.created[0]["attributes"] is None


def test_tempo_mode_without_author_writes_natively():
    destination = FakeDestination(uses_tempo=True, account_id=None, issues={"Y-1": (1, "x")})

    asyncio.run(MigrationExecutor(destination).migrate([_batch("Y-1", make_worklog("s1"))], "2026-01-05"))

    assert destination.created[0]["issue_id"] is None
    assert destination.created[0]["author_account_id"] is None


def test_cancel_stops_after_current_worklog():
    destination = FakeDestination()
    executor = MigrationExecutor(destination)
    batches = [
        _batch("Y-1", make_worklog("s1"), make_worklog("s2")),
        _batch("Y-2", make_worklog("s3")),
    ]

    def on_progress(progress):
        if progress.phase == "migrating":
            executor.cancel()

    result = asyncio.run(executor.migrate(batches, "2026-01-05", on_progress))

    assert len(destination.created) == 1
    assert result.cancelled is True
    assert result.migrated_count == 1
    assert result.total == 3
    assert executor.cancel_requested is True


def test_choose_attribute_value():
    category = WorkAttributeDefinition(key="_Category_", name="Category", values=["Meeting", "Communication"])
    assert choose_attribute_value(category, "Project management") == "Communication"
    assert choose_attribute_value(category, "Something else") == "Meeting"

    empty = WorkAttributeDefinition(key="_Team_", name="Team")
    assert choose_attribute_value(empty, "Dev") == FALLBACK_ATTRIBUTE_VALUE

    assert build_attributes([empty], "x") == []


def test_service_refresh_loads_both_sides(id_factory):
    destination = FakeDestination()
    destination.parents = [make_parent("p1", issue_key="Y-1")]
    store = MigrationStore(destination=destination, id_factory=id_factory)
    service = MigrationService(store, FakeSource([make_worklog("w1", "A-1")]), destination)

    asyncio.run(service.refresh(date(2026, 1, 5)))

    assert [w.id for w in store.source_worklogs] == ["w1"]
    assert [p.issue_key for p in store.parents] == ["Y-1"]


def test_service_migrate_writes_and_reconciles(id_factory):
    destination = WritingDestination()
    destination.parents = [make_parent("p1", issue_key="Y-1")]
    source = FakeSource([make_worklog("w1", "A-1", 3600, comment="Login"), make_worklog("w2", "A-2", 1800)])
    store = MigrationStore(destination=destination, id_factory=id_factory)
    service = MigrationService(store, source, destination)

    asyncio.run(service.refresh(date(2026, 1, 5)))
    store.move_worklog_to_parent("w1", "p1")

    result = asyncio.run(service.migrate(date(2026, 1, 5)))

    assert result.migrated_count == 1
    assert destination.created[0]["target_date"] == "2026-01-05"
    assert store.get_total_pending_migration().count == 0
    parent = store.find_parent("p1")
    assert [c.comment for c in parent.children] == ["[A-1] Login"]
    assert store.find_source_worklog("w1").is_moved is True
    assert store.find_source_worklog("w2").is_moved is False


def test_service_migrate_without_staged_work():
    destination = FakeDestination()
    service = MigrationService(MigrationStore(destination=destination), FakeSource(), destination)

    result = asyncio.run(service.migrate(date(2026, 1, 5)))

    assert result.success is False
    assert destination.created == []


def test_service_search_parents_delegates():
    class Searching(FakeDestination):
        async def search_issues(self, query):
            return [make_parent("300", issue_key=query.upper())]

    destination = Searching()
    service = MigrationService(MigrationStore(destination=destination), FakeSource(), destination)

    results = asyncio.run(service.search_parents("ops-3"))

    assert [p.issue_key for p in results] == ["OPS-3"]
