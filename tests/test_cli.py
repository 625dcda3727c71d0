import importlib
import json

import pytest
from click.testing import CliRunner

from worklog_migrator.config.settings import Settings
from worklog_migrator.main import cli

from conftest import FakeDestination, FakeSource, make_parent, make_worklog

# The commands package re-exports the click commands under the module names
migrate_module = importlib.import_module("worklog_migrator.commands.migrate")
status_module = importlib.import_module("worklog_migrator.commands.status")


def configured_settings(**overrides):
    values = dict(
        source_jira_server="https://x.example.com",
        source_jira_email="me@example.com",
        source_jira_api_token="t1",
        dest_jira_server="https://y.example.com",
        dest_jira_email="me@example.com",
        dest_jira_api_token="t2",
        dest_tempo_token="",
        time_display_mode="hm",
        rules_file=None,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def trackers(monkeypatch):
    source = FakeSource([
        make_worklog("w1", "A-1", 3600, comment="Fixed"),
        make_worklog("w2", "A-2", 1800, comment="Review"),
    ])
    destination = FakeDestination()
    destination.parents = [make_parent("200", issue_key="Y-1", issue_summary="Development")]

    for module in (migrate_module, status_module):
        monkeypatch.setattr(module, "build_trackers", lambda settings: (source, destination))
    return source, destination


@pytest.fixture
def rules_file(tmp_path):
    path = tmp_path / "rules.json"
    path.write_text(json.dumps([
        {"source_type": "task", "source_value": "A-1", "target_task_key": "Y-1"},
    ]), encoding="utf-8")
    return str(path)


def use_settings(monkeypatch, settings):
    for module in (migrate_module, status_module):
        monkeypatch.setattr(module, "get_settings", lambda: settings)


def test_welcome_panel():
    result = CliRunner().invoke(cli, [])
    assert result.exit_code == 0
    assert "Worklog Migrator" in result.output


def test_status_lists_worklogs(monkeypatch, trackers):
    use_settings(monkeypatch, configured_settings())

    result = CliRunner().invoke(cli, ["status", "--date", "2026-01-05", "--decimal"])

    assert result.exit_code == 0, result.output
    assert "A-1" in result.output
    assert "2 available" in result.output


def test_status_rejects_bad_date():
    result = CliRunner().invoke(cli, ["status", "--date", "05.01.2026"])
    assert result.exit_code != 0
    assert "Invalid date format" in result.output


def test_missing_credentials_abort(monkeypatch):
    use_settings(monkeypatch, configured_settings(dest_jira_api_token=""))

    result = CliRunner().invoke(cli, ["status"])

    assert result.exit_code == 1
    assert "Missing credentials for Jira Y" in result.output


def test_migrate_dry_run_writes_nothing(monkeypatch, trackers, rules_file):
    use_settings(monkeypatch, configured_settings())
    _, destination = trackers

    result = CliRunner().invoke(cli, ["migrate", "--date", "2026-01-05", "--rules", rules_file, "--dry-run"])

    assert result.exit_code == 0, result.output
    assert "DRY RUN MODE" in result.output
    assert destination.created == []


def test_migrate_writes_rule_matches(monkeypatch, trackers, rules_file):
    use_settings(monkeypatch, configured_settings(rules_file=rules_file))
    _, destination = trackers

    result = CliRunner().invoke(cli, ["migrate", "--date", "2026-01-05", "--yes"])

    assert result.exit_code == 0, result.output
    assert [(c["parent_key"], c["worklog"].issue_key) for c in destination.created] == [("Y-1", "A-1")]
    assert destination.created[0]["target_date"] == "2026-01-05"
    assert "Migration Result" in result.output


def test_migrate_without_rules_has_nothing_to_do(monkeypatch, trackers):
    use_settings(monkeypatch, configured_settings())

    result = CliRunner().invoke(cli, ["migrate", "--date", "2026-01-05"])

    assert result.exit_code == 0, result.output
    assert "Nothing to migrate" in result.output


def test_migrate_confirmation_declined(monkeypatch, trackers, rules_file):
    use_settings(monkeypatch, configured_settings())
    _, destination = trackers

    result = CliRunner().invoke(cli, ["migrate", "--rules", rules_file], input="n\n")

    assert "Migration cancelled" in result.output
    assert destination.created == []


def test_migrate_rejects_bad_target_date():
    result = CliRunner().invoke(cli, ["migrate", "--target-date", "tomorrow"])
    assert result.exit_code != 0
    assert "Invalid date format" in result.output
