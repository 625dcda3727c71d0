import os
import sys
# Ensure project root is importable for tests, regardless of runner CWD
ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

import itertools
from typing import Any, Dict, List, Optional

import pytest

from worklog_migrator.models.issue import ParentTask, WorkAttributeDefinition
from worklog_migrator.models.worklog import WorklogEntry
from worklog_migrator.services.staging_store import MigrationStore


class FakeResponse:
    def __init__(
        self,
        status_code: int = 200,
        json_data: Optional[Any] = None,
        text: str = "",
        headers: Optional[Dict[str, str]] = None,
    ):
        self.status_code = status_code
        self._json_data = json_data
        self.text = text
        self.headers = headers or {"Content-Type": "application/json"}
        self.reason = "Error" if status_code >= 400 else "OK"

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._json_data is None:
            raise ValueError("No JSON body")
        return self._json_data


class FakeSession:
    """requests.Session double answering from a route table.

    Routes map (METHOD, url-suffix) to a FakeResponse or an exception.
    """

    def __init__(self, routes):
        self.routes = routes
        self.calls: List[Dict[str, Any]] = []

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        for (route_method, suffix), response in self.routes.items():
            if route_method == method and url.endswith(suffix):
                if isinstance(response, Exception):
                    raise response
                return response
        return FakeResponse(404, {"errorMessages": [f"No route for {method} {url}"]})


class FakeDestination:
    """Async destination tracker double recording every call."""

    def __init__(self, uses_tempo=False, fail_keys=(), delete_result=True, delete_error=None,
                 account_id="acc-1", issues=None, attributes=None):
        self.uses_tempo = uses_tempo
        self.fail_keys = set(fail_keys)
        self.delete_result = delete_result
        self.delete_error = delete_error
        self.account_id = account_id
        self.issues = issues or {}
        self.attributes = attributes or []
        self.created: List[Dict[str, Any]] = []
        self.deleted: List[tuple] = []
        self.parents: List[ParentTask] = []
        self.on_delete = None

    async def fetch_parents(self, day):
        return [p.model_copy(deep=True) for p in self.parents]

    async def search_issues(self, query):
        return []

    async def get_author_account_id(self):
        return self.account_id

    async def resolve_issue(self, issue_key):
        return self.issues.get(issue_key)

    async def fetch_required_attribute_definitions(self) -> List[WorkAttributeDefinition]:
        return [a for a in self.attributes if a.required]

    async def create_worklog(self, parent_key, worklog, target_date, issue_id=None,
                             author_account_id=None, attributes=None):
        self.created.append({
            "parent_key": parent_key,
            "worklog": worklog,
            "target_date": target_date,
            "issue_id": issue_id,
            "author_account_id": author_account_id,
            "attributes": attributes,
        })
        return worklog.issue_key not in self.fail_keys

    async def delete_worklog(self, worklog_id, parent_key_or_id):
        self.deleted.append((worklog_id, parent_key_or_id))
        if self.on_delete is not None:
            self.on_delete(worklog_id)
        if self.delete_error is not None:
            raise self.delete_error
        return self.delete_result


class FakeSource:
    def __init__(self, worklogs=None):
        self.worklogs = worklogs or []

    async def fetch_worklogs(self, day):
        return [w.model_copy(deep=True) for w in self.worklogs]


def make_worklog(id: str, issue_key: str = "X-1", seconds: int = 3600, **kwargs) -> WorklogEntry:
    return WorklogEntry(id=id, issue_key=issue_key, time_spent_seconds=seconds, **kwargs)


def make_parent(id: str, issue_key: Optional[str] = None, children=None, **kwargs) -> ParentTask:
    return ParentTask(
        id=id,
        issue_key=issue_key or f"Y-{id}",
        issue_summary=kwargs.pop("issue_summary", f"Parent {id}"),
        children=list(children or []),
        **kwargs,
    )


@pytest.fixture
def id_factory():
    counter = itertools.count(1)
    return lambda: f"staged-{next(counter)}"


@pytest.fixture
def destination():
    return FakeDestination()


@pytest.fixture
def store(destination, id_factory):
    return MigrationStore(destination=destination, id_factory=id_factory)


__all__ = ["FakeResponse", "FakeSession", "FakeDestination", "FakeSource", "make_worklog", "make_parent"]
