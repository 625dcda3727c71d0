"""Simple in-memory cache for Jira API responses."""

import time
from typing import Any, Callable, Dict, Optional, Tuple

USER_CACHE_TTL = 30 * 60  # 30 minutes
ISSUE_CACHE_TTL = 60 * 60  # 1 hour


class TrackerCache:
    """Time-limited cache for user and issue lookups."""

    def __init__(
        self,
        user_ttl: float = USER_CACHE_TTL,
        issue_ttl: float = ISSUE_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.user_ttl = user_ttl
        self.issue_ttl = issue_ttl
        self._clock = clock
        self._users: Dict[str, Tuple[Any, float]] = {}
        self._issues: Dict[str, Tuple[Any, float]] = {}

    def _get(self, store: Dict[str, Tuple[Any, float]], key: str, ttl: float) -> Optional[Any]:
        entry = store.get(key)
        if entry is None:
            return None
        data, stored_at = entry
        if self._clock() - stored_at >= ttl:
            del store[key]
            return None
        return data

    def get_user(self, key: str) -> Optional[Any]:
        return self._get(self._users, key, self.user_ttl)

    def set_user(self, key: str, data: Any):
        self._users[key] = (data, self._clock())

    def get_issue(self, issue_id_or_key: str) -> Optional[Any]:
        return self._get(self._issues, str(issue_id_or_key), self.issue_ttl)

    def set_issue(self, issue_id_or_key: str, data: dict):
        """Cache an issue under the requested key as well as its id and key."""
        now = self._clock()
        self._issues[str(issue_id_or_key)] = (data, now)
        for alias in (data.get('key'), data.get('id')):
            if alias and str(alias) != str(issue_id_or_key):
                self._issues[str(alias)] = (data, now)

    def clear(self):
        self._users.clear()
        self._issues.clear()
