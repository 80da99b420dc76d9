from __future__ import annotations

import os
from datetime import datetime
from typing import Dict, List, Optional, Protocol

from calmly.activity.contracts import Activity


class ActivityRepository(Protocol):
    async def add(self, activity: Activity) -> Activity: ...
    async def list_between(self, user_id: str, start: datetime, end: datetime) -> List[Activity]: ...
    async def list_recent(self, user_id: str, limit: Optional[int] = None) -> List[Activity]: ...


class InMemoryActivityRepository:
    """Append-only per-user activity lists; records are frozen models."""

    def __init__(self) -> None:
        self._by_user: Dict[str, List[Activity]] = {}

    async def add(self, activity: Activity) -> Activity:
        self._by_user.setdefault(activity.userId, []).append(activity)
        return activity

    def _newest_first(self, user_id: str) -> List[Activity]:
        # reversed stable ascending sort: later writes first among equal timestamps
        ordered = sorted(self._by_user.get(user_id, []), key=lambda a: a.timestamp)
        return list(reversed(ordered))

    async def list_between(self, user_id: str, start: datetime, end: datetime) -> List[Activity]:
        """Inclusive on both ends."""
        return [a for a in self._newest_first(user_id) if start <= a.timestamp <= end]

    async def list_recent(self, user_id: str, limit: Optional[int] = None) -> List[Activity]:
        activities = self._newest_first(user_id)
        return activities[:limit] if limit else activities


def _default_repo() -> ActivityRepository:
    backend = os.getenv("ACTIVITY_STORE_BACKEND", "memory").lower()
    if backend == "memory":
        return InMemoryActivityRepository()
    raise RuntimeError(f"ACTIVITY_STORE_BACKEND must be 'memory'. Got: '{backend}'")


class LazyActivityRepo:
    def __init__(self):
        self._impl = None

    @property
    def _repo(self) -> ActivityRepository:
        if self._impl is None:
            self._impl = _default_repo()
        return self._impl

    def __getattr__(self, name):
        return getattr(self._repo, name)


activity_repo: ActivityRepository = LazyActivityRepo()  # type: ignore


def set_activity_repo(repo: ActivityRepository) -> None:
    if isinstance(activity_repo, LazyActivityRepo):
        activity_repo._impl = repo
