"""Shared session repository singleton for routes/services."""
from __future__ import annotations

import os

from calmly.chat.repository import InMemorySessionRepository, SessionRepository


def _default_repo() -> SessionRepository:
    backend = os.getenv("CHAT_STORE_BACKEND", "memory").lower()
    if backend == "memory":
        return InMemorySessionRepository()
    raise RuntimeError(f"CHAT_STORE_BACKEND must be 'memory'. Got: '{backend}'")


class LazySessionRepo:
    def __init__(self):
        self._impl = None

    @property
    def _repo(self) -> SessionRepository:
        if self._impl is None:
            self._impl = _default_repo()
        return self._impl

    def __getattr__(self, name):
        return getattr(self._repo, name)


session_repo: SessionRepository = LazySessionRepo()  # type: ignore


def set_session_repo(repo: SessionRepository) -> None:
    # Callers hold a reference to the proxy object, so swap its impl in place.
    if isinstance(session_repo, LazySessionRepo):
        session_repo._impl = repo
