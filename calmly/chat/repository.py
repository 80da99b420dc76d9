from __future__ import annotations

import asyncio
import uuid
from typing import Dict, List, Protocol

from calmly.chat.contracts import Message, Session, SessionSummary, _now
from calmly.common.errors import NotFound


class SessionRepository(Protocol):
    async def create(self, user_id: str) -> Session:
        ...

    async def get(self, session_id: str) -> Session:
        ...

    async def append(self, session_id: str, message: Message) -> Session:
        ...

    async def history(self, session_id: str) -> List[Message]:
        ...

    async def list(self, user_id: str) -> List[SessionSummary]:
        ...


class InMemorySessionRepository:
    """Sessions and their ordered messages, one asyncio.Lock per session."""

    def __init__(self) -> None:
        # session_id -> Session
        self._sessions: Dict[str, Session] = {}
        # session_id -> Lock guarding appends to that session only
        self._locks: Dict[str, asyncio.Lock] = {}

    def _new_session_id(self) -> str:
        session_id = uuid.uuid4().hex
        while session_id in self._sessions:
            session_id = uuid.uuid4().hex
        return session_id

    def _require(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise NotFound("Session not found")
        return session

    async def create(self, user_id: str) -> Session:
        now = _now()
        session = Session(
            sessionId=self._new_session_id(),
            userId=user_id,
            createdAt=now,
            updatedAt=now,
        )
        self._sessions[session.sessionId] = session
        self._locks[session.sessionId] = asyncio.Lock()
        return session.model_copy(deep=True)

    async def get(self, session_id: str) -> Session:
        return self._require(session_id).model_copy(deep=True)

    async def append(self, session_id: str, message: Message) -> Session:
        """Append with a server timestamp; never earlier than the previous message."""
        self._require(session_id)
        async with self._locks[session_id]:
            session = self._sessions[session_id]
            timestamp = _now()
            if session.messages and timestamp < session.messages[-1].timestamp:
                timestamp = session.messages[-1].timestamp
            stored = message.model_copy(update={"timestamp": timestamp}, deep=True)
            session.messages.append(stored)
            if timestamp > session.updatedAt:
                session.updatedAt = timestamp
            return session.model_copy(deep=True)

    async def history(self, session_id: str) -> List[Message]:
        session = self._require(session_id)
        return [m.model_copy(deep=True) for m in session.messages]

    async def list(self, user_id: str) -> List[SessionSummary]:
        owned = [s for s in self._sessions.values() if s.userId == user_id]
        owned.sort(key=lambda s: (s.updatedAt, s.createdAt, s.sessionId), reverse=True)
        return [s.summary() for s in owned]
