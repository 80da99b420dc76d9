"""Client-side view of the active conversation and the session list.

Outgoing messages start ``pending`` and end either ``committed`` or
``failed``; nothing is left unresolved after a send returns or raises.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Literal, Optional

from calmly.chat.contracts import Message, MessageMetadata, SessionSummary

MessageStatus = Literal["pending", "committed", "failed"]


@dataclass
class LocalMessage:
    role: str
    content: str
    status: MessageStatus
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Optional[MessageMetadata] = None
    error: Optional[str] = None
    local_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @classmethod
    def from_message(cls, message: Message) -> "LocalMessage":
        return cls(
            role=message.role,
            content=message.content,
            status="committed",
            timestamp=message.timestamp,
            metadata=message.metadata,
        )


class ConversationView:
    def __init__(self) -> None:
        self.session_id: Optional[str] = None
        self._messages: List[LocalMessage] = []

    @property
    def messages(self) -> List[LocalMessage]:
        return list(self._messages)

    def reset(self, session_id: Optional[str], messages: Iterable[Message] = ()) -> None:
        self.session_id = session_id
        self._messages = [LocalMessage.from_message(m) for m in messages]

    def _find(self, local_id: str) -> Optional[LocalMessage]:
        for message in self._messages:
            if message.local_id == local_id:
                return message
        return None

    def add_pending(self, content: str) -> LocalMessage:
        message = LocalMessage(role="user", content=content, status="pending")
        self._messages.append(message)
        return message

    def commit(self, local_id: str) -> Optional[LocalMessage]:
        # None when the view was reset while the send was in flight
        message = self._find(local_id)
        if message is None:
            return None
        message.status = "committed"
        message.error = None
        return message

    def fail(self, local_id: str, error: str) -> Optional[LocalMessage]:
        message = self._find(local_id)
        if message is None:
            return None
        message.status = "failed"
        message.error = error
        return message

    def add_committed(self, role: str, content: str, metadata: Optional[MessageMetadata] = None) -> LocalMessage:
        message = LocalMessage(role=role, content=content, status="committed", metadata=metadata)
        self._messages.append(message)
        return message

    def with_status(self, status: MessageStatus) -> List[LocalMessage]:
        return [m for m in self._messages if m.status == status]


class SessionIndex:
    """Session summaries, updated one session at a time after each send."""

    def __init__(self) -> None:
        self._summaries: Dict[str, SessionSummary] = {}

    def replace(self, summaries: Iterable[SessionSummary]) -> None:
        self._summaries = {s.sessionId: s for s in summaries}

    def clear(self) -> None:
        self._summaries.clear()

    def get(self, session_id: str) -> Optional[SessionSummary]:
        return self._summaries.get(session_id)

    def add(self, session_id: str) -> SessionSummary:
        now = datetime.now(timezone.utc)
        summary = SessionSummary(sessionId=session_id, createdAt=now, updatedAt=now)
        self._summaries[session_id] = summary
        return summary

    def record_exchange(self, session_id: str, last: LocalMessage, appended: int) -> SessionSummary:
        summary = self._summaries.get(session_id) or self.add(session_id)
        updated_at = max(summary.updatedAt, last.timestamp)
        summary = summary.model_copy(
            update={
                "updatedAt": updated_at,
                "messageCount": summary.messageCount + appended,
                "lastMessage": Message(
                    role=last.role,
                    content=last.content,
                    timestamp=last.timestamp,
                    metadata=last.metadata,
                ),
            }
        )
        self._summaries[session_id] = summary
        return summary

    def ordered(self) -> List[SessionSummary]:
        return sorted(
            self._summaries.values(),
            key=lambda s: (s.updatedAt, s.createdAt, s.sessionId),
            reverse=True,
        )
