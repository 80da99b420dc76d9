"""Session/history operations bound to the authenticated caller."""
from __future__ import annotations

import logging
from typing import List, Optional

from calmly.chat.assistant import AssistantEngine, default_assistant_engine
from calmly.chat.contracts import (
    Message,
    Session,
    SendMessageResponse,
    SessionSummary,
)
from calmly.chat.repository import SessionRepository
from calmly.common.errors import CalmlyError, NotFound, UpstreamUnavailable, ValidationError

logger = logging.getLogger(__name__)


class ChatService:
    def __init__(self, repo: SessionRepository, assistant: Optional[AssistantEngine] = None) -> None:
        self._repo = repo
        self._assistant = assistant or default_assistant_engine()

    async def _owned(self, user_id: str, session_id: str) -> Session:
        session = await self._repo.get(session_id)
        # Another user's session is indistinguishable from a missing one.
        if session.userId != user_id:
            raise NotFound("Session not found")
        return session

    async def create_session(self, user_id: str) -> Session:
        session = await self._repo.create(user_id)
        logger.info("Created chat session %s for user %s", session.sessionId, user_id)
        return session

    async def get_session(self, user_id: str, session_id: str) -> Session:
        return await self._owned(user_id, session_id)

    async def list_sessions(self, user_id: str) -> List[SessionSummary]:
        return await self._repo.list(user_id)

    async def history(self, user_id: str, session_id: str) -> List[Message]:
        await self._owned(user_id, session_id)
        return await self._repo.history(session_id)

    async def send_message(self, user_id: str, session_id: str, content: str) -> SendMessageResponse:
        """Append the user turn, ask the assistant, append its reply.

        If the assistant fails the user turn stays in history and the error
        propagates as UpstreamUnavailable.
        """
        if not content or not content.strip():
            raise ValidationError("Message is required")
        await self._owned(user_id, session_id)

        session = await self._repo.append(session_id, Message(role="user", content=content))
        try:
            reply = await self._assistant.reply(session_id, session.messages)
        except CalmlyError:
            raise
        except Exception:
            logger.exception("Assistant engine failed for session %s", session_id)
            raise UpstreamUnavailable("Assistant is unavailable, please try again")
        await self._repo.append(
            session_id,
            Message(role="assistant", content=reply.content, metadata=reply.metadata),
        )
        logger.info("Session %s: exchanged message (%s chars in, %s out)", session_id, len(content), len(reply.content))

        metadata = reply.metadata
        return SendMessageResponse(
            response=reply.content,
            message=reply.content,
            metadata=metadata,
            analysis=metadata.analysis if metadata else None,
        )
