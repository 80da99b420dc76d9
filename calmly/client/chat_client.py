"""Conversation client talking to the edge proxy.

Every operation needs a token from the injected holder and fails with
AuthenticationRequired before any network call when there is none
(``list_sessions`` returns an empty list instead). Failures of any kind reach
the caller as a ``CalmlyError`` carrying a readable ``message``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from calmly.activity.contracts import Activity
from calmly.chat.contracts import Message, MessageAnalysis, MessageMetadata, SessionSummary
from calmly.client.local_view import ConversationView, SessionIndex
from calmly.common.errors import (
    ApiError,
    AuthenticationRequired,
    CalmlyError,
    UpstreamUnavailable,
    ValidationError,
    error_for_status,
)
from calmly.common.response_errors import extract_error_message
from calmly.config import runtime_config
from calmly.identity.token_holder import TokenHolder

logger = logging.getLogger(__name__)


@dataclass
class ChatReply:
    reply: str
    metadata: Optional[MessageMetadata] = None


def _parse_metadata(data: Dict[str, Any]) -> Optional[MessageMetadata]:
    raw_metadata = data.get("metadata")
    raw_analysis = data.get("analysis")
    if not raw_metadata and not raw_analysis:
        return None
    metadata = MessageMetadata.model_validate(raw_metadata or {})
    if raw_analysis and metadata.analysis is None:
        metadata.analysis = MessageAnalysis.model_validate(raw_analysis)
    return metadata


class ConversationClient:
    def __init__(
        self,
        base_url: str,
        token_holder: TokenHolder,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._tokens = token_holder
        self._timeout = httpx.Timeout(timeout if timeout is not None else runtime_config.get_upstream_timeout())
        self._transport = transport
        self.view = ConversationView()
        self.sessions = SessionIndex()

    @property
    def is_authenticated(self) -> bool:
        return self._tokens.read() is not None

    def _auth_headers(self) -> Dict[str, str]:
        token = self._tokens.read()
        if not token:
            logger.warning("No token available for request")
            raise AuthenticationRequired("No authentication token available")
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {token}",
        }

    async def _request(
        self,
        method: str,
        path: str,
        fallback: str,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        headers = self._auth_headers()
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.request(method, f"{self._base_url}{path}", headers=headers, json=json, params=params)
        except httpx.TimeoutException:
            logger.warning("%s %s timed out", method, path)
            raise UpstreamUnavailable(f"{fallback}: request timed out")
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise UpstreamUnavailable(f"{fallback}: service unreachable")

        if not resp.is_success:
            message = extract_error_message(resp, fallback)
            logger.error("%s %s -> %s: %s", method, path, resp.status_code, message)
            raise error_for_status(resp.status_code, message)
        try:
            return resp.json()
        except ValueError:
            logger.error("%s %s returned a malformed body", method, path)
            raise ApiError(f"{fallback}: malformed response", status_code=resp.status_code)

    async def _call(self, method: str, path: str, fallback: str, **kwargs: Any) -> Any:
        """``_request`` with a final net: nothing but CalmlyError escapes."""
        try:
            return await self._request(method, path, fallback, **kwargs)
        except CalmlyError:
            raise
        except Exception as exc:
            logger.exception("%s %s failed unexpectedly", method, path)
            raise ApiError(fallback) from exc

    async def create_session(self) -> str:
        data = await self._call("POST", "/chat", "Failed to create chat session")
        session_id = data.get("sessionId") if isinstance(data, dict) else None
        if not session_id:
            raise ApiError("Failed to create chat session: no session id returned")
        self.view.reset(session_id)
        self.sessions.add(session_id)
        logger.info("Chat session created: %s", session_id)
        return session_id

    async def send_message(self, session_id: str, content: str) -> ChatReply:
        self._auth_headers()
        if not content or not content.strip():
            raise ValidationError("Message must not be empty")
        if self.view.session_id != session_id:
            self.view.reset(session_id)

        pending = self.view.add_pending(content)
        try:
            data = await self._call(
                "POST",
                f"/chat/sessions/{session_id}",
                "Failed to send message",
                json={"message": content},
            )
            if not isinstance(data, dict):
                raise ApiError("Failed to send message: malformed response")
            reply = data.get("response") or data.get("message")
            if not isinstance(reply, str) or not reply.strip():
                raise ApiError("Failed to send message: empty reply")
            try:
                metadata = _parse_metadata(data)
            except PydanticValidationError:
                logger.warning("Ignoring malformed reply metadata for session %s", session_id)
                metadata = None
        except CalmlyError as exc:
            self.view.fail(pending.local_id, exc.message)
            raise

        self.view.commit(pending.local_id)
        assistant = self.view.add_committed("assistant", reply, metadata)
        self.sessions.record_exchange(session_id, assistant, appended=2)
        return ChatReply(reply=reply, metadata=metadata)

    async def get_history(self, session_id: str) -> List[Message]:
        data = await self._call("GET", f"/chat/sessions/{session_id}/history", "Failed to fetch chat history")
        if not isinstance(data, list):
            raise ApiError("Invalid chat history format")
        try:
            messages = [Message.model_validate(item) for item in data]
        except PydanticValidationError:
            raise ApiError("Invalid chat history format")
        self.view.reset(session_id, messages)
        return messages

    async def list_sessions(self) -> List[SessionSummary]:
        if not self.is_authenticated:
            logger.warning("Cannot fetch chat sessions: no token available")
            return []
        data = await self._call("GET", "/chat/sessions", "Failed to fetch chat sessions")
        if not isinstance(data, list):
            return []
        summaries: List[SessionSummary] = []
        for item in data:
            try:
                summaries.append(SessionSummary.model_validate(item))
            except PydanticValidationError:
                logger.warning("Skipping malformed session summary: %r", item)
        self.sessions.replace(summaries)
        return self.sessions.ordered()

    async def log_activity(self, fields: Dict[str, Any]) -> Activity:
        data = await self._call("POST", "/activity", "Failed to log activity", json=fields)
        try:
            return Activity.model_validate(data["data"])
        except (KeyError, TypeError, PydanticValidationError):
            raise ApiError("Failed to log activity: malformed response")

    async def today_activities(self) -> List[Activity]:
        data = await self._call("GET", "/activity/today", "Failed to fetch today's activities")
        try:
            return [Activity.model_validate(item) for item in data]
        except (TypeError, PydanticValidationError):
            raise ApiError("Failed to fetch today's activities: malformed response")

    async def list_activities(self, limit: Optional[int] = None) -> List[Activity]:
        params = {"limit": limit} if limit else None
        data = await self._call("GET", "/activities", "Failed to fetch activity", params=params)
        try:
            return [Activity.model_validate(item) for item in data]
        except (TypeError, PydanticValidationError):
            raise ApiError("Failed to fetch activity: malformed response")

    def logout(self) -> None:
        self._tokens.clear()
        self.view.reset(None)
        self.sessions.clear()
