"""Bridge to the external assistant engine that writes replies.

Reply generation is owned by a separate service reached over HTTP. When no
engine URL is configured (dev, tests) a small local responder acknowledges the
message so the session flow still works end to end.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol

import httpx
from pydantic import ValidationError as PydanticValidationError

from calmly.chat.contracts import Message, MessageAnalysis, MessageMetadata
from calmly.common.errors import UpstreamUnavailable
from calmly.config import runtime_config

logger = logging.getLogger(__name__)


@dataclass
class AssistantReply:
    content: str
    metadata: Optional[MessageMetadata] = None


def _parse_metadata(data: dict) -> Optional[MessageMetadata]:
    raw_metadata = data.get("metadata")
    raw_analysis = data.get("analysis")
    if not raw_metadata and not raw_analysis:
        return None
    metadata = MessageMetadata.model_validate(raw_metadata or {})
    if raw_analysis:
        metadata.analysis = MessageAnalysis.model_validate(raw_analysis)
    return metadata


class AssistantEngine(Protocol):
    async def reply(self, session_id: str, history: List[Message]) -> AssistantReply:
        """``history`` ends with the user message being answered."""
        ...


class HttpAssistantEngine:
    def __init__(
        self,
        base_url: str,
        timeout: float,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = httpx.Timeout(timeout)
        self._transport = transport

    async def reply(self, session_id: str, history: List[Message]) -> AssistantReply:
        body = {
            "sessionId": session_id,
            "message": history[-1].content if history else "",
            "history": [m.model_dump(mode="json") for m in history],
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(f"{self._base_url}/respond", json=body)
        except httpx.HTTPError as exc:
            logger.warning("Assistant engine unreachable for session %s: %s", session_id, exc)
            raise UpstreamUnavailable("Assistant is unavailable, please try again")

        if resp.status_code >= 400:
            logger.warning("Assistant engine failed for session %s: %s", session_id, resp.status_code)
            raise UpstreamUnavailable("Assistant is unavailable, please try again")
        try:
            data = resp.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            raise UpstreamUnavailable("Assistant returned an unreadable reply")

        content = data.get("response") or data.get("message")
        if not isinstance(content, str) or not content.strip():
            logger.warning("Assistant engine sent no usable reply for session %s", session_id)
            raise UpstreamUnavailable("Assistant returned an empty reply")
        content = content.strip()
        try:
            metadata = _parse_metadata(data)
        except (PydanticValidationError, TypeError):
            logger.warning("Dropping malformed assistant metadata for session %s", session_id)
            metadata = None
        return AssistantReply(content=content, metadata=metadata)


class LocalAssistantEngine:
    """Acknowledging responder used when no engine is configured."""

    async def reply(self, session_id: str, history: List[Message]) -> AssistantReply:
        last = history[-1].content.strip() if history else ""
        turn = sum(1 for m in history if m.role == "user")
        content = (
            f"Thank you for sharing that. You said: \"{last}\". "
            "Can you tell me a little more about how that feels right now?"
        )
        metadata = MessageMetadata(
            technique="reflective_listening",
            goal="explore_feelings",
            progress=[{"turn": turn}],
        )
        return AssistantReply(content=content, metadata=metadata)


def default_assistant_engine() -> AssistantEngine:
    url = runtime_config.get_assistant_engine_url()
    if url:
        return HttpAssistantEngine(url, timeout=runtime_config.get_assistant_timeout())
    return LocalAssistantEngine()
