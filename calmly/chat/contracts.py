"""Data contracts for chat sessions and messages.

Field names are camelCase because they are the wire format shared with the
browser client.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

Role = Literal["user", "assistant"]


def _now() -> datetime:
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


class MessageAnalysis(BaseModel):
    emotionalState: str = ""
    themes: List[str] = Field(default_factory=list)
    riskLevel: float = 0
    recommendedApproach: str = ""
    progressIndicators: List[str] = Field(default_factory=list)

    @field_validator("themes")
    @classmethod
    def _dedupe_themes(cls, value: List[str]) -> List[str]:
        # themes is a set; keep first-seen order for stable output
        return list(dict.fromkeys(value))


class MessageMetadata(BaseModel):
    technique: str = ""
    goal: str = ""
    progress: List[Any] = Field(default_factory=list)
    analysis: Optional[MessageAnalysis] = None


class Message(BaseModel):
    role: Role
    content: str
    timestamp: datetime = Field(default_factory=_now)
    metadata: Optional[MessageMetadata] = None

    @field_validator("content")
    @classmethod
    def _content_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("content must not be empty")
        return value


class Session(BaseModel):
    sessionId: str
    userId: str
    messages: List[Message] = Field(default_factory=list)
    createdAt: datetime = Field(default_factory=_now)
    updatedAt: datetime = Field(default_factory=_now)

    def summary(self) -> "SessionSummary":
        return SessionSummary(
            sessionId=self.sessionId,
            createdAt=self.createdAt,
            updatedAt=self.updatedAt,
            messageCount=len(self.messages),
            lastMessage=self.messages[-1].model_copy(deep=True) if self.messages else None,
        )


class SessionSummary(BaseModel):
    sessionId: str
    createdAt: datetime
    updatedAt: datetime
    messageCount: int = 0
    lastMessage: Optional[Message] = None


class CreateSessionResponse(BaseModel):
    sessionId: str


class SendMessageRequest(BaseModel):
    message: str

    @field_validator("message")
    @classmethod
    def _message_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("Message is required")
        return value


class SendMessageResponse(BaseModel):
    response: str
    message: str
    metadata: Optional[MessageMetadata] = None
    analysis: Optional[MessageAnalysis] = None
