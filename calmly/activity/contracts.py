"""Data contracts for the activity log."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

ACTIVITY_TYPES = frozenset(
    {
        "meditation",
        "exercise",
        "walking",
        "running",
        "reading",
        "journaling",
        "therapy",
        "breathing",
        "yoga",
        "sleep",
        "social",
        "other",
    }
)


class ActivityFields(BaseModel):
    """Caller-supplied fields; unknown keys such as ``timestamp`` are dropped."""

    model_config = ConfigDict(extra="ignore")

    type: str
    name: str = ""
    description: Optional[str] = None
    duration: Optional[float] = Field(default=None, ge=0)
    difficulty: Optional[int] = Field(default=None, ge=0)
    feedback: Optional[str] = None

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("type is required")
        normalized = value.strip().lower()
        if normalized not in ACTIVITY_TYPES:
            raise ValueError(f"type must be one of: {', '.join(sorted(ACTIVITY_TYPES))}")
        return normalized


class Activity(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    userId: str
    type: str
    name: str = ""
    description: Optional[str] = None
    duration: Optional[float] = None
    difficulty: Optional[int] = None
    feedback: Optional[str] = None
    timestamp: datetime


class ActivityLogged(BaseModel):
    success: bool = True
    data: Activity


class ActivityCompletedEvent(BaseModel):
    name: str = "activity/completed"
    data: Dict[str, Any]

    @classmethod
    def from_activity(cls, activity: Activity) -> "ActivityCompletedEvent":
        return cls(data=activity.model_dump(mode="json"))
