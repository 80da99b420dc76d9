"""Activity log operations."""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, time
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from calmly.activity.contracts import Activity, ActivityCompletedEvent, ActivityFields
from calmly.activity.notifier import NotificationDispatcher, default_dispatcher
from calmly.activity.repository import ActivityRepository
from calmly.common.errors import ValidationError

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
END_OF_DAY = time(23, 59, 59, 999000)


def local_now() -> datetime:
    """Server-local wall clock at millisecond precision."""
    now = datetime.now().astimezone()
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def day_window(moment: datetime) -> Tuple[datetime, datetime]:
    """[00:00:00.000, 23:59:59.999] of the calendar day containing ``moment``.

    Each bound takes its own UTC offset, so a day with a DST change is not
    shifted by an hour. Moments carrying the server-local offset resolve
    against the local zone; other zones are used as given.
    """
    day = moment.date()
    if moment.tzinfo is None or moment.utcoffset() == moment.astimezone().utcoffset():
        return (
            datetime.combine(day, time.min).astimezone(),
            datetime.combine(day, END_OF_DAY).astimezone(),
        )
    return (
        datetime.combine(day, time.min, tzinfo=moment.tzinfo),
        datetime.combine(day, END_OF_DAY, tzinfo=moment.tzinfo),
    )


_dispatcher: Optional[NotificationDispatcher] = None


def get_dispatcher() -> NotificationDispatcher:
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = default_dispatcher()
    return _dispatcher


def set_dispatcher(dispatcher: Optional[NotificationDispatcher]) -> None:
    global _dispatcher
    _dispatcher = dispatcher


def _first_error(exc: PydanticValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid activity"
    first = errors[0]
    field = ".".join(str(p) for p in first.get("loc", ()))
    reason = str(first.get("msg", "invalid value")).removeprefix("Value error, ")
    return f"{field}: {reason}" if field else reason


class ActivityService:
    def __init__(
        self,
        repo: ActivityRepository,
        dispatcher: Optional[NotificationDispatcher] = None,
        clock: Clock = local_now,
    ) -> None:
        self._repo = repo
        self._dispatcher = dispatcher or get_dispatcher()
        self._clock = clock

    async def log_activity(self, user_id: str, fields: Dict[str, Any]) -> Activity:
        try:
            parsed = ActivityFields.model_validate(fields)
        except PydanticValidationError as exc:
            raise ValidationError(_first_error(exc))

        activity = Activity(
            id=uuid.uuid4().hex,
            userId=user_id,
            timestamp=self._clock(),
            **parsed.model_dump(),
        )
        await self._repo.add(activity)
        logger.info("Activity logged for user %s (type=%s)", user_id, activity.type)

        # Only after the write has committed; the response never waits on it.
        try:
            self._dispatcher.dispatch(ActivityCompletedEvent.from_activity(activity))
        except Exception:
            logger.exception("Could not schedule completion event for activity %s", activity.id)
        return activity

    async def get_today(self, user_id: str) -> List[Activity]:
        start, end = day_window(self._clock())
        activities = await self._repo.list_between(user_id, start, end)
        logger.info("Found %s activities for user %s today", len(activities), user_id)
        return activities

    async def list_activities(self, user_id: str, limit: Optional[int] = None) -> List[Activity]:
        return await self._repo.list_recent(user_id, limit)
