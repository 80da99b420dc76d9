"""Activity completion notifications.

The notifier is an external collaborator. Delivery is advisory: the
dispatcher runs each send in a detached task after the write has committed,
retries with exponential backoff, then logs and drops the event.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol, Set

import httpx

from calmly.activity.contracts import ActivityCompletedEvent
from calmly.config import runtime_config

logger = logging.getLogger(__name__)


class EventNotifier(Protocol):
    async def send(self, event: ActivityCompletedEvent) -> None:
        """Raise on delivery failure; the dispatcher owns retries."""
        ...


class HttpEventNotifier:
    """Posts events to an event-ingest endpoint at ``{base}/e/{event_key}``."""

    def __init__(
        self,
        base_url: str,
        event_key: Optional[str] = None,
        timeout: float = runtime_config.DEFAULT_NOTIFIER_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._event_key = event_key
        self._timeout = httpx.Timeout(timeout)
        self._transport = transport

    @property
    def target_url(self) -> str:
        if self._event_key:
            return f"{self._base_url}/e/{self._event_key}"
        return f"{self._base_url}/e"

    async def send(self, event: ActivityCompletedEvent) -> None:
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            resp = await client.post(self.target_url, json=event.model_dump(mode="json"))
        resp.raise_for_status()


class LoggingNotifier:
    """Used when no notifier endpoint is configured."""

    async def send(self, event: ActivityCompletedEvent) -> None:
        logger.info("Event %s: activity %s", event.name, event.data.get("id"))


class NotificationDispatcher:
    def __init__(
        self,
        notifier: EventNotifier,
        max_attempts: int = runtime_config.DEFAULT_NOTIFIER_ATTEMPTS,
        backoff_seconds: float = runtime_config.DEFAULT_NOTIFIER_BACKOFF,
    ) -> None:
        self._notifier = notifier
        self._max_attempts = max(1, max_attempts)
        self._backoff = max(0.0, backoff_seconds)
        # Strong references so pending tasks are not garbage collected.
        self._pending: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def dispatch(self, event: ActivityCompletedEvent) -> asyncio.Task:
        """Schedule delivery and return immediately. Needs a running loop."""
        task = asyncio.get_running_loop().create_task(self._deliver(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _deliver(self, event: ActivityCompletedEvent) -> bool:
        activity_id = event.data.get("id")
        for attempt in range(1, self._max_attempts + 1):
            try:
                await self._notifier.send(event)
                return True
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning(
                    "Notifier delivery failed for activity %s (attempt %s/%s): %s",
                    activity_id,
                    attempt,
                    self._max_attempts,
                    exc,
                )
                if attempt < self._max_attempts and self._backoff:
                    await asyncio.sleep(self._backoff * (2 ** (attempt - 1)))
        logger.error("Dropping %s event for activity %s after %s attempts", event.name, activity_id, self._max_attempts)
        return False

    async def drain(self) -> None:
        """Wait for in-flight deliveries (shutdown, tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


def default_notifier() -> EventNotifier:
    url = runtime_config.get_notifier_url()
    if url:
        return HttpEventNotifier(
            url,
            event_key=runtime_config.get_notifier_event_key(),
            timeout=runtime_config.get_notifier_timeout(),
        )
    return LoggingNotifier()


def default_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher(
        default_notifier(),
        max_attempts=runtime_config.get_notifier_max_attempts(),
        backoff_seconds=runtime_config.get_notifier_backoff(),
    )
