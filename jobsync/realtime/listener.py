"""Push channel listener: turns scraper events into store actions."""

import logging
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError

from jobsync.config import settings
from jobsync.jobs.actions import Action, JobCompleted, JobFailed, JobStarted, JobUpdated
from jobsync.jobs.errors import RealtimeUnavailable
from jobsync.jobs.store import JobStore
from jobsync.realtime.connection import RealtimeConnection
from jobsync.realtime.events import EVENT_TYPES, JobStartedEvent, PushEvent

logger = logging.getLogger(__name__)


def to_action(kind: str, event: PushEvent) -> Action:
    if kind == "started" and isinstance(event, JobStartedEvent):
        return JobStarted(event.to_job())
    if kind == "completed":
        return JobCompleted(event.to_patch())
    if kind == "failed":
        return JobFailed(event.to_patch())
    return JobUpdated(event.to_patch())


class PushListener:
    """Keeps the store in sync with ``<topic>:started|progress|completed|failed`` events.

    Every valid event is dispatched, whether or not any view shows the job.
    """

    def __init__(
        self,
        store: JobStore,
        connection: RealtimeConnection,
        topic: Optional[str] = None,
    ):
        self._store = store
        self._connection = connection
        self._topic = topic or settings.socket_topic
        self._handlers: Dict[str, Callable[[Any], None]] = {
            kind: self._make_handler(kind) for kind in EVENT_TYPES
        }
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def event_name(self, kind: str) -> str:
        return f"{self._topic}:{kind}"

    async def activate(self) -> None:
        if self._active:
            return
        if not self._connection.is_connected():
            try:
                await self._connection.connect()
            except RealtimeUnavailable as exc:
                logger.warning("Push channel unavailable, relying on polling: %s", exc)
        await self._connection.join_topic(self._topic)
        for kind, handler in self._handlers.items():
            self._connection.on(self.event_name(kind), handler)
        self._active = True
        logger.info("Listening for %s events", self._topic)

    async def deactivate(self) -> None:
        for kind, handler in self._handlers.items():
            self._connection.off(self.event_name(kind), handler)
        if self._active:
            await self._connection.leave_topic(self._topic)
        self._active = False

    def _make_handler(self, kind: str) -> Callable[[Any], None]:
        def handle(data: Any) -> None:
            self.handle_event(kind, data)

        return handle

    def handle_event(self, kind: str, data: Any) -> None:
        """Validate one payload and dispatch its action. Malformed payloads are dropped."""
        event_type = EVENT_TYPES[kind]
        try:
            event = event_type.model_validate(data)
            action = to_action(kind, event)
        except ValidationError as exc:
            logger.warning("Dropping malformed %s event: %s", self.event_name(kind), exc)
            return

        if kind == "failed":
            logger.error("Job failed event received: %s", event.job_id)
        else:
            logger.debug("Job %s event received: %s", kind, event.job_id)
        self._store.dispatch(action)
