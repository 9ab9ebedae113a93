"""Real-time connection interface and Socket.IO implementation."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

import socketio
from socketio.exceptions import ConnectionError as SocketConnectionError

from jobsync.config import settings
from jobsync.jobs.errors import RealtimeUnavailable

logger = logging.getLogger(__name__)

EventHandler = Callable[[Any], None]


class RealtimeConnection(ABC):
    """Abstract interface for the shared push connection."""

    @abstractmethod
    async def connect(self) -> None:
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        ...

    @abstractmethod
    def is_connected(self) -> bool:
        ...

    @abstractmethod
    async def join_topic(self, name: str) -> None:
        ...

    @abstractmethod
    async def leave_topic(self, name: str) -> None:
        ...

    @abstractmethod
    def on(self, event: str, handler: EventHandler) -> None:
        ...

    @abstractmethod
    def off(self, event: str, handler: EventHandler) -> None:
        """Remove ``handler``. Removing an unknown handler does nothing."""
        ...


class SocketIOConnection(RealtimeConnection):
    """One Socket.IO client shared by every listener in the process.

    - Topics are reference counted: ``join`` goes out on the first
      ``join_topic`` and ``leave`` only when the last holder leaves.
    - Held topics are joined again after every (re)connect.
    - Handlers live in a local registry behind one Socket.IO handler per
      event; they survive reconnects and can be removed one by one.
    - A failed first connect is retried in the background with the
      configured delay and attempt count. Socket.IO only reconnects on its
      own once a connection has been established.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        client: Optional[Any] = None,
        retry_attempts: Optional[int] = None,
        retry_delay_s: Optional[float] = None,
    ):
        self._url = url or settings.socket_url
        self._retry_attempts = (
            retry_attempts if retry_attempts is not None else settings.socket_reconnection_attempts
        )
        self._retry_delay = (
            retry_delay_s if retry_delay_s is not None else settings.socket_reconnection_delay_s
        )
        self._retry_task: Optional[asyncio.Task] = None
        self._client = client or socketio.AsyncClient(
            reconnection=True,
            reconnection_attempts=settings.socket_reconnection_attempts,
            reconnection_delay=settings.socket_reconnection_delay_s,
        )
        self._topics: Dict[str, int] = {}
        self._handlers: Dict[str, List[EventHandler]] = {}

        self._client.on("connect", self._on_connect)
        self._client.on("disconnect", self._on_disconnect)
        self._client.on("connect_error", self._on_connect_error)

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Connect once. On failure a background retry is scheduled and
        :class:`RealtimeUnavailable` is raised."""
        if self.is_connected():
            return
        try:
            await self._open()
        except SocketConnectionError as exc:
            self._schedule_retry()
            raise RealtimeUnavailable(f"Socket connection to {self._url} failed: {exc}") from exc

    async def disconnect(self) -> None:
        self._cancel_retry()
        if self.is_connected():
            await self._client.disconnect()

    def is_connected(self) -> bool:
        return bool(self._client.connected)

    @property
    def retrying(self) -> bool:
        return self._retry_task is not None and not self._retry_task.done()

    async def _open(self) -> None:
        await self._client.connect(
            self._url,
            wait_timeout=settings.socket_connect_timeout_s,
        )

    def _schedule_retry(self) -> None:
        if self.retrying:
            return
        self._retry_task = asyncio.get_running_loop().create_task(self._retry_loop())

    def _cancel_retry(self) -> None:
        task = self._retry_task
        self._retry_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _retry_loop(self) -> None:
        # zero attempts means retry forever
        attempt = 0
        while not self._retry_attempts or attempt < self._retry_attempts:
            attempt += 1
            await asyncio.sleep(self._retry_delay)
            if self.is_connected():
                return
            logger.info("Socket connection attempt %d/%s", attempt, self._retry_attempts or "inf")
            try:
                await self._open()
                return
            except SocketConnectionError as exc:
                logger.warning("Socket connection attempt %d failed: %s", attempt, exc)
        logger.error("Socket connection failed after %d attempts, staying on polling", attempt)

    async def _on_connect(self) -> None:
        logger.info("Socket connected: %s", getattr(self._client, "sid", None))
        for name in list(self._topics):
            await self._client.emit("join", name)

    async def _on_disconnect(self, *args) -> None:
        logger.info("Socket disconnected%s", f": {args[0]}" if args else "")

    async def _on_connect_error(self, data: Any = None) -> None:
        logger.error("Socket connection error: %s", data)

    # ------------------------------------------------------------------
    # Topics
    # ------------------------------------------------------------------

    async def join_topic(self, name: str) -> None:
        count = self._topics.get(name, 0)
        self._topics[name] = count + 1
        if count == 0 and self.is_connected():
            await self._client.emit("join", name)

    async def leave_topic(self, name: str) -> None:
        count = self._topics.get(name, 0)
        if count == 0:
            return
        if count > 1:
            self._topics[name] = count - 1
            return
        del self._topics[name]
        if self.is_connected():
            await self._client.emit("leave", name)

    def topic_holders(self, name: str) -> int:
        return self._topics.get(name, 0)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def on(self, event: str, handler: EventHandler) -> None:
        handlers = self._handlers.get(event)
        if handlers is None:
            handlers = self._handlers[event] = []
            self._client.on(event, self._fan_out(event))
        handlers.append(handler)

    def off(self, event: str, handler: EventHandler) -> None:
        handlers = self._handlers.get(event)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def _fan_out(self, event: str) -> Callable[..., None]:
        def deliver(*args) -> None:
            data = args[0] if args else None
            for handler in list(self._handlers.get(event, ())):
                handler(data)

        return deliver


_connection: Optional[SocketIOConnection] = None


def get_connection() -> SocketIOConnection:
    """Get or create the process-wide Socket.IO connection."""
    global _connection
    if _connection is None:
        _connection = SocketIOConnection()
    return _connection
