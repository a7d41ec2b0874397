"""
Remote message feed — ``MessageSent`` logs of the chat contract, relayed
over Socket.IO by an indexer.

Relay events arrive either bare or wrapped in an envelope
``{"metadata": {...}, "payload": {"data": {...}}}``.
"""

import asyncio
import logging
from typing import Any, Callable, Optional

import socketio

from token_chat.models.message import MessageSentEvent

logger = logging.getLogger(__name__)

MESSAGE_SENT_EVENT = "chat:message_sent"
SUBSCRIBE_EVENT = "chat:subscribe"
READY_EVENT = "ready"


def parse_message_sent(raw: Any) -> Optional[MessageSentEvent]:
    """Parse a relayed MessageSent event. Returns None if invalid."""
    if not isinstance(raw, dict):
        return None
    payload = raw.get("payload")
    if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
        raw = payload["data"]
    try:
        return MessageSentEvent.model_validate(raw)
    except Exception:
        return None


class RemoteMessageFeed:
    def __init__(
        self,
        url: str,
        on_message: Callable[[MessageSentEvent], Any],
        rooms: Optional[list[str]] = None,
        transports: Optional[list[str]] = None,
        ready_timeout: float = 15.0,
    ):
        self._url = url
        self._on_message = on_message
        self._rooms = rooms or []
        self._transports = transports or ["websocket"]
        self._ready_timeout = ready_timeout
        self._sio: Optional[socketio.AsyncClient] = None
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected and self._sio is not None and self._sio.connected

    def handle(self, raw: Any) -> Optional[MessageSentEvent]:
        event = parse_message_sent(raw)
        if event is None:
            logger.warning("Dropping malformed %s event", MESSAGE_SENT_EVENT)
            return None
        try:
            self._on_message(event)
        except Exception:
            logger.exception("Remote message handler failed for %s", event.message_id)
        return event

    async def connect(self) -> None:
        """Connect to the relay and wait for its ``ready`` event."""
        if self._sio and self._sio.connected:
            return

        self._sio = socketio.AsyncClient()
        ready_event = asyncio.Event()

        @self._sio.on(READY_EVENT)
        async def on_ready(*_args: Any) -> None:
            self._connected = True
            ready_event.set()

        @self._sio.on(MESSAGE_SENT_EVENT)
        async def on_message_sent(data: Any) -> None:
            self.handle(data)

        @self._sio.event
        async def disconnect(_reason: str = "") -> None:
            self._connected = False

        await self._sio.connect(self._url, transports=self._transports)

        try:
            await asyncio.wait_for(ready_event.wait(), timeout=self._ready_timeout)
        except asyncio.TimeoutError:
            await self._sio.disconnect()
            raise TimeoutError(f"Timed out waiting for 'ready' event after {self._ready_timeout}s")

        if self._rooms:
            await self._sio.emit(SUBSCRIBE_EVENT, {"rooms": self._rooms})

    async def disconnect(self) -> None:
        self._connected = False
        if self._sio:
            await self._sio.disconnect()
            self._sio = None
