"""
Message timeline — per-room ordered message sequences.

Ordering is ``created_at`` ascending with ties broken by insertion order.
A pending message sorts by its local enqueue time until a confirmation
supplies the chain's timestamp, at which point it is moved (stably).
"""

import bisect
from datetime import datetime, timezone
from typing import Iterator, Optional

from token_chat.errors import AlreadyResolvedError, DuplicateIdError, NotFoundError
from token_chat.models.message import Confirmed, Failed, Message, MessageState, Outcome


def _aware(ts: datetime) -> datetime:
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=timezone.utc)


class _RoomTimeline:
    __slots__ = ("keys", "ids")

    def __init__(self) -> None:
        self.keys: list[tuple[datetime, int]] = []
        self.ids: list[str] = []

    def insert(self, key: tuple[datetime, int], message_id: str) -> None:
        pos = bisect.bisect_right(self.keys, key)
        self.keys.insert(pos, key)
        self.ids.insert(pos, message_id)

    def remove(self, message_id: str) -> tuple[datetime, int]:
        pos = self.ids.index(message_id)
        del self.ids[pos]
        return self.keys.pop(pos)


class MessageTimeline:
    def __init__(self) -> None:
        self._rooms: dict[str, _RoomTimeline] = {}
        self._messages: dict[str, Message] = {}
        self._seq = 0

    def append(self, message: Message) -> Message:
        """Insert a message in order. Raises DuplicateIdError if the id is taken."""
        if message.id in self._messages:
            raise DuplicateIdError(message.id)
        if message.created_at.tzinfo is None:
            message = message.model_copy(update={"created_at": _aware(message.created_at)})
        self._seq += 1
        room = self._rooms.setdefault(message.room_id, _RoomTimeline())
        room.insert((message.created_at, self._seq), message.id)
        self._messages[message.id] = message
        return message

    def reconcile(self, message_id: str, outcome: Outcome) -> Message:
        """Resolve a pending message.

        Resolving again to the same outcome returns the stored message
        unchanged; resolving to the other outcome raises AlreadyResolvedError.
        """
        message = self._messages.get(message_id)
        if message is None:
            raise NotFoundError(message_id)
        if message.state != MessageState.PENDING:
            if message.state == outcome.state:
                return message
            raise AlreadyResolvedError(message_id, message.state.value)

        if isinstance(outcome, Confirmed):
            update: dict = {"state": MessageState.CONFIRMED, "tx_ref": outcome.tx_ref}
            if outcome.confirmed_at is not None:
                update["created_at"] = _aware(outcome.confirmed_at)
        elif isinstance(outcome, Failed):
            update = {"state": MessageState.FAILED, "failure_reason": outcome.reason}
        else:
            raise TypeError(f"Unknown outcome: {outcome!r}")

        resolved = message.model_copy(update=update)
        if resolved.created_at != message.created_at:
            room = self._rooms[message.room_id]
            _, seq = room.remove(message_id)
            room.insert((resolved.created_at, seq), message_id)
        self._messages[message_id] = resolved
        return resolved

    def view(self, room_id: str) -> tuple[Message, ...]:
        """Snapshot of a room's messages in timeline order."""
        room = self._rooms.get(room_id)
        if room is None:
            return ()
        return tuple(self._messages[i] for i in room.ids)

    def get(self, message_id: str) -> Optional[Message]:
        return self._messages.get(message_id)

    def pending(self, room_id: Optional[str] = None) -> list[Message]:
        rooms = [room_id] if room_id is not None else list(self._rooms)
        return [m for r in rooms for m in self.view(r) if m.state == MessageState.PENDING]

    def rooms(self) -> list[str]:
        return list(self._rooms)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._messages

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        for room_id in self._rooms:
            yield from self.view(room_id)
