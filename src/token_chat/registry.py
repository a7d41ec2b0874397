"""
Room registry — the rooms a session knows about, loaded once.
"""

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Optional, Protocol, Union

from token_chat.errors import DuplicateRoomError, RegistryError
from token_chat.models.room import GatedRoom, OpenRoom, parse_room_policy

logger = logging.getLogger(__name__)

Policy = Union[OpenRoom, GatedRoom]


class RoomLoader(Protocol):
    def load(self) -> Iterable[Policy]: ...


class StaticRoomLoader:
    def __init__(self, rooms: Iterable[Union[Policy, dict[str, Any]]]):
        self._rooms = [parse_room_policy(r) for r in rooms]

    def load(self) -> list[Policy]:
        return list(self._rooms)


class JsonRoomLoader:
    """Rooms from a JSON file: a list of rooms or ``{"rooms": [...]}``."""

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path).expanduser()

    def load(self) -> list[Policy]:
        try:
            data = json.loads(self._path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise RegistryError(f"Cannot read rooms from {self._path}: {e}", code="loader_error")
        if isinstance(data, dict):
            data = data.get("rooms", [])
        if not isinstance(data, list):
            raise RegistryError(f"{self._path}: expected a list of rooms", code="loader_error")
        try:
            return [parse_room_policy(r) for r in data]
        except ValueError as e:
            raise RegistryError(f"{self._path}: invalid room: {e}", code="loader_error")


class RoomRegistry:
    def __init__(self) -> None:
        self._rooms: dict[str, Policy] = {}
        self._loaded = False

    @classmethod
    def from_loader(cls, loader: RoomLoader) -> "RoomRegistry":
        registry = cls()
        registry.load(loader)
        return registry

    @property
    def loaded(self) -> bool:
        return self._loaded

    def load(self, loader: RoomLoader) -> None:
        if self._loaded:
            raise RegistryError("Room registry is already populated")
        rooms: dict[str, Policy] = {}
        for room in loader.load():
            if room.room_id in rooms:
                raise DuplicateRoomError(room.room_id)
            rooms[room.room_id] = room
        self._rooms = rooms
        self._loaded = True
        logger.debug("Loaded %d rooms", len(rooms))

    def list(self) -> tuple[Policy, ...]:
        return tuple(self._rooms.values())

    def get(self, room_id: str) -> Optional[Policy]:
        return self._rooms.get(room_id)

    def __contains__(self, room_id: object) -> bool:
        return room_id in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)


# Demo rooms shipped with the client; token addresses are placeholders.
DEFAULT_ROOMS: list[dict[str, Any]] = [
    {
        "id": "general",
        "name": "General",
        "description": "Open discussion for everyone",
        "isTokenGated": False,
        "memberCount": 1337,
    },
    {
        "id": "hodlers",
        "name": "Token Hodlers",
        "description": "Exclusive chat for token holders",
        "isTokenGated": True,
        "requiredToken": {"address": "0x7890123456789012345678901234567890123456", "decimals": 18, "symbol": "ACCESS"},
        "minTokenAmount": "100",
        "memberCount": 42,
    },
    {
        "id": "nft-club",
        "name": "NFT Collectors",
        "description": "For verified NFT owners only",
        "isTokenGated": True,
        "requiredToken": {"address": "0x5678901234567890123456789012345678905678", "standard": "erc721", "symbol": "CLUB"},
        "minTokenAmount": "1",
        "memberCount": 89,
    },
    {
        "id": "dao",
        "name": "DAO Governance",
        "description": "Governance discussions and proposals",
        "isTokenGated": True,
        "requiredToken": {"address": "0x6789012345678901234567890123456789012345", "decimals": 18, "symbol": "GOV"},
        "minTokenAmount": "1000",
        "memberCount": 156,
        "isPrivate": True,
    },
]
