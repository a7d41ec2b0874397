"""
token-chat — token-gated chat sessions for wallet identities.

Wallet connection state, per-room access gating against on-chain balances,
and an optimistic pending -> confirmed message timeline.
"""

from token_chat.client import TokenChat, AsyncTokenChat
from token_chat.config import ChatConfig
from token_chat.gate import AccessGate, Decision
from token_chat.registry import RoomRegistry, StaticRoomLoader, JsonRoomLoader, DEFAULT_ROOMS
from token_chat.session import SessionContext, SessionCoordinator
from token_chat.timeline import MessageTimeline
from token_chat.wallet import Wallet
from token_chat.errors import (
    TokenChatError,
    ValidationError,
    EmptyContentError,
    InvalidAddressError,
    NoRoomError,
    WalletConnectError,
    AlreadyConnectingError,
    AccessDeniedError,
    OracleError,
    SubmitError,
    InvariantViolation,
    DuplicateIdError,
    NotFoundError,
    AlreadyResolvedError,
    RegistryError,
    DuplicateRoomError,
    ConfigError,
)
from token_chat.models.address import Address
from token_chat.models.message import Confirmed, Failed, Message, MessageState, SubmitReceipt
from token_chat.models.room import GatedRoom, OpenRoom, TokenRef, parse_room_policy
from token_chat.models.wallet import ConnectorResult, WalletIdentity, WalletStatus

__version__ = "0.1.0"
__all__ = [
    "TokenChat",
    "AsyncTokenChat",
    "ChatConfig",
    "AccessGate",
    "Decision",
    "RoomRegistry",
    "StaticRoomLoader",
    "JsonRoomLoader",
    "DEFAULT_ROOMS",
    "SessionContext",
    "SessionCoordinator",
    "MessageTimeline",
    "Wallet",
    "TokenChatError",
    "ValidationError",
    "EmptyContentError",
    "InvalidAddressError",
    "NoRoomError",
    "WalletConnectError",
    "AlreadyConnectingError",
    "AccessDeniedError",
    "OracleError",
    "SubmitError",
    "InvariantViolation",
    "DuplicateIdError",
    "NotFoundError",
    "AlreadyResolvedError",
    "RegistryError",
    "DuplicateRoomError",
    "ConfigError",
    "Address",
    "Confirmed",
    "Failed",
    "Message",
    "MessageState",
    "SubmitReceipt",
    "GatedRoom",
    "OpenRoom",
    "TokenRef",
    "parse_room_policy",
    "ConnectorResult",
    "WalletIdentity",
    "WalletStatus",
]
