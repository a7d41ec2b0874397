"""
token-chat error types.

Validation and authorization errors are raised to the caller of an intent.
Submission errors end up on the message as ``failed``. Invariant violations
mean the caller misused the timeline and are logged as defects.
"""

from typing import Any, Optional


class TokenChatError(Exception):
    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.details = details


class ValidationError(TokenChatError):
    pass


class EmptyContentError(ValidationError):
    def __init__(self, message: str = "Message content is empty"):
        super().__init__("empty_content", message)


class InvalidAddressError(ValidationError):
    def __init__(self, address: Any):
        super().__init__("invalid_address", f"Invalid wallet address: {address!r}", {"address": address})


class NoRoomError(ValidationError):
    def __init__(self, room_id: str):
        super().__init__("no_room", f"Unknown room: {room_id}", {"room_id": room_id})


class WalletConnectError(TokenChatError):
    def __init__(self, message: str, code: str = "connect_error"):
        super().__init__(code, message)


class AlreadyConnectingError(WalletConnectError):
    def __init__(self) -> None:
        super().__init__("A wallet connection is already in progress", code="already_connecting")


class AccessDeniedError(TokenChatError):
    def __init__(self, decision: Any, room_id: Optional[str] = None):
        value = getattr(decision, "value", decision)
        super().__init__("access_denied", f"Access denied ({value})", {"decision": value, "room_id": room_id})
        self.decision = decision


class OracleError(TokenChatError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("oracle_error", message, details)


class SubmitError(TokenChatError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("submit_error", message, details)


class InvariantViolation(TokenChatError):
    pass


class DuplicateIdError(InvariantViolation):
    def __init__(self, message_id: str):
        super().__init__("duplicate_id", f"Message {message_id} already in timeline", {"id": message_id})


class NotFoundError(InvariantViolation):
    def __init__(self, message_id: str):
        super().__init__("not_found", f"No message with id {message_id}", {"id": message_id})


class AlreadyResolvedError(InvariantViolation):
    def __init__(self, message_id: str, state: str):
        super().__init__(
            "already_resolved",
            f"Message {message_id} already {state}",
            {"id": message_id, "state": state},
        )


class RegistryError(TokenChatError):
    def __init__(self, message: str, code: str = "registry_error"):
        super().__init__(code, message)


class DuplicateRoomError(RegistryError):
    def __init__(self, room_id: str):
        super().__init__(f"Room {room_id} registered twice", code="duplicate_room")


class ConfigError(TokenChatError):
    def __init__(self, message: str, path: str):
        super().__init__("config_error", message, {"path": path})
