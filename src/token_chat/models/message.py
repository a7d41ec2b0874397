"""
Message models — timeline entries and reconciliation outcomes.
"""

from datetime import datetime
from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field

from token_chat.models.address import Address


class MessageState(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class Message(BaseModel):
    id: str
    room_id: str
    sender: Address
    content: str = Field(min_length=1)
    created_at: datetime
    state: MessageState = MessageState.PENDING
    token_gated: bool = False
    tx_ref: Optional[str] = None
    failure_reason: Optional[str] = None
    remote: bool = False

    model_config = {"frozen": True}

    @property
    def resolved(self) -> bool:
        return self.state != MessageState.PENDING


class Confirmed(BaseModel):
    """Submission landed. confirmed_at, when given, replaces the provisional created_at."""
    kind: Literal["confirmed"] = "confirmed"
    confirmed_at: Optional[datetime] = None
    tx_ref: Optional[str] = None

    model_config = {"frozen": True}

    @property
    def state(self) -> MessageState:
        return MessageState.CONFIRMED


class Failed(BaseModel):
    kind: Literal["failed"] = "failed"
    reason: str = ""

    model_config = {"frozen": True}

    @property
    def state(self) -> MessageState:
        return MessageState.FAILED


Outcome = Union[Confirmed, Failed]


class SubmitReceipt(BaseModel):
    """What a TransactionSubmitter hands back once the chain accepted a message."""
    confirmed_at: datetime
    tx_ref: str


class MessageSentEvent(BaseModel):
    """``MessageSent`` log of the chat contract as relayed by the feed."""
    room_id: str = Field(alias="roomId")
    sender: Address
    content: str = Field(min_length=1)
    timestamp: int
    tx_ref: str = Field(alias="txHash")
    log_index: int = Field(default=0, alias="logIndex")

    model_config = {"populate_by_name": True, "frozen": True}

    @property
    def message_id(self) -> str:
        return f"{self.tx_ref}:{self.log_index}"
