"""
Wallet models — connection state snapshot and provider handshake result.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, model_validator

from token_chat.models.address import Address


class WalletStatus(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class ConnectorResult(BaseModel):
    """Result of an external wallet-provider handshake. Address is validated by the wallet."""
    address: str
    provider_name: str = "injected"


class WalletIdentity(BaseModel):
    status: WalletStatus = WalletStatus.DISCONNECTED
    address: Optional[Address] = None
    provider_name: Optional[str] = None

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _address_iff_connected(self) -> "WalletIdentity":
        connected = self.status == WalletStatus.CONNECTED
        if connected != (self.address is not None):
            raise ValueError("address must be set if and only if the wallet is connected")
        return self

    @property
    def connected(self) -> bool:
        return self.status == WalletStatus.CONNECTED
