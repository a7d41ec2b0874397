"""
Access gate — decides whether a wallet may take part in a room.

The decision is advisory: the chat contract enforces the real rule when a
message is submitted. The gate only keeps the client from offering an action
the contract would reject, so it fails closed when the oracle cannot answer.
"""

import asyncio
import logging
from enum import Enum
from typing import Iterable, Optional, Union

from token_chat.models.room import GatedRoom, OpenRoom
from token_chat.models.wallet import WalletIdentity
from token_chat.oracle import BalanceOracle
from token_chat.utils import to_token_amount

logger = logging.getLogger(__name__)

Policy = Union[OpenRoom, GatedRoom]


class Decision(str, Enum):
    ADMIT = "admit"
    DENY_NO_WALLET = "deny_no_wallet"
    DENY_INSUFFICIENT_BALANCE = "deny_insufficient_balance"
    DENY_UNKNOWN = "deny_unknown"

    @property
    def admitted(self) -> bool:
        return self is Decision.ADMIT

    @property
    def retryable(self) -> bool:
        """Only an inconclusive balance check is worth retrying."""
        return self is Decision.DENY_UNKNOWN


class AccessGate:
    def __init__(self, oracle: BalanceOracle):
        self._oracle = oracle

    @property
    def oracle(self) -> BalanceOracle:
        return self._oracle

    async def can_access(self, policy: Policy, identity: WalletIdentity) -> Decision:
        return await self.evaluate(policy, identity, self._oracle)

    @staticmethod
    async def evaluate(policy: Policy, identity: WalletIdentity, oracle: BalanceOracle) -> Decision:
        if not isinstance(policy, GatedRoom):
            return Decision.ADMIT
        if not identity.connected or identity.address is None:
            return Decision.DENY_NO_WALLET

        raw = await _query(oracle, identity, policy)
        if raw is None:
            return Decision.DENY_UNKNOWN
        return _compare(raw, policy)

    async def decisions(self, rooms: Iterable[Policy], identity: WalletIdentity) -> dict[str, Decision]:
        """Evaluate several rooms at once, one oracle query per distinct token."""
        rooms = list(rooms)
        result: dict[str, Decision] = {}
        gated: list[GatedRoom] = []
        for room in rooms:
            if not isinstance(room, GatedRoom):
                result[room.room_id] = Decision.ADMIT
            elif not identity.connected:
                result[room.room_id] = Decision.DENY_NO_WALLET
            else:
                gated.append(room)

        tokens = {room.required_token.address: room for room in gated}
        raws = await asyncio.gather(*(
            _query(self._oracle, identity, room) for room in tokens.values()
        ))
        by_token = dict(zip(tokens.keys(), raws))
        for room in gated:
            raw = by_token[room.required_token.address]
            result[room.room_id] = Decision.DENY_UNKNOWN if raw is None else _compare(raw, room)
        return {room.room_id: result[room.room_id] for room in rooms}


async def _query(oracle: BalanceOracle, identity: WalletIdentity, room: GatedRoom) -> Optional[int]:
    """Raw balance, or None when the oracle could not answer."""
    try:
        return int(await oracle.balance_of(identity.address, room.required_token))  # type: ignore[arg-type]
    except Exception as e:
        logger.warning("Balance check for %s in room %s failed: %s", identity.address, room.room_id, e)
        return None


def _compare(raw: int, room: GatedRoom) -> Decision:
    # compare token amounts, never raw units: tokens differ in decimals
    balance = to_token_amount(raw, room.required_token.scale)
    if balance >= room.min_token_amount:
        return Decision.ADMIT
    return Decision.DENY_INSUFFICIENT_BALANCE
