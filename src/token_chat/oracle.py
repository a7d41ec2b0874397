"""
Balance oracles — read-only sources for on-chain token balances.

Balances are raw base units (wei-style integers); the gate scales them by
the token's decimals.
"""

import itertools
import logging
from typing import Any, Mapping, Optional, Protocol

import httpx

from token_chat.errors import OracleError
from token_chat.models.address import Address
from token_chat.models.room import TokenRef

logger = logging.getLogger(__name__)

# keccak("balanceOf(address)")[:4]; same selector for ERC-20 and ERC-721
BALANCE_OF_SELECTOR = "0x70a08231"


class BalanceOracle(Protocol):
    async def balance_of(self, address: Address, token: TokenRef) -> int: ...


class StaticBalanceOracle:
    """In-memory balances: ``{token_address: {wallet_address: raw_units}}``.

    Unknown holders have a zero balance. ``available=False`` makes every
    query fail as if the node were unreachable.
    """

    def __init__(self, balances: Optional[Mapping[str, Mapping[str, int]]] = None, available: bool = True):
        self._balances: dict[tuple[str, str], int] = {}
        self.available = available
        self.calls = 0
        for token, holders in (balances or {}).items():
            for holder, raw in holders.items():
                self.set_balance(token, holder, raw)

    def set_balance(self, token: str, holder: str, raw: int) -> None:
        self._balances[(Address(token), Address(holder))] = int(raw)

    async def balance_of(self, address: Address, token: TokenRef) -> int:
        self.calls += 1
        if not self.available:
            raise OracleError("Balance oracle unavailable")
        return self._balances.get((token.address, Address(address)), 0)


class RpcBalanceOracle:
    """Reads ``balanceOf`` through an Ethereum JSON-RPC ``eth_call``."""

    def __init__(
        self,
        rpc_url: str,
        timeout: float = 10.0,
        block: str = "latest",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._rpc_url = rpc_url
        self._block = block
        self._ids = itertools.count(1)
        self._client = httpx.AsyncClient(
            headers={"User-Agent": "token-chat/0.1.0", "Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    @staticmethod
    def encode_call(address: Address, token: TokenRef) -> dict[str, str]:
        return {
            "to": str(token.address),
            "data": BALANCE_OF_SELECTOR + str(address)[2:].rjust(64, "0"),
        }

    @staticmethod
    def decode_result(result: Any) -> int:
        if not isinstance(result, str) or not result.startswith("0x"):
            raise OracleError(f"Unexpected eth_call result: {result!r}")
        digits = result[2:]
        if not digits:
            # empty return data: no contract at that address
            raise OracleError("eth_call returned no data")
        try:
            return int(digits, 16)
        except ValueError:
            raise OracleError(f"Unexpected eth_call result: {result!r}")

    async def balance_of(self, address: Address, token: TokenRef) -> int:
        body = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": "eth_call",
            "params": [self.encode_call(address, token), self._block],
        }
        try:
            resp = await self._client.post(self._rpc_url, json=body)
        except httpx.HTTPError as e:
            raise OracleError(f"RPC request failed: {e}") from e
        if resp.status_code >= 400:
            raise OracleError(f"HTTP {resp.status_code}: {resp.text[:200]}")
        try:
            payload = resp.json()
        except ValueError as e:
            raise OracleError(f"RPC returned invalid JSON: {e}") from e
        if not isinstance(payload, dict):
            raise OracleError("RPC response is not an object")
        if payload.get("error"):
            error = payload["error"]
            raise OracleError(f"RPC error: {error.get('message', error)}", {"error": error})
        balance = self.decode_result(payload.get("result"))
        logger.debug("balanceOf(%s) on %s = %d", address, token.address, balance)
        return balance

    async def close(self) -> None:
        await self._client.aclose()
