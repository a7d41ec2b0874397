"""
TokenChat / AsyncTokenChat — session facades wired from configuration.
"""

import asyncio
import logging
from typing import Any, Callable, Optional

from token_chat.config import ChatConfig
from token_chat.errors import WalletConnectError
from token_chat.gate import AccessGate, Decision
from token_chat.models.message import Message
from token_chat.models.wallet import ConnectorResult, WalletIdentity
from token_chat.oracle import BalanceOracle, RpcBalanceOracle, StaticBalanceOracle
from token_chat.registry import DEFAULT_ROOMS, JsonRoomLoader, RoomLoader, RoomRegistry, StaticRoomLoader
from token_chat.session import SessionContext, SessionCoordinator
from token_chat.submitter import SimulatedSubmitter, TimeoutSubmitter, TransactionSubmitter
from token_chat.transport.feed import RemoteMessageFeed
from token_chat.wallet import Candidate

logger = logging.getLogger(__name__)


def build_oracle(config: ChatConfig) -> BalanceOracle:
    if config.rpc_url:
        return RpcBalanceOracle(config.rpc_url)
    return StaticBalanceOracle(config.balances)


def build_submitter(config: ChatConfig) -> TransactionSubmitter:
    submitter: TransactionSubmitter = SimulatedSubmitter(delay=config.submit_delay)
    if config.submit_timeout:
        submitter = TimeoutSubmitter(submitter, config.submit_timeout)
    return submitter


def build_loader(config: ChatConfig) -> RoomLoader:
    if config.rooms_file:
        return JsonRoomLoader(config.rooms_file)
    return StaticRoomLoader(DEFAULT_ROOMS)


class AsyncTokenChat:
    """Async token-gated chat session (primary)."""

    def __init__(
        self,
        config: Optional[ChatConfig] = None,
        *,
        oracle: Optional[BalanceOracle] = None,
        submitter: Optional[TransactionSubmitter] = None,
        loader: Optional[RoomLoader] = None,
    ):
        self.config = config or ChatConfig()
        self.oracle = oracle or build_oracle(self.config)
        self.registry = RoomRegistry.from_loader(loader or build_loader(self.config))
        self.session = SessionCoordinator(SessionContext(
            registry=self.registry,
            gate=AccessGate(self.oracle),
            submitter=submitter or build_submitter(self.config),
        ))
        self._feed: Optional[RemoteMessageFeed] = None

    @property
    def identity(self) -> WalletIdentity:
        return self.session.wallet.identity

    async def connect(self, candidate: Optional[Candidate] = None) -> WalletIdentity:
        """Connect a wallet; without a candidate the configured address is used."""
        if candidate is None:
            if not self.config.address:
                raise WalletConnectError("No wallet address given or configured")
            candidate = ConnectorResult(address=self.config.address, provider_name=self.config.provider_name)
        return await self.session.connect(candidate)

    def disconnect(self) -> WalletIdentity:
        return self.session.disconnect()

    def rooms(self) -> tuple[Any, ...]:
        return self.registry.list()

    async def decisions(self) -> dict[str, Decision]:
        return await self.session.room_decisions()

    async def select_room(self, room_id: str) -> Decision:
        return await self.session.select_room(room_id)

    async def send(self, room_id: str, content: str) -> str:
        return await self.session.send(room_id, content)

    def view(self, room_id: Optional[str] = None) -> tuple[Message, ...]:
        return self.session.view(room_id)

    def on_timeline(self, handler: Callable[[str, Message], None]) -> Callable[[], None]:
        return self.session.subscribe(handler)

    async def listen_remote(self, rooms: Optional[list[str]] = None) -> None:
        """Start feeding on-chain messages from the configured relay into the timeline."""
        if not self.config.relay_url:
            raise WalletConnectError("No relay_url configured", code="no_relay")
        self._feed = RemoteMessageFeed(
            self.config.relay_url,
            self.session.ingest_remote,
            rooms=rooms or [r.room_id for r in self.registry.list()],
        )
        await self._feed.connect()

    async def wait_settled(self) -> None:
        await self.session.wait_settled()

    async def close(self) -> None:
        await self.session.close()
        if self._feed:
            await self._feed.disconnect()
            self._feed = None
        close = getattr(self.oracle, "close", None)
        if close is not None:
            await close()


class TokenChat:
    """Sync wrapper around AsyncTokenChat. Runs the event loop internally.

    Submissions only make progress while the loop runs, i.e. inside calls on
    this object; ``wait_settled()`` drives them to completion.
    """

    def __init__(self, config: Optional[ChatConfig] = None, **kwargs: Any):
        self._loop = asyncio.new_event_loop()
        self._async = AsyncTokenChat(config, **kwargs)

    def _run(self, coro: Any) -> Any:
        return self._loop.run_until_complete(coro)

    @property
    def session(self) -> SessionCoordinator:
        return self._async.session

    @property
    def identity(self) -> WalletIdentity:
        return self._async.identity

    def connect(self, candidate: Optional[Candidate] = None) -> WalletIdentity:
        return self._run(self._async.connect(candidate))

    def disconnect(self) -> WalletIdentity:
        return self._async.disconnect()

    def rooms(self) -> tuple[Any, ...]:
        return self._async.rooms()

    def decisions(self) -> dict[str, Decision]:
        return self._run(self._async.decisions())

    def select_room(self, room_id: str) -> Decision:
        return self._run(self._async.select_room(room_id))

    def send(self, room_id: str, content: str) -> str:
        return self._run(self._async.send(room_id, content))

    def view(self, room_id: Optional[str] = None) -> tuple[Message, ...]:
        return self._async.view(room_id)

    def wait_settled(self) -> None:
        self._run(self._async.wait_settled())

    def close(self) -> None:
        self._run(self._async.close())
        self._loop.close()
