import asyncio
from datetime import datetime, timezone

import pytest

from token_chat.errors import SubmitError
from token_chat.gate import AccessGate
from token_chat.models.message import SubmitReceipt
from token_chat.oracle import StaticBalanceOracle
from token_chat.registry import DEFAULT_ROOMS, RoomRegistry, StaticRoomLoader
from token_chat.session import SessionContext, SessionCoordinator

ALICE = "0x742d35Cc6634C0532925a3b8D5c4E21A8B0C9823"
BOB = "0x8ba1f109551bD432803012645Ac136c9c8C3cA11"
HODL_TOKEN = "0x7890123456789012345678901234567890123456"
CLUB_TOKEN = "0x5678901234567890123456789012345678905678"
GOV_TOKEN = "0x6789012345678901234567890123456789012345"

WEI = 10 ** 18


def ts(seconds: int) -> datetime:
    return datetime.fromtimestamp(1_700_000_000 + seconds, tz=timezone.utc)


class ManualSubmitter:
    """Submissions stay open until the test resolves them."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, str]] = []
        self._futures: list[asyncio.Future] = []

    async def submit(self, room_id, content, sender):
        future = asyncio.get_running_loop().create_future()
        self.calls.append((room_id, content, sender))
        self._futures.append(future)
        return await future

    def confirm(self, index: int, confirmed_at=None, tx_ref=None) -> None:
        self._futures[index].set_result(SubmitReceipt(
            confirmed_at=confirmed_at or datetime.now(timezone.utc),
            tx_ref=tx_ref or f"0x{index:064x}",
        ))

    def fail(self, index: int, reason: str = "reverted") -> None:
        self._futures[index].set_exception(SubmitError(reason))


@pytest.fixture
def oracle() -> StaticBalanceOracle:
    return StaticBalanceOracle({
        HODL_TOKEN: {ALICE: 150 * WEI, BOB: 50 * WEI},
        CLUB_TOKEN: {ALICE: 1},
    })


@pytest.fixture
def registry() -> RoomRegistry:
    return RoomRegistry.from_loader(StaticRoomLoader(DEFAULT_ROOMS))


@pytest.fixture
def submitter() -> ManualSubmitter:
    return ManualSubmitter()


@pytest.fixture
def session(registry, oracle, submitter) -> SessionCoordinator:
    return SessionCoordinator(SessionContext(
        registry=registry,
        gate=AccessGate(oracle),
        submitter=submitter,
    ))
