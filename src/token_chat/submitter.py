"""
Transaction submitters — the write path to the chat contract.

The session core only needs ``submit(room_id, content, sender)`` that
eventually returns a receipt or raises SubmitError. Signing and broadcasting
belong to the wallet provider behind an implementation of this protocol.
"""

import asyncio
import logging
import secrets
from typing import Optional, Protocol

from token_chat.errors import SubmitError
from token_chat.models.address import Address
from token_chat.models.message import SubmitReceipt
from token_chat.utils import utcnow

logger = logging.getLogger(__name__)

DEFAULT_SUBMIT_DELAY_S = 1.0


class TransactionSubmitter(Protocol):
    async def submit(self, room_id: str, content: str, sender: Address) -> SubmitReceipt: ...


class SimulatedSubmitter:
    """Pretends to mine every message after ``delay`` seconds.

    ``fail_with`` makes every submission fail with that reason instead.
    """

    def __init__(self, delay: float = DEFAULT_SUBMIT_DELAY_S, fail_with: Optional[str] = None):
        self.delay = delay
        self.fail_with = fail_with
        self.submitted: list[tuple[str, str, Address]] = []

    async def submit(self, room_id: str, content: str, sender: Address) -> SubmitReceipt:
        self.submitted.append((room_id, content, sender))
        await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise SubmitError(self.fail_with)
        return SubmitReceipt(confirmed_at=utcnow(), tx_ref="0x" + secrets.token_hex(32))


class TimeoutSubmitter:
    """Fails a submission that has not landed within ``timeout`` seconds."""

    def __init__(self, inner: TransactionSubmitter, timeout: float):
        self._inner = inner
        self._timeout = timeout

    async def submit(self, room_id: str, content: str, sender: Address) -> SubmitReceipt:
        try:
            return await asyncio.wait_for(self._inner.submit(room_id, content, sender), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning("Submission to %s timed out after %ss", room_id, self._timeout)
            raise SubmitError(f"Submission timed out after {self._timeout}s", {"timeout": self._timeout})
