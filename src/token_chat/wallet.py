"""
Wallet connection state.

Holds the current WalletIdentity snapshot and notifies subscribers on every
transition. The provider handshake is awaited while the wallet sits in
``connecting``; a second connect during that window is rejected, and a
disconnect during that window abandons the handshake.
"""

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Optional, Union

from token_chat.errors import AlreadyConnectingError, InvalidAddressError, WalletConnectError
from token_chat.models.address import Address
from token_chat.models.wallet import ConnectorResult, WalletIdentity, WalletStatus

logger = logging.getLogger(__name__)

WalletHandler = Callable[[WalletIdentity], None]
Candidate = Union[ConnectorResult, Awaitable[ConnectorResult]]


class Wallet:
    def __init__(self) -> None:
        self._identity = WalletIdentity()
        self._handlers: list[WalletHandler] = []
        self._attempt = 0

    @property
    def identity(self) -> WalletIdentity:
        return self._identity

    @property
    def status(self) -> WalletStatus:
        return self._identity.status

    @property
    def address(self) -> Optional[Address]:
        return self._identity.address

    def subscribe(self, handler: WalletHandler) -> Callable[[], None]:
        """Add a state-change handler. Returns a cleanup function."""
        self._handlers.append(handler)
        def remove() -> None:
            try:
                self._handlers.remove(handler)
            except ValueError:
                pass
        return remove

    async def connect(self, candidate: Candidate) -> WalletIdentity:
        """Connect with a provider handshake result (or an awaitable yielding one)."""
        if self._identity.status == WalletStatus.CONNECTING:
            if inspect.iscoroutine(candidate):
                candidate.close()
            raise AlreadyConnectingError()

        self._attempt += 1
        attempt = self._attempt
        self._set(WalletIdentity(status=WalletStatus.CONNECTING))
        try:
            result = await candidate if inspect.isawaitable(candidate) else candidate
        except asyncio.CancelledError:
            if attempt == self._attempt:
                self._set(WalletIdentity())
            raise
        except Exception as e:
            if attempt == self._attempt:
                self._set(WalletIdentity())
            raise WalletConnectError(f"Wallet handshake failed: {e}") from e

        if attempt != self._attempt or self._identity.status != WalletStatus.CONNECTING:
            raise WalletConnectError("Wallet connection cancelled", code="connect_cancelled")

        try:
            address = Address(result.address)
        except InvalidAddressError:
            self._set(WalletIdentity())
            raise

        logger.info("Wallet connected: %s via %s", address, result.provider_name)
        return self._set(WalletIdentity(
            status=WalletStatus.CONNECTED,
            address=address,
            provider_name=result.provider_name,
        ))

    def disconnect(self) -> WalletIdentity:
        if self._identity.status == WalletStatus.DISCONNECTED:
            return self._identity
        self._attempt += 1
        logger.info("Wallet disconnected")
        return self._set(WalletIdentity())

    def _set(self, identity: WalletIdentity) -> WalletIdentity:
        self._identity = identity
        for handler in list(self._handlers):
            try:
                handler(identity)
            except Exception:
                logger.exception("Wallet state handler failed")
        return identity
