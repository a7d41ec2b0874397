"""
Session coordinator — turns connect / select-room / send intents into
wallet, gate and timeline operations.

A send goes idle -> authorizing -> pending -> confirmed | failed:

1. Validate content and room, require a connected wallet (every message
   needs a sender address), ask the gate.
2. Append the pending message in the same step that saw the admit.
3. Submit in a background task; exactly one reconciliation per message.

Everything runs on one event loop, so the coordinator holds no locks.
Disconnecting the wallet does not cancel submissions already under way.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Union

from token_chat.errors import (
    AccessDeniedError,
    EmptyContentError,
    InvariantViolation,
    NoRoomError,
)
from token_chat.gate import AccessGate, Decision
from token_chat.models.message import (
    Confirmed,
    Failed,
    Message,
    MessageSentEvent,
    MessageState,
    SubmitReceipt,
)
from token_chat.models.wallet import WalletIdentity
from token_chat.registry import RoomRegistry
from token_chat.submitter import TransactionSubmitter
from token_chat.timeline import MessageTimeline
from token_chat.utils import generate_message_id, utcnow
from token_chat.wallet import Candidate, Wallet

logger = logging.getLogger(__name__)

# Timeline change kinds passed to subscribers
APPENDED = "appended"
CONFIRMED = "confirmed"
FAILED = "failed"

TimelineHandler = Callable[[str, Message], None]
SubmissionResult = Union[SubmitReceipt, BaseException]


class SessionContext:
    """Everything one chat session owns. Built per session, never shared."""

    def __init__(
        self,
        registry: RoomRegistry,
        gate: AccessGate,
        submitter: TransactionSubmitter,
        wallet: Optional[Wallet] = None,
        timeline: Optional[MessageTimeline] = None,
    ):
        self.registry = registry
        self.gate = gate
        self.submitter = submitter
        self.wallet = wallet or Wallet()
        self.timeline = timeline or MessageTimeline()


class SessionCoordinator:
    def __init__(self, context: SessionContext):
        self._ctx = context
        self._handlers: list[TimelineHandler] = []
        self._inflight: dict[str, asyncio.Task[None]] = {}
        # both live as long as the session: receipts and chain events may
        # arrive after wait_settled() for messages already reconciled
        self._settled: set[str] = set()
        self._tx_refs: dict[str, str] = {}
        self._current_room: Optional[str] = None
        self._unsubscribe_wallet = context.wallet.subscribe(self._on_wallet_change)

    @property
    def context(self) -> SessionContext:
        return self._ctx

    @property
    def wallet(self) -> Wallet:
        return self._ctx.wallet

    @property
    def timeline(self) -> MessageTimeline:
        return self._ctx.timeline

    @property
    def current_room(self) -> Optional[str]:
        return self._current_room

    @property
    def in_flight(self) -> int:
        return len(self._inflight)

    def subscribe(self, handler: TimelineHandler) -> Callable[[], None]:
        """Add a timeline change handler ``(kind, message)``. Returns a cleanup function."""
        self._handlers.append(handler)
        def remove() -> None:
            try:
                self._handlers.remove(handler)
            except ValueError:
                pass
        return remove

    # -- wallet ------------------------------------------------------------

    async def connect(self, candidate: Candidate) -> WalletIdentity:
        return await self._ctx.wallet.connect(candidate)

    def disconnect(self) -> WalletIdentity:
        return self._ctx.wallet.disconnect()

    def _on_wallet_change(self, identity: WalletIdentity) -> None:
        if not identity.connected and self._inflight:
            logger.info("Wallet %s with %d sends in flight; they will still settle",
                        identity.status.value, len(self._inflight))

    # -- rooms -------------------------------------------------------------

    async def authorize(self, room_id: str) -> Decision:
        policy = self._ctx.registry.get(room_id)
        if policy is None:
            raise NoRoomError(room_id)
        return await self._ctx.gate.can_access(policy, self._ctx.wallet.identity)

    async def select_room(self, room_id: str) -> Decision:
        """Make room_id the current room if the wallet may enter it."""
        decision = await self.authorize(room_id)
        if decision.admitted:
            self._current_room = room_id
        return decision

    async def room_decisions(self) -> dict[str, Decision]:
        return await self._ctx.gate.decisions(self._ctx.registry.list(), self._ctx.wallet.identity)

    def view(self, room_id: Optional[str] = None) -> tuple[Message, ...]:
        room_id = room_id or self._current_room
        if room_id is None:
            return ()
        return self._ctx.timeline.view(room_id)

    # -- sending -----------------------------------------------------------

    async def send(self, room_id: str, content: str) -> str:
        """Authorize and enqueue a message. Returns its id once it is pending.

        Raises EmptyContentError, NoRoomError or AccessDeniedError. Submission
        failures are not raised: they show up as a ``failed`` message.
        """
        if not content or not content.strip():
            raise EmptyContentError()
        policy = self._ctx.registry.get(room_id)
        if policy is None:
            raise NoRoomError(room_id)

        identity = self._ctx.wallet.identity
        if not identity.connected:
            raise AccessDeniedError(Decision.DENY_NO_WALLET, room_id)
        decision = await self._ctx.gate.can_access(policy, identity)
        if not decision.admitted:
            raise AccessDeniedError(decision, room_id)

        # the wallet may have changed while the balance query was out
        current = self._ctx.wallet.identity
        if not current.connected:
            raise AccessDeniedError(Decision.DENY_NO_WALLET, room_id)
        if current.address != identity.address:
            raise AccessDeniedError(Decision.DENY_UNKNOWN, room_id)

        message_id = generate_message_id()
        while message_id in self._ctx.timeline:
            message_id = generate_message_id()
        message = self._ctx.timeline.append(Message(
            id=message_id,
            room_id=room_id,
            sender=identity.address,  # type: ignore[arg-type]
            content=content,
            created_at=utcnow(),
            token_gated=policy.is_token_gated,
        ))
        self._emit(APPENDED, message)

        task = asyncio.get_running_loop().create_task(self._submit(message))
        self._inflight[message_id] = task
        task.add_done_callback(lambda _t: self._inflight.pop(message_id, None))
        logger.debug("Message %s pending in %s", message_id, room_id)
        return message_id

    async def _submit(self, message: Message) -> None:
        try:
            receipt = await self._ctx.submitter.submit(message.room_id, message.content, message.sender)
        except asyncio.CancelledError:
            self.on_submission_result(message.id, Failed(reason="cancelled"))
            raise
        except Exception as e:
            self.on_submission_result(message.id, e)
            return
        self.on_submission_result(message.id, receipt)

    def on_submission_result(self, message_id: str, result: Union[SubmissionResult, Failed, Confirmed]) -> Message:
        """Reconcile a sent message with the outcome of its submission.

        Only the first result for a message is applied; later callbacks for
        the same message are ignored.
        """
        if message_id in self._settled:
            logger.warning("Ignoring duplicate submission result for %s", message_id)
            return self._ctx.timeline.get(message_id)  # type: ignore[return-value]

        outcome = _to_outcome(result)
        try:
            message = self._ctx.timeline.reconcile(message_id, outcome)
        except InvariantViolation as e:
            logger.error("Cannot reconcile %s: %s", message_id, e)
            raise
        self._settled.add(message_id)

        if message.state == MessageState.CONFIRMED:
            if message.tx_ref:
                self._tx_refs[message.tx_ref] = message_id
            logger.info("Message %s confirmed (%s)", message_id, message.tx_ref)
            self._emit(CONFIRMED, message)
        else:
            logger.info("Message %s failed: %s", message_id, message.failure_reason)
            self._emit(FAILED, message)
        return message

    # -- remote updates ----------------------------------------------------

    def ingest_remote(self, event: MessageSentEvent) -> Optional[Message]:
        """Add a message seen on chain. Returns None for echoes and duplicates.

        An echo of a still pending message confirms it with the on-chain
        tx_ref and timestamp; its own receipt is then ignored.
        """
        if event.tx_ref in self._tx_refs or event.message_id in self._ctx.timeline:
            return None
        policy = self._ctx.registry.get(event.room_id)
        if policy is None:
            logger.debug("Dropping message for unknown room %s", event.room_id)
            return None
        for pending in self._ctx.timeline.pending(event.room_id):
            if pending.sender == event.sender and pending.content == event.content:
                # our own message landed before its receipt came back
                self.on_submission_result(pending.id, Confirmed(
                    confirmed_at=_event_time(event),
                    tx_ref=event.tx_ref,
                ))
                return None

        message = self._ctx.timeline.append(Message(
            id=event.message_id,
            room_id=event.room_id,
            sender=event.sender,
            content=event.content,
            created_at=_event_time(event),
            state=MessageState.CONFIRMED,
            token_gated=policy.is_token_gated,
            tx_ref=event.tx_ref,
            remote=True,
        ))
        self._tx_refs[event.tx_ref] = message.id
        self._emit(APPENDED, message)
        return message

    # -- lifecycle ---------------------------------------------------------

    async def wait_settled(self) -> None:
        """Wait until every submission under way has been reconciled."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight.values()), return_exceptions=True)

    async def close(self) -> None:
        await self.wait_settled()
        self._unsubscribe_wallet()

    def _emit(self, kind: str, message: Message) -> None:
        for handler in list(self._handlers):
            try:
                handler(kind, message)
            except Exception:
                logger.exception("Timeline handler failed")


def _event_time(event: MessageSentEvent) -> datetime:
    return datetime.fromtimestamp(event.timestamp, tz=timezone.utc)


def _to_outcome(result: Any) -> Union[Confirmed, Failed]:
    if isinstance(result, (Confirmed, Failed)):
        return result
    if isinstance(result, SubmitReceipt):
        return Confirmed(confirmed_at=result.confirmed_at, tx_ref=result.tx_ref)
    if isinstance(result, BaseException):
        return Failed(reason=str(result) or type(result).__name__)
    raise TypeError(f"Unsupported submission result: {result!r}")
