import asyncio
import logging

import pytest

from token_chat.errors import AccessDeniedError, EmptyContentError, NoRoomError, NotFoundError, SubmitError
from token_chat.gate import AccessGate, Decision
from token_chat.models.message import Failed, MessageSentEvent, MessageState
from token_chat.models.wallet import ConnectorResult
from token_chat.session import SessionContext, SessionCoordinator

from conftest import ALICE, BOB, ts


async def flush() -> None:
    for _ in range(3):
        await asyncio.sleep(0)


async def connect(session, address=ALICE):
    return await session.connect(ConnectorResult(address=address, provider_name="test"))


class TestSendValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", ["", "   ", "\n\t"])
    async def test_empty_content(self, session, content):
        await connect(session)
        with pytest.raises(EmptyContentError):
            await session.send("general", content)
        assert len(session.timeline) == 0

    @pytest.mark.asyncio
    async def test_unknown_room(self, session):
        await connect(session)
        with pytest.raises(NoRoomError):
            await session.send("lobby", "hi")

    @pytest.mark.asyncio
    async def test_open_room_still_needs_wallet(self, session, submitter):
        with pytest.raises(AccessDeniedError) as exc_info:
            await session.send("general", "hi")
        assert exc_info.value.decision == Decision.DENY_NO_WALLET
        assert session.timeline.view("general") == ()
        assert submitter.calls == []

    @pytest.mark.asyncio
    async def test_insufficient_balance(self, session, submitter):
        # 50 tokens held, 100 required
        await connect(session, BOB)
        with pytest.raises(AccessDeniedError) as exc_info:
            await session.send("hodlers", "gm")
        assert exc_info.value.decision == Decision.DENY_INSUFFICIENT_BALANCE
        assert session.timeline.view("hodlers") == ()

    @pytest.mark.asyncio
    async def test_oracle_unavailable(self, session, oracle, submitter):
        await connect(session)
        oracle.available = False
        with pytest.raises(AccessDeniedError) as exc_info:
            await session.send("hodlers", "gm")
        assert exc_info.value.decision == Decision.DENY_UNKNOWN
        # open rooms never consult the oracle
        assert await session.send("general", "still here")
        await flush()
        submitter.confirm(0)
        await session.wait_settled()


class TestSendLifecycle:
    @pytest.mark.asyncio
    async def test_pending_then_confirmed(self, session, submitter):
        await connect(session)
        message_id = await session.send("hodlers", "gm holders")

        (pending,) = session.timeline.view("hodlers")
        assert pending.id == message_id
        assert pending.state == MessageState.PENDING
        assert pending.sender == ALICE.lower()
        assert pending.token_gated

        await flush()
        assert submitter.calls == [("hodlers", "gm holders", ALICE.lower())]
        assert session.in_flight == 1

        submitter.confirm(0, confirmed_at=ts(100), tx_ref="0xfeed")
        await session.wait_settled()
        confirmed = session.timeline.get(message_id)
        assert confirmed.state == MessageState.CONFIRMED
        assert confirmed.tx_ref == "0xfeed"
        assert confirmed.created_at == ts(100)
        assert session.in_flight == 0

    @pytest.mark.asyncio
    async def test_failed_submission(self, session, submitter):
        await connect(session)
        message_id = await session.send("general", "hi")
        await flush()
        submitter.fail(0, "execution reverted")
        await session.wait_settled()
        failed = session.timeline.get(message_id)
        assert failed.state == MessageState.FAILED
        assert failed.failure_reason == "execution reverted"
        assert not failed.token_gated

    @pytest.mark.asyncio
    async def test_duplicate_callback_is_ignored(self, session, submitter, caplog):
        await connect(session)
        message_id = await session.send("general", "hi")
        await flush()
        submitter.fail(0, "reverted")
        await session.wait_settled()

        again = session.on_submission_result(message_id, SubmitError("reverted"))
        assert again.state == MessageState.FAILED
        with caplog.at_level(logging.WARNING, logger="token_chat.session"):
            late = session.on_submission_result(message_id, Failed(reason="other"))
        assert late.state == MessageState.FAILED
        assert late.failure_reason == "reverted"
        assert "duplicate" in caplog.text

    @pytest.mark.asyncio
    async def test_result_for_unknown_message(self, session):
        with pytest.raises(NotFoundError):
            session.on_submission_result("ghost", Failed(reason="?"))

    @pytest.mark.asyncio
    async def test_retry_creates_new_message(self, session, submitter):
        await connect(session)
        first = await session.send("general", "hi")
        await flush()
        submitter.fail(0)
        await session.wait_settled()
        second = await session.send("general", "hi")
        assert second != first
        assert [m.state for m in session.view("general")] == [MessageState.FAILED, MessageState.PENDING]
        await flush()
        submitter.confirm(1)
        await session.wait_settled()

    @pytest.mark.asyncio
    async def test_confirmations_out_of_order(self, session, submitter):
        await connect(session)
        a = await session.send("general", "first")
        b = await session.send("general", "second")
        c = await session.send("general", "third")
        await flush()
        assert [m.id for m in session.view("general")] == [a, b, c]

        submitter.confirm(2, confirmed_at=ts(10))
        submitter.fail(1)
        submitter.confirm(0, confirmed_at=ts(11))
        await session.wait_settled()

        view = session.view("general")
        # b keeps its local enqueue time, which is later than both chain timestamps
        assert [m.id for m in view] == [c, a, b]
        states = {m.id: m.state for m in view}
        assert states == {a: MessageState.CONFIRMED, b: MessageState.FAILED, c: MessageState.CONFIRMED}

    @pytest.mark.asyncio
    async def test_disconnect_does_not_cancel_pending(self, session, submitter):
        await connect(session)
        message_id = await session.send("general", "bye")
        await flush()
        session.disconnect()

        with pytest.raises(AccessDeniedError) as exc_info:
            await session.send("general", "after disconnect")
        assert exc_info.value.decision == Decision.DENY_NO_WALLET

        submitter.confirm(0)
        await session.wait_settled()
        assert session.timeline.get(message_id).state == MessageState.CONFIRMED

    @pytest.mark.asyncio
    async def test_wallet_disconnected_during_authorization(self, registry, submitter):
        release = asyncio.Event()

        class SlowOracle:
            async def balance_of(self, address, token):
                await release.wait()
                return 10 ** 30

        session = SessionCoordinator(SessionContext(registry=registry, gate=AccessGate(SlowOracle()), submitter=submitter))
        await connect(session)
        sending = asyncio.ensure_future(session.send("hodlers", "gm"))
        await flush()
        session.disconnect()
        release.set()
        with pytest.raises(AccessDeniedError) as exc_info:
            await sending
        assert exc_info.value.decision == Decision.DENY_NO_WALLET
        assert session.timeline.view("hodlers") == ()

    @pytest.mark.asyncio
    async def test_account_switched_during_authorization(self, registry, submitter):
        release = asyncio.Event()

        class SlowOracle:
            async def balance_of(self, address, token):
                await release.wait()
                return 10 ** 30

        session = SessionCoordinator(SessionContext(registry=registry, gate=AccessGate(SlowOracle()), submitter=submitter))
        await connect(session)
        sending = asyncio.ensure_future(session.send("hodlers", "gm"))
        await flush()
        await connect(session, BOB)
        release.set()
        with pytest.raises(AccessDeniedError) as exc_info:
            await sending
        assert exc_info.value.decision == Decision.DENY_UNKNOWN
        assert session.timeline.view("hodlers") == ()
        assert submitter.calls == []

    @pytest.mark.asyncio
    async def test_cancelled_submission_fails_message(self, session, submitter):
        await connect(session)
        message_id = await session.send("general", "gm")
        await flush()
        task = session._inflight[message_id]
        task.cancel()
        await session.wait_settled()
        assert task.cancelled()
        message = session.timeline.get(message_id)
        assert message.state == MessageState.FAILED
        assert message.failure_reason == "cancelled"


class TestRooms:
    @pytest.mark.asyncio
    async def test_select_room(self, session):
        assert await session.select_room("general") == Decision.ADMIT
        assert session.current_room == "general"
        assert await session.select_room("hodlers") == Decision.DENY_NO_WALLET
        assert session.current_room == "general"

        await connect(session)
        assert await session.select_room("hodlers") == Decision.ADMIT
        assert session.current_room == "hodlers"

    @pytest.mark.asyncio
    async def test_select_unknown_room(self, session):
        with pytest.raises(NoRoomError):
            await session.select_room("lobby")

    @pytest.mark.asyncio
    async def test_view_defaults_to_current_room(self, session, submitter):
        assert session.view() == ()
        await connect(session)
        await session.select_room("general")
        message_id = await session.send("general", "hi")
        assert [m.id for m in session.view()] == [message_id]
        await flush()
        submitter.confirm(0)
        await session.close()

    @pytest.mark.asyncio
    async def test_room_decisions(self, session):
        await connect(session, BOB)
        decisions = await session.room_decisions()
        assert decisions["general"] == Decision.ADMIT
        assert decisions["hodlers"] == Decision.DENY_INSUFFICIENT_BALANCE


class TestNotifications:
    @pytest.mark.asyncio
    async def test_events(self, session, submitter):
        events = []
        remove = session.subscribe(lambda kind, m: events.append((kind, m.id)))
        await connect(session)
        a = await session.send("general", "one")
        b = await session.send("general", "two")
        await flush()
        submitter.confirm(0)
        submitter.fail(1)
        await session.wait_settled()
        assert events[:2] == [("appended", a), ("appended", b)]
        assert sorted(events[2:]) == sorted([("confirmed", a), ("failed", b)])
        remove()
        await session.send("general", "three")
        assert len(events) == 4
        await flush()
        submitter.confirm(2)
        await session.wait_settled()


def remote_event(**overrides) -> MessageSentEvent:
    data = {"roomId": "general", "sender": BOB, "content": "gm from chain",
            "timestamp": 1_700_000_050, "txHash": "0xremote", "logIndex": 0}
    data.update(overrides)
    return MessageSentEvent.model_validate(data)


class TestRemoteMessages:
    @pytest.mark.asyncio
    async def test_ingest(self, session):
        message = session.ingest_remote(remote_event())
        assert message.remote
        assert message.state == MessageState.CONFIRMED
        assert message.created_at == ts(50)
        assert session.timeline.view("general") == (message,)

    @pytest.mark.asyncio
    async def test_duplicate_and_unknown_room(self, session):
        assert session.ingest_remote(remote_event()) is not None
        assert session.ingest_remote(remote_event()) is None
        assert session.ingest_remote(remote_event(roomId="lobby", txHash="0xother")) is None
        assert len(session.timeline) == 1

    @pytest.mark.asyncio
    async def test_echo_after_confirmation(self, session, submitter):
        await connect(session)
        await session.send("general", "mine")
        await flush()
        submitter.confirm(0, tx_ref="0xmine")
        await session.wait_settled()
        echo = remote_event(sender=ALICE, content="mine", txHash="0xmine")
        assert session.ingest_remote(echo) is None
        assert len(session.timeline.view("general")) == 1

    @pytest.mark.asyncio
    async def test_echo_before_confirmation(self, session, submitter):
        await connect(session)
        await session.send("general", "mine")
        echo = remote_event(sender=ALICE, content="mine", txHash="0xmine")
        assert session.ingest_remote(echo) is None
        await flush()
        submitter.confirm(0, tx_ref="0xmine")
        await session.wait_settled()
        assert len(session.timeline.view("general")) == 1

    @pytest.mark.asyncio
    async def test_echo_confirms_pending_when_receipt_is_lost(self, session, submitter, caplog):
        await connect(session)
        message_id = await session.send("general", "gm")
        await flush()
        echo = remote_event(sender=ALICE, content="gm", txHash="0xlanded")
        assert session.ingest_remote(echo) is None

        message = session.timeline.get(message_id)
        assert message.state == MessageState.CONFIRMED
        assert message.tx_ref == "0xlanded"
        assert message.created_at == ts(50)

        with caplog.at_level(logging.WARNING, logger="token_chat.session"):
            submitter.fail(0, "timeout")
            await session.wait_settled()
        assert "Ignoring duplicate submission result" in caplog.text
        assert [(m.id, m.state) for m in session.view("general")] == [(message_id, MessageState.CONFIRMED)]
        assert session.ingest_remote(echo) is None
        assert len(session.timeline) == 1

    @pytest.mark.asyncio
    async def test_interleaves_with_local(self, session, submitter):
        await connect(session)
        local = await session.send("general", "local")
        await flush()
        submitter.confirm(0, confirmed_at=ts(60))
        await session.wait_settled()
        remote = session.ingest_remote(remote_event())
        assert [m.id for m in session.view("general")] == [remote.id, local]
