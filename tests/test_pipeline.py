import asyncio
import threading
import uuid
from unittest.mock import AsyncMock, patch

import pytest

from receptionist.models import Booking, Conversation, Customer, Message
from receptionist.services import conversation_service
from receptionist.services.booking_service import create_pending_booking
from receptionist.services.channels.base import Channel, InboundMessage
from receptionist.services.channels.telegram import TelegramAdapter, TelegramCredentials
from receptionist.services.completion_service import CompletionGateway
from receptionist.services.dedup_service import Deduplicator
from receptionist.services.live_notifier import LiveNotifier
from receptionist.services.pipeline import InboundPipeline
from receptionist.services.result import Result
from tests.factories import TELEGRAM_CONFIG, TENANT_ID, add_channel, make_tenant
from tests.fakes import FakeConnection, FakeProvider


class SlowFakeProvider(FakeProvider):
    async def generate(self, messages, model=None, temperature=0.7, max_tokens=1000):
        await asyncio.sleep(0.01)
        return await super().generate(messages, model, temperature, max_tokens)


@pytest.fixture
def adapter():
    adapter = TelegramAdapter()
    adapter.send_outbound = AsyncMock(return_value=Result.success({}))
    return adapter


@pytest.fixture
def credentials():
    return TelegramCredentials.model_validate(TELEGRAM_CONFIG)


@pytest.fixture
def pipeline(session_factory, db):
    make_tenant(db)
    notifier = LiveNotifier()
    gateway = CompletionGateway(SlowFakeProvider(), "fallback", timeout_seconds=1.0)
    return InboundPipeline(session_factory, gateway, notifier, Deduplicator(), idle_timeout_minutes=None)


class TestInboundPipeline:
    @pytest.mark.asyncio
    async def test_concurrent_deliveries_share_one_identity(self, pipeline, adapter, credentials, db):
        inbound = [InboundMessage(external_id="123", text=f"m{i}") for i in range(5)]

        outcomes = await asyncio.gather(*(pipeline.run(TENANT_ID, adapter, credentials, m) for m in inbound))

        assert db.query(Customer).count() == 1
        assert db.query(Conversation).filter(Conversation.status == "active").count() == 1
        assert len({outcome.conversation_id for outcome in outcomes}) == 1
        positions = [m.position for m in db.query(Message).order_by(Message.position).all()]
        assert positions == list(range(1, 11))

    @pytest.mark.asyncio
    async def test_concurrent_duplicates_processed_once(self, pipeline, adapter, credentials, db):
        inbound = InboundMessage(external_id="123", text="Hi", message_id="update-1")

        outcomes = await asyncio.gather(
            pipeline.run(TENANT_ID, adapter, credentials, inbound),
            pipeline.run(TENANT_ID, adapter, credentials, inbound),
        )

        assert sorted(outcome.duplicate for outcome in outcomes) == [False, True]
        assert db.query(Message).count() == 2
        adapter.send_outbound.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_outcome_reports_reply_and_send(self, pipeline, adapter, credentials):
        outcome = await pipeline.run(TENANT_ID, adapter, credentials, InboundMessage(external_id="123", text="Hi"))

        assert outcome.reply_text == "Hello! How can I help?"
        assert outcome.send_ok is True
        assert outcome.booking_id is None
        adapter.send_outbound.assert_awaited_once_with(credentials, "123", "Hello! How can I help?")

    @pytest.mark.asyncio
    async def test_send_exception_does_not_escape(self, pipeline, adapter, credentials, db):
        adapter.send_outbound = AsyncMock(side_effect=RuntimeError("boom"))

        outcome = await pipeline.run(TENANT_ID, adapter, credentials, InboundMessage(external_id="123", text="Hi"))

        assert outcome.send_ok is False
        assert db.query(Message).count() == 2

    @pytest.mark.asyncio
    async def test_booking_failure_does_not_stop_reply(self, pipeline, adapter, credentials, db):
        pipeline.gateway.provider = FakeProvider(reply='Noted.\n[[BOOKING {"service": "Nails"}]]')
        connection = FakeConnection()
        pipeline.notifier.subscribe(connection, TENANT_ID)

        with patch(
            "receptionist.services.booking_service.create_pending_booking",
            side_effect=RuntimeError("db down"),
        ):
            outcome = await pipeline.run(TENANT_ID, adapter, credentials, InboundMessage(external_id="1", text="x"))

        assert outcome.booking_id is None
        assert outcome.send_ok is True
        assert db.query(Booking).count() == 0
        assert [event["type"] for event in connection.sent] == ["conversation:update"]

    @pytest.mark.asyncio
    async def test_unknown_tenant_stops_after_logging(self, session_factory, adapter, credentials, db):
        pipeline = InboundPipeline(session_factory, CompletionGateway(FakeProvider(), "fallback"), LiveNotifier())

        outcome = await pipeline.run("nobody", adapter, credentials, InboundMessage(external_id="1", text="x"))

        assert outcome.reply_text is None
        adapter.send_outbound.assert_not_awaited()
        assert db.query(Customer).count() == 0

    @pytest.mark.asyncio
    async def test_process_delivery_ignores_unknown_payload(self, pipeline, adapter, credentials, db):
        assert await pipeline.process_delivery(TENANT_ID, adapter, credentials, {"edited_message": {}}) == []
        assert db.query(Message).count() == 0

    @pytest.mark.asyncio
    async def test_database_stage_leaves_event_loop_free(self, pipeline, adapter, credentials):
        entered = threading.Event()
        release = threading.Event()
        released_in_time = []
        resolve = conversation_service.resolve_customer

        def held_resolve(*args, **kwargs):
            entered.set()
            released_in_time.append(release.wait(timeout=2))
            return resolve(*args, **kwargs)

        heartbeats = 0
        with patch("receptionist.services.conversation_service.resolve_customer", side_effect=held_resolve):
            task = asyncio.create_task(
                pipeline.run(TENANT_ID, adapter, credentials, InboundMessage(external_id="123", text="Hi"))
            )
            while not entered.is_set():
                await asyncio.sleep(0.005)
            for _ in range(3):
                await asyncio.sleep(0)
                heartbeats += 1
            assert not task.done()
            release.set()
            outcome = await task

        assert heartbeats == 3
        assert released_in_time == [True]
        assert outcome.conversation_id is not None
        assert outcome.send_ok is True


class TestBookingNotification:
    @pytest.mark.asyncio
    async def test_booking_without_conversation_is_skipped(self, pipeline, adapter, db):
        booking = create_pending_booking(db, TENANT_ID, None, None, {"service": "Nails"})
        pipeline.adapters = {Channel.TELEGRAM: adapter}

        assert await pipeline.notify_booking_action(TENANT_ID, booking.id, "confirmed") is False
        adapter.send_outbound.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_booking_is_logged_not_raised(self, pipeline, adapter):
        pipeline.adapters = {Channel.TELEGRAM: adapter}

        assert await pipeline.notify_booking_action(TENANT_ID, uuid.uuid4(), "confirmed") is False
        adapter.send_outbound.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_send_failure_raises_operator_alert(self, pipeline, adapter, credentials, db):
        add_channel(db, TENANT_ID, "telegram", TELEGRAM_CONFIG)
        outcome = await pipeline.run(TENANT_ID, adapter, credentials, InboundMessage(external_id="123", text="Book"))
        conversation = db.get(Conversation, outcome.conversation_id)
        booking = create_pending_booking(db, TENANT_ID, conversation.customer_id, conversation.id, {"service": "Nails"})
        adapter.send_outbound = AsyncMock(return_value=Result.failure("chat not found", "400"))
        pipeline.adapters = {Channel.TELEGRAM: adapter}
        pipeline.alerter = AsyncMock()

        sent = await pipeline.notify_booking_action(TENANT_ID, booking.id, "reschedule_requested", "Closed Friday")

        assert sent is False
        pipeline.alerter.warning.assert_awaited_once()
        assert db.query(Message).count() == 2
