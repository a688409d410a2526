"""Inbound pipeline: one customer message from dedup to live dashboard update.

Stages run in order; each is attempted, logged on failure, and the pipeline
either stops (nothing left to do safely) or continues to the next stage.

Database stages are synchronous functions run in the threadpool, each in its
own short session. Stages touching the same chat identity are serialized by an
in-process lock; unique constraints cover writers in other processes.
"""

import asyncio
import weakref
from dataclasses import dataclass, field
from typing import Any, Callable, Optional
from uuid import UUID

from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel
from sqlalchemy.orm import Session, sessionmaker

from receptionist.logging_config import LoggerAdapter, get_logger
from receptionist.models import Conversation, Customer
from receptionist.services import booking_service, conversation_service, message_service, tenant_service
from receptionist.services.alert_service import Alerter
from receptionist.services.channels.base import Channel, ChannelAdapter, InboundMessage
from receptionist.services.completion_service import CompletionGateway, CompletionResult, booking_action_prompt
from receptionist.services.dedup_service import Deduplicator
from receptionist.services.live_notifier import LiveNotifier, booking_new, conversation_update
from receptionist.services.message_service import MessageRole
from receptionist.services.tenant_service import AiContext

logger = get_logger("pipeline")


@dataclass
class PipelineOutcome:
    conversation_id: Optional[UUID] = None
    reply_text: Optional[str] = None
    send_ok: bool = False
    booking_id: Optional[UUID] = None
    duplicate: bool = False


@dataclass
class RecordedInbound:
    conversation_id: UUID
    customer_id: UUID
    customer_name: Optional[str]
    ai_context: AiContext
    history: list[dict] = field(default_factory=list)


@dataclass
class BookingRecipient:
    """Everything needed to message the customer behind a booking."""

    conversation_id: UUID
    customer_id: UUID
    channel: str
    external_id: str
    config: dict
    service: Optional[str]
    requested_time: Optional[str]
    ai_context: AiContext
    history: list[dict] = field(default_factory=list)


def _history_turns(db: Session, conversation_id: UUID) -> list[dict]:
    return [{"role": m.role, "content": m.content} for m in message_service.get_history(db, conversation_id)]


class InboundPipeline:
    def __init__(
        self,
        session_factory: sessionmaker,
        gateway: CompletionGateway,
        notifier: LiveNotifier,
        deduplicator: Optional[Deduplicator] = None,
        idle_timeout_minutes: Optional[int] = None,
        alerter: Optional[Alerter] = None,
        adapters: Optional[dict[Channel, ChannelAdapter]] = None,
    ):
        self.session_factory = session_factory
        self.gateway = gateway
        self.notifier = notifier
        self.deduplicator = deduplicator
        self.idle_timeout_minutes = idle_timeout_minutes
        self.alerter = alerter or Alerter()
        self.adapters = adapters or {}
        self._identity_locks: "weakref.WeakValueDictionary[tuple, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _identity_lock(self, tenant_id: str, channel: str, external_id: str) -> asyncio.Lock:
        key = (tenant_id, channel, external_id)
        lock = self._identity_locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._identity_locks[key] = lock
        return lock

    def _in_session(self, work: Callable[..., Any], *args) -> Any:
        db = self.session_factory()
        try:
            return work(db, *args)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    async def _db_stage(self, lock: asyncio.Lock, work: Callable[..., Any], *args) -> Any:
        async with lock:
            return await run_in_threadpool(self._in_session, work, *args)

    async def process_delivery(
        self,
        tenant_id: str,
        adapter: ChannelAdapter,
        credentials: BaseModel,
        payload: Any,
    ) -> list[PipelineOutcome]:
        """Run every message of a delivery. Never raises; used as a background task."""
        outcomes = []
        try:
            messages = adapter.extract_batch(payload)
        except Exception as e:
            logger.error(f"Inbound extraction failed: {e}", exc_info=True)
            return outcomes

        if not messages:
            logger.debug("Delivery carried no customer text", extra={"context": {"channel": adapter.channel.value}})
            return outcomes

        for inbound in messages:
            try:
                outcomes.append(await self.run(tenant_id, adapter, credentials, inbound))
            except Exception as e:
                logger.error(
                    f"Pipeline failed: {e}",
                    extra={"context": {"tenant_id": tenant_id, "channel": adapter.channel.value}},
                    exc_info=True,
                )
        return outcomes

    def _record_inbound(self, db: Session, tenant_id: str, channel: str, inbound: InboundMessage) -> RecordedInbound:
        ai_context = tenant_service.get_ai_context(db, tenant_id)
        customer = conversation_service.resolve_customer(db, tenant_id, channel, inbound.external_id, inbound.display_name)
        conversation = conversation_service.get_or_open_conversation(
            db, tenant_id, customer.id, channel, idle_timeout_minutes=self.idle_timeout_minutes
        )
        metadata = dict(inbound.metadata)
        if inbound.message_id:
            metadata["provider_message_id"] = inbound.message_id
        message_service.append_message(db, conversation, MessageRole.CUSTOMER.value, inbound.text, metadata)
        return RecordedInbound(
            conversation_id=conversation.id,
            customer_id=customer.id,
            customer_name=customer.name,
            ai_context=ai_context,
            history=_history_turns(db, conversation.id),
        )

    def _record_reply(self, db: Session, conversation_id: UUID, text: str, metadata: dict) -> None:
        message_service.append_message(db, db.get(Conversation, conversation_id), MessageRole.AI.value, text, metadata)

    def _create_booking(self, db: Session, tenant_id: str, recorded: RecordedInbound, data: dict) -> UUID:
        booking = booking_service.create_pending_booking(
            db, tenant_id, recorded.customer_id, recorded.conversation_id, data, fallback_name=recorded.customer_name
        )
        return booking.id

    async def run(
        self,
        tenant_id: str,
        adapter: ChannelAdapter,
        credentials: BaseModel,
        inbound: InboundMessage,
    ) -> PipelineOutcome:
        channel = adapter.channel.value
        log = LoggerAdapter(logger, {"tenant_id": tenant_id, "channel": channel, "external_id": inbound.external_id})
        outcome = PipelineOutcome()
        lock = self._identity_lock(tenant_id, channel, inbound.external_id)

        # 1. dedup
        if self.deduplicator and inbound.message_id:
            db = self.session_factory()
            try:
                async with lock:
                    if await self.deduplicator.is_duplicate(db, tenant_id, channel, inbound.message_id):
                        outcome.duplicate = True
                        return outcome
            except Exception as e:
                log.warning(f"Dedup check failed, processing anyway: {e}")
            finally:
                db.close()

        # 2. record inbound
        try:
            recorded: RecordedInbound = await self._db_stage(lock, self._record_inbound, tenant_id, channel, inbound)
        except Exception as e:
            log.error(f"Failed to record inbound message: {e}", exc_info=True)
            return outcome

        outcome.conversation_id = recorded.conversation_id
        log.info("Inbound recorded", context={"conversation_id": str(recorded.conversation_id)})

        # 3. complete
        completion: CompletionResult = await self.gateway.respond(recorded.ai_context, recorded.history, inbound.text)

        # 4. record reply
        reply_metadata = {"fallback": True} if completion.used_fallback else {}
        try:
            await self._db_stage(lock, self._record_reply, recorded.conversation_id, completion.text, reply_metadata)
        except Exception as e:
            log.error(f"Failed to record reply: {e}", exc_info=True)
            return outcome
        outcome.reply_text = completion.text

        # 5. booking side effect
        if completion.side_effect and completion.side_effect.kind == "booking":
            outcome.booking_id = await self._record_booking(tenant_id, recorded, completion.side_effect.data, log)

        # 6. send
        try:
            result = await adapter.send_outbound(credentials, inbound.external_id, completion.text)
            outcome.send_ok = result.ok
            if not result.ok:
                log.error("Outbound send failed", context={"error": result.error, "code": result.error_code})
                await self.alerter.warning(
                    "Outbound delivery failed",
                    {"tenant_id": tenant_id, "channel": channel, "error": result.error},
                )
        except Exception as e:
            log.error(f"Outbound send raised: {e}", exc_info=True)

        # 7. publish
        try:
            await self.notifier.publish(
                tenant_id, conversation_update(recorded.conversation_id, recorded.customer_id, channel)
            )
        except Exception as e:
            log.error(f"Live publish failed: {e}", exc_info=True)

        return outcome

    async def _record_booking(
        self,
        tenant_id: str,
        recorded: RecordedInbound,
        data: dict,
        log: LoggerAdapter,
    ) -> Optional[UUID]:
        try:
            booking_id = await run_in_threadpool(self._in_session, self._create_booking, tenant_id, recorded, data)
        except Exception as e:
            log.error(f"Failed to record booking request: {e}", exc_info=True)
            return None

        log.info("Booking request recorded", context={"booking_id": str(booking_id)})
        try:
            await self.notifier.publish(tenant_id, booking_new(booking_id, recorded.conversation_id))
        except Exception as e:
            log.error(f"Live publish failed: {e}", exc_info=True)
        return booking_id

    def _load_booking_recipient(self, db: Session, tenant_id: str, booking_id: UUID) -> Optional[BookingRecipient]:
        booking = booking_service.get_booking(db, tenant_id, booking_id)
        if not booking.conversation_id or not booking.customer_id:
            return None
        conversation = db.get(Conversation, booking.conversation_id)
        customer = db.get(Customer, booking.customer_id)
        if conversation is None or customer is None:
            return None
        channel_config = tenant_service.get_channel_config(db, tenant_id, customer.channel)
        return BookingRecipient(
            conversation_id=conversation.id,
            customer_id=customer.id,
            channel=customer.channel,
            external_id=customer.external_id,
            config=dict(channel_config.config or {}) if channel_config else {},
            service=booking.service,
            requested_time=booking.requested_time,
            ai_context=tenant_service.get_ai_context(db, tenant_id),
            history=_history_turns(db, conversation.id),
        )

    async def notify_booking_action(
        self,
        tenant_id: str,
        booking_id: UUID,
        status: str,
        comment: Optional[str] = None,
    ) -> bool:
        """Tell the customer about an owner decision on their booking.

        The reply is composed by the completion gateway and sent on the channel the
        booking came from; it is recorded only once the provider accepted it.
        Never raises; used as a background task.
        """
        log = LoggerAdapter(logger, {"tenant_id": tenant_id, "booking_id": str(booking_id), "status": status})
        try:
            recipient = await run_in_threadpool(self._in_session, self._load_booking_recipient, tenant_id, booking_id)
        except Exception as e:
            log.error(f"Failed to load booking recipient: {e}", exc_info=True)
            return False
        if recipient is None:
            log.info("Booking has no conversation to notify")
            return False

        adapter = next((a for key, a in self.adapters.items() if key.value == recipient.channel), None)
        credentials = adapter.parse_credentials(recipient.config) if adapter else None
        if credentials is None:
            log.warning("Booking notification skipped, channel not configured", context={"channel": recipient.channel})
            return False

        instruction = booking_action_prompt(status, recipient.service, recipient.requested_time, comment)
        completion = await self.gateway.respond(recipient.ai_context, recipient.history, instruction)

        try:
            result = await adapter.send_outbound(credentials, recipient.external_id, completion.text)
        except Exception as e:
            log.error(f"Booking notification send raised: {e}", exc_info=True)
            return False
        if not result.ok:
            log.error("Booking notification send failed", context={"error": result.error})
            await self.alerter.warning(
                "Booking notification failed",
                {"tenant_id": tenant_id, "channel": recipient.channel, "error": result.error},
            )
            return False

        metadata = {"action": "booking_notification", "ownerAction": status, "bookingId": str(booking_id)}
        lock = self._identity_lock(tenant_id, recipient.channel, recipient.external_id)
        try:
            await self._db_stage(lock, self._record_reply, recipient.conversation_id, completion.text, metadata)
        except Exception as e:
            log.error(f"Failed to record booking notification: {e}", exc_info=True)
            return False

        log.info("Customer notified of booking action")
        try:
            await self.notifier.publish(
                tenant_id, conversation_update(recipient.conversation_id, recipient.customer_id, recipient.channel)
            )
        except Exception as e:
            log.error(f"Live publish failed: {e}", exc_info=True)
        return True
