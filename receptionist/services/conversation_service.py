from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from receptionist.logging_config import get_logger
from receptionist.models import Conversation, Customer
from receptionist.services.errors import ConversationNotFoundError
from receptionist.services.state_machine import ConversationStatus, close

logger = get_logger("conversation_service")


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _placeholder_name(channel: str, external_id: str) -> str:
    return f"{channel.capitalize()} {external_id}"


def _find_customer(db: Session, tenant_id: str, channel: str, external_id: str) -> Optional[Customer]:
    return (
        db.query(Customer)
        .filter(Customer.tenant_id == tenant_id, Customer.channel == channel, Customer.external_id == external_id)
        .first()
    )


def resolve_customer(
    db: Session,
    tenant_id: str,
    channel: str,
    external_id: str,
    display_name: Optional[str] = None,
) -> Customer:
    """Find customer by (tenant, channel, external handle) or create one.

    Creation is committed right away so a concurrent creator loses on the unique
    constraint and re-reads the winner's row.
    """
    now = datetime.now(timezone.utc)
    customer = _find_customer(db, tenant_id, channel, external_id)

    if not customer:
        customer = Customer(
            tenant_id=tenant_id,
            channel=channel,
            external_id=external_id,
            name=display_name or _placeholder_name(channel, external_id),
            customer_metadata={"identifier": external_id},
            created_at=now,
            last_seen_at=now,
        )
        db.add(customer)
        try:
            db.commit()
            logger.info(
                "Customer created",
                extra={"context": {"tenant_id": tenant_id, "channel": channel, "customer_id": str(customer.id)}},
            )
            return customer
        except IntegrityError:
            db.rollback()
            customer = _find_customer(db, tenant_id, channel, external_id)
            if not customer:
                raise

    customer.last_seen_at = now
    if display_name and (not customer.name or customer.name == _placeholder_name(channel, external_id)):
        customer.name = display_name
    db.commit()
    return customer


def _find_active_conversation(db: Session, tenant_id: str, customer_id: UUID, channel: str) -> Optional[Conversation]:
    return (
        db.query(Conversation)
        .filter(
            Conversation.tenant_id == tenant_id,
            Conversation.customer_id == customer_id,
            Conversation.channel == channel,
            Conversation.status == ConversationStatus.ACTIVE.value,
        )
        .first()
    )


def _is_idle(conversation: Conversation, idle_timeout_minutes: Optional[int], now: datetime) -> bool:
    if not idle_timeout_minutes:
        return False
    last_activity = _as_utc(conversation.last_message_at or conversation.created_at)
    return now - last_activity > timedelta(minutes=idle_timeout_minutes)


def get_or_open_conversation(
    db: Session,
    tenant_id: str,
    customer_id: UUID,
    channel: str,
    idle_timeout_minutes: Optional[int] = None,
) -> Conversation:
    """Return the active conversation for this identity, opening one if needed.

    An active conversation idle for longer than idle_timeout_minutes is closed
    first and a fresh one is opened.
    """
    now = datetime.now(timezone.utc)
    conversation = _find_active_conversation(db, tenant_id, customer_id, channel)

    if conversation and _is_idle(conversation, idle_timeout_minutes, now):
        logger.info(
            "Closing idle conversation",
            extra={"context": {"tenant_id": tenant_id, "conversation_id": str(conversation.id)}},
        )
        close_conversation(db, conversation)
        conversation = None

    if conversation:
        return conversation

    conversation = Conversation(
        tenant_id=tenant_id,
        customer_id=customer_id,
        channel=channel,
        status=ConversationStatus.ACTIVE.value,
        message_count=0,
        created_at=now,
        last_message_at=now,
    )
    db.add(conversation)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        conversation = _find_active_conversation(db, tenant_id, customer_id, channel)
        if not conversation:
            raise
    return conversation


def get_conversation(db: Session, tenant_id: str, conversation_id: UUID) -> Conversation:
    conversation = (
        db.query(Conversation)
        .filter(Conversation.tenant_id == tenant_id, Conversation.id == conversation_id)
        .first()
    )
    if not conversation:
        raise ConversationNotFoundError(conversation_id)
    return conversation


def list_conversations(db: Session, tenant_id: str, status: Optional[str] = None) -> list[Conversation]:
    query = db.query(Conversation).filter(Conversation.tenant_id == tenant_id)
    if status:
        query = query.filter(Conversation.status == status)
    return query.order_by(Conversation.last_message_at.desc()).all()


def close_conversation(db: Session, conversation: Conversation) -> Conversation:
    """Close an active conversation. Raises InvalidTransitionError if already closed."""
    new_status = close(ConversationStatus(conversation.status))
    conversation.status = new_status.value
    conversation.closed_at = datetime.now(timezone.utc)
    db.commit()
    return conversation
