from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from receptionist.logging_config import get_logger
from receptionist.models import Conversation, Customer, Message

logger = get_logger("message_service")

APPEND_ATTEMPTS = 3


class MessageRole(str, Enum):
    CUSTOMER = "customer"
    AI = "ai"
    AGENT = "agent"


def _next_position(db: Session, conversation_id: UUID) -> int:
    last_position = db.query(func.max(Message.position)).filter(Message.conversation_id == conversation_id).scalar()
    return (last_position or 0) + 1


def append_message(
    db: Session,
    conversation: Conversation,
    role: str,
    content: str,
    metadata: Optional[dict] = None,
) -> Message:
    """Save message and bump the conversation's activity in one transaction.

    A position taken by another writer surfaces as IntegrityError on
    uq_messages_conversation_position; the append is retried with a fresh position.
    """
    role = MessageRole(role).value
    conversation_id = conversation.id

    for attempt in range(1, APPEND_ATTEMPTS + 1):
        now = datetime.now(timezone.utc)
        # conversation may come from an earlier, already closed session
        row = db.get(Conversation, conversation_id)
        position = _next_position(db, conversation_id)

        message = Message(
            conversation_id=row.id,
            tenant_id=row.tenant_id,
            role=role,
            content=content,
            position=position,
            message_metadata=metadata or {},
            created_at=now,
        )
        db.add(message)
        row.message_count = position
        row.last_message_at = now
        try:
            db.commit()
            return message
        except IntegrityError:
            db.rollback()
            if attempt == APPEND_ATTEMPTS:
                raise
            logger.warning(
                "Message position taken, retrying",
                extra={"context": {"conversation_id": str(conversation_id), "position": position}},
            )


def get_history(db: Session, conversation_id: UUID) -> list[Message]:
    return db.query(Message).filter(Message.conversation_id == conversation_id).order_by(Message.position).all()


def find_reply_to(
    db: Session,
    tenant_id: str,
    channel: str,
    external_id: str,
    provider_message_id: str,
) -> tuple[Optional[UUID], Optional[Message]]:
    """Locate an already recorded inbound message by provider id and the AI reply that followed it.

    Returns (conversation_id, reply); both are None when the inbound message is unknown,
    and reply is None while the answer is still being produced.
    """
    customer = (
        db.query(Customer)
        .filter(Customer.tenant_id == tenant_id, Customer.channel == channel, Customer.external_id == external_id)
        .first()
    )
    if not customer:
        return None, None

    conversations = (
        db.query(Conversation)
        .filter(Conversation.customer_id == customer.id)
        .order_by(Conversation.created_at.desc())
        .all()
    )
    for conversation in conversations:
        inbound = [
            m
            for m in get_history(db, conversation.id)
            if m.role == MessageRole.CUSTOMER.value
            and (m.message_metadata or {}).get("provider_message_id") == provider_message_id
        ]
        if not inbound:
            continue
        reply = (
            db.query(Message)
            .filter(
                Message.conversation_id == conversation.id,
                Message.position > inbound[0].position,
                Message.role == MessageRole.AI.value,
            )
            .order_by(Message.position)
            .first()
        )
        return conversation.id, reply
    return None, None
