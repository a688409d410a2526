from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from receptionist.services.state_machine import BookingStatus


class ConversationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    customer_id: UUID
    channel: str
    status: str
    message_count: int
    created_at: datetime
    last_message_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None


class MessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    role: str
    content: str
    position: int
    message_metadata: Optional[dict[str, Any]] = None
    created_at: datetime


class BookingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    customer_id: Optional[UUID] = None
    conversation_id: Optional[UUID] = None
    customer_name: Optional[str] = None
    service: Optional[str] = None
    requested_time: Optional[str] = None
    status: str
    notes: Optional[str] = None
    created_at: datetime


class BookingStatusUpdate(BaseModel):
    status: BookingStatus
    notes: Optional[str] = None


class SetWebhookRequest(BaseModel):
    publicUrl: Optional[str] = None
