"""Payload models for Meta Graph webhooks (WhatsApp Cloud API, Messenger, Instagram)."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class WhatsAppText(BaseModel):
    body: str


class WhatsAppMessage(BaseModel):
    id: Optional[str] = None
    from_number: Optional[str] = Field(default=None, alias="from")
    timestamp: Optional[str] = None
    type: Optional[str] = None
    text: Optional[WhatsAppText] = None

    model_config = ConfigDict(populate_by_name=True)


class WhatsAppProfile(BaseModel):
    name: Optional[str] = None


class WhatsAppContact(BaseModel):
    wa_id: Optional[str] = None
    profile: Optional[WhatsAppProfile] = None


class WhatsAppValue(BaseModel):
    messaging_product: Optional[str] = None
    contacts: list[WhatsAppContact] = Field(default_factory=list)
    messages: list[WhatsAppMessage] = Field(default_factory=list)
    statuses: list[dict] = Field(default_factory=list)  # delivery / read receipts


class WhatsAppChange(BaseModel):
    field: Optional[str] = None
    value: WhatsAppValue = Field(default_factory=WhatsAppValue)


class WhatsAppEntry(BaseModel):
    id: Optional[str] = None
    changes: list[WhatsAppChange] = Field(default_factory=list)


class WhatsAppWebhook(BaseModel):
    object: Optional[str] = None
    entry: list[WhatsAppEntry] = Field(default_factory=list)


class MessengerParty(BaseModel):
    id: str


class MessengerMessage(BaseModel):
    mid: Optional[str] = None
    text: Optional[str] = None
    is_echo: bool = False


class MessengerEvent(BaseModel):
    sender: Optional[MessengerParty] = None
    recipient: Optional[MessengerParty] = None
    timestamp: Optional[int] = None
    message: Optional[MessengerMessage] = None


class MessengerEntry(BaseModel):
    id: Optional[str] = None
    time: Optional[int] = None
    messaging: list[MessengerEvent] = Field(default_factory=list)


class MessengerWebhook(BaseModel):
    """Shared envelope for Messenger (object="page") and Instagram (object="instagram")."""

    object: Optional[str] = None
    entry: list[MessengerEntry] = Field(default_factory=list)
