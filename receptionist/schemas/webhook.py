from typing import Any, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field


class WebhookAck(BaseModel):
    success: bool
    message: str


class WebsiteMessage(BaseModel):
    visitor_id: str = Field(validation_alias=AliasChoices("visitorId", "visitor_id"), min_length=1)
    message: str = Field(min_length=1)
    message_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("messageId", "message_id"))
    name: Optional[str] = None


class WebsiteChatResponse(BaseModel):
    conversationId: Optional[UUID] = None
    message: Optional[str] = None


class LiveEvent(BaseModel):
    type: str
    payload: dict[str, Any] = Field(default_factory=dict)

    def to_wire(self) -> dict[str, Any]:
        return {"type": self.type, **self.payload}
