from typing import Any

from pydantic import BaseModel, ValidationError

from receptionist.schemas.webhook import WebsiteMessage
from receptionist.services.channels.base import Channel, ChannelAdapter, InboundMessage, InboundRequest
from receptionist.services.result import Result


class WebsiteCredentials(BaseModel):
    pass


class WebsiteAdapter(ChannelAdapter):
    """Embedded chat widget. Replies travel back in the widget's own HTTP response."""

    channel = Channel.WEBSITE
    credentials_model = WebsiteCredentials
    requires_config = False

    def verify(self, credentials: BaseModel, request: InboundRequest) -> bool:
        return True

    def extract_batch(self, payload: Any) -> list[InboundMessage]:
        if not isinstance(payload, dict):
            return []
        try:
            message = WebsiteMessage.model_validate(payload)
        except ValidationError:
            return []
        text = message.message.strip()
        if not text:
            return []
        return [
            InboundMessage(
                external_id=message.visitor_id,
                text=text,
                message_id=message.message_id,
                display_name=message.name,
            )
        ]

    async def send_outbound(self, credentials: BaseModel, external_id: str, text: str) -> Result[dict]:
        return Result.success({"delivered_via": "response"})
