from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, Field, ValidationError

from receptionist.schemas.meta import MessengerWebhook
from receptionist.services.channels.base import Channel, InboundMessage
from receptionist.services.channels.meta import GraphChannelAdapter
from receptionist.services.result import Result


class MessengerCredentials(BaseModel):
    page_access_token: str = Field(
        validation_alias=AliasChoices("page_access_token", "pageAccessToken", "accessToken", "access_token"),
        min_length=1,
    )
    verify_token: str = Field(validation_alias=AliasChoices("verify_token", "verifyToken"), min_length=1)
    app_secret: Optional[str] = Field(default=None, validation_alias=AliasChoices("app_secret", "appSecret"))


class MessengerAdapter(GraphChannelAdapter):
    """Facebook Messenger page inbox."""

    channel = Channel.FACEBOOK
    credentials_model = MessengerCredentials
    webhook_object = "page"

    def extract_batch(self, payload: Any) -> list[InboundMessage]:
        if not isinstance(payload, dict):
            return []
        try:
            webhook = MessengerWebhook.model_validate(payload)
        except ValidationError:
            return []
        if webhook.object and webhook.object != self.webhook_object:
            return []

        messages = []
        for entry in webhook.entry:
            for event in entry.messaging:
                # delivery / read / postback events have no message
                message = event.message
                if not message or message.is_echo or not message.text or not event.sender:
                    continue
                text = message.text.strip()
                if not text:
                    continue
                messages.append(
                    InboundMessage(
                        external_id=event.sender.id,
                        text=text,
                        message_id=message.mid,
                        metadata={"page_id": event.recipient.id} if event.recipient else {},
                    )
                )
        return messages

    async def send_outbound(self, credentials: MessengerCredentials, external_id: str, text: str) -> Result[dict]:
        payload = {
            "recipient": {"id": external_id},
            "messaging_type": "RESPONSE",
            "message": {"text": text},
        }
        return await self._post_graph("me/messages", payload, credentials.page_access_token, token_in_query=True)
