from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, Field, ValidationError

from receptionist.schemas.meta import WhatsAppWebhook
from receptionist.services.channels.base import Channel, InboundMessage
from receptionist.services.channels.meta import GraphChannelAdapter
from receptionist.services.result import Result


class WhatsAppCredentials(BaseModel):
    access_token: str = Field(validation_alias=AliasChoices("access_token", "accessToken"), min_length=1)
    phone_number_id: str = Field(
        validation_alias=AliasChoices("phone_number_id", "phoneNumberId"),
        min_length=1,
    )
    verify_token: str = Field(validation_alias=AliasChoices("verify_token", "verifyToken"), min_length=1)
    app_secret: Optional[str] = Field(default=None, validation_alias=AliasChoices("app_secret", "appSecret"))


class WhatsAppAdapter(GraphChannelAdapter):
    """WhatsApp Cloud API."""

    channel = Channel.WHATSAPP
    credentials_model = WhatsAppCredentials

    def extract_batch(self, payload: Any) -> list[InboundMessage]:
        if not isinstance(payload, dict):
            return []
        try:
            webhook = WhatsAppWebhook.model_validate(payload)
        except ValidationError:
            return []

        messages = []
        for entry in webhook.entry:
            for change in entry.changes:
                value = change.value
                names = {
                    contact.wa_id: contact.profile.name
                    for contact in value.contacts
                    if contact.wa_id and contact.profile and contact.profile.name
                }
                # statuses[] (sent / delivered / read) carry no customer text
                for message in value.messages:
                    if message.type not in (None, "text") or not message.text or not message.from_number:
                        continue
                    text = message.text.body.strip()
                    if not text:
                        continue
                    messages.append(
                        InboundMessage(
                            external_id=message.from_number,
                            text=text,
                            message_id=message.id,
                            display_name=names.get(message.from_number),
                        )
                    )
        return messages

    async def send_outbound(self, credentials: WhatsAppCredentials, external_id: str, text: str) -> Result[dict]:
        payload = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": external_id,
            "type": "text",
            "text": {"body": text},
        }
        return await self._post_graph(f"{credentials.phone_number_id}/messages", payload, credentials.access_token)
