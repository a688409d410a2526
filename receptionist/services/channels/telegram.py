import hmac
from typing import Any, Optional

import httpx
from pydantic import AliasChoices, BaseModel, Field, ValidationError

from receptionist.logging_config import get_logger
from receptionist.schemas.telegram import TelegramUpdate
from receptionist.services.channels.base import Channel, ChannelAdapter, InboundMessage, InboundRequest
from receptionist.services.result import Result

logger = get_logger("channels.telegram")

SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"


class TelegramCredentials(BaseModel):
    bot_token: str = Field(validation_alias=AliasChoices("bot_token", "botToken"), min_length=1)
    webhook_secret: str = Field(
        validation_alias=AliasChoices("webhook_secret", "webhookSecret", "secret"),
        min_length=1,
    )


class TelegramAdapter(ChannelAdapter):
    """Telegram Bot API: secret-token header on inbound, sendMessage on outbound."""

    channel = Channel.TELEGRAM
    credentials_model = TelegramCredentials

    def __init__(self, api_base: str = "https://api.telegram.org", timeout: float = 15.0):
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout

    def verify(self, credentials: TelegramCredentials, request: InboundRequest) -> bool:
        provided = request.header(SECRET_HEADER)
        if not provided:
            return False
        return hmac.compare_digest(provided.encode("utf-8"), credentials.webhook_secret.encode("utf-8"))

    def extract_batch(self, payload: Any) -> list[InboundMessage]:
        if not isinstance(payload, dict):
            return []
        try:
            update = TelegramUpdate.model_validate(payload)
        except ValidationError:
            return []

        message = update.message
        if not message or not message.text:
            return []
        if message.from_user and message.from_user.is_bot:
            return []

        text = message.text.strip()
        if not text:
            return []

        metadata = {}
        if message.message_id is not None:
            metadata["telegram_message_id"] = message.message_id
        if message.from_user and message.from_user.username:
            metadata["username"] = message.from_user.username

        return [
            InboundMessage(
                external_id=str(message.chat.id),
                text=text,
                message_id=str(update.update_id) if update.update_id is not None else None,
                display_name=message.sender_name,
                metadata=metadata,
            )
        ]

    async def _make_request(self, bot_token: str, method: str, data: Optional[dict] = None) -> dict:
        """Make request to Telegram API."""
        url = f"{self.api_base}/bot{bot_token}/{method}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, json=data or {})
                return response.json()
        except Exception as e:
            logger.error(f"Telegram API error: {e}")
            return {"ok": False, "description": str(e)}

    async def send_outbound(self, credentials: TelegramCredentials, external_id: str, text: str) -> Result[dict]:
        result = await self._make_request(credentials.bot_token, "sendMessage", {"chat_id": external_id, "text": text})
        if result.get("ok"):
            return Result.success(result.get("result") or {})
        return Result.failure(str(result.get("description") or "sendMessage failed"), "send_error")

    async def set_webhook(self, credentials: TelegramCredentials, url: str) -> Result[dict]:
        """Register the per-tenant hook URL together with the secret Telegram must echo back."""
        result = await self._make_request(
            credentials.bot_token,
            "setWebhook",
            {"url": url, "secret_token": credentials.webhook_secret},
        )
        if result.get("ok"):
            return Result.success(result)
        return Result.failure(str(result.get("description") or "setWebhook failed"), "set_webhook_error")
