from receptionist.schemas.telegram import TelegramChat, TelegramMessage, TelegramUpdate, TelegramUser
from receptionist.schemas.webhook import LiveEvent, WebhookAck, WebsiteChatResponse, WebsiteMessage

__all__ = [
    "TelegramChat",
    "TelegramMessage",
    "TelegramUpdate",
    "TelegramUser",
    "LiveEvent",
    "WebhookAck",
    "WebsiteChatResponse",
    "WebsiteMessage",
]
