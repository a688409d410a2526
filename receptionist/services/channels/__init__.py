from receptionist.config import Settings
from receptionist.services.channels.base import Channel, ChannelAdapter, InboundMessage, InboundRequest
from receptionist.services.channels.instagram import InstagramAdapter
from receptionist.services.channels.messenger import MessengerAdapter
from receptionist.services.channels.telegram import TelegramAdapter
from receptionist.services.channels.website import WebsiteAdapter
from receptionist.services.channels.whatsapp import WhatsAppAdapter


def build_adapters(settings: Settings) -> dict[Channel, ChannelAdapter]:
    """Adapter registry keyed by channel."""
    graph_kwargs = {
        "api_base": settings.graph_api_base,
        "api_version": settings.graph_api_version,
        "timeout": settings.provider_timeout_seconds,
    }
    return {
        Channel.WEBSITE: WebsiteAdapter(),
        Channel.TELEGRAM: TelegramAdapter(
            api_base=settings.telegram_api_base,
            timeout=settings.provider_timeout_seconds,
        ),
        Channel.WHATSAPP: WhatsAppAdapter(**graph_kwargs),
        Channel.FACEBOOK: MessengerAdapter(**graph_kwargs),
        Channel.INSTAGRAM: InstagramAdapter(**graph_kwargs),
    }


__all__ = [
    "Channel",
    "ChannelAdapter",
    "InboundMessage",
    "InboundRequest",
    "build_adapters",
]
